"""Tests for topohound.cli module."""

import json
from pathlib import Path

import pytest

from topohound import __version__
from topohound.cli import main, parse_args
from topohound.config import get_settings

NETWORK = {
    "resource": {
        "aws_vpc": {"main": {"cidr_block": "10.0.0.0/16"}},
        "aws_subnet": {"app": {"vpc_id": "${aws_vpc.main.id}", "cidr_block": "10.0.1.0/24"}},
        "aws_security_group": {
            "web": {"ingress": [{"security_groups": ["${aws_security_group.web.id}"]}]},
        },
        "aws_instance": {
            "web": {
                "count": 2,
                "subnet_id": "${aws_subnet.app.id}",
                "vpc_security_group_ids": ["${aws_security_group.web.id}"],
            }
        },
    }
}


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "main.tf.json"
    path.write_text(json.dumps(NETWORK))
    return path


@pytest.fixture(autouse=True)
def fresh_settings(clean_environment):
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestParseArgs:
    """Tests for CLI argument parsing."""

    def test_help_output(self):
        """Test that --help exits gracefully."""
        with pytest.raises(SystemExit) as exc_info:
            parse_args(["--help"])
        assert exc_info.value.code == 0

    def test_version_output(self, capsys):
        """Test that --version shows version and exits."""
        with pytest.raises(SystemExit) as exc_info:
            parse_args(["--version"])
        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out

    def test_no_command(self):
        """Test parsing with no command."""
        args = parse_args([])
        assert args.command is None

    def test_convert_defaults(self):
        """Test convert command default values."""
        args = parse_args(["convert", "main.tf.json"])
        assert args.command == "convert"
        assert args.config == Path("main.tf.json")
        assert args.module == []
        assert args.output is None
        assert args.format is None
        assert args.indent is None
        assert args.keep_going is False
        assert args.manifest_dir is None

    def test_convert_with_options(self):
        """Test convert command with options."""
        args = parse_args([
            "convert", "main.tf.json",
            "-m", "net=net.tf.json",
            "--module", "net.private=private.tf.json",
            "--output", "/tmp/topology.json",
            "--format", "cytoscape",
            "--indent", "2",
            "--keep-going",
        ])
        assert args.module == [("net", Path("net.tf.json")), ("net.private", Path("private.tf.json"))]
        assert args.output == Path("/tmp/topology.json")
        assert args.format == "cytoscape"
        assert args.indent == 2
        assert args.keep_going is True

    def test_bad_module_spec(self):
        """Test --module requires PATH=FILE."""
        with pytest.raises(SystemExit) as exc_info:
            parse_args(["convert", "main.tf.json", "-m", "net.tf.json"])
        assert exc_info.value.code == 2

    def test_unknown_format(self):
        with pytest.raises(SystemExit):
            parse_args(["convert", "main.tf.json", "--format", "dot"])


class TestMain:
    """Tests for the main entry point."""

    def test_no_command_shows_help(self):
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 0

    def test_convert_to_stdout(self, config_file, capsys):
        """Test convert writes the topology array to stdout."""
        assert main(["convert", str(config_file)]) == 0

        records = json.loads(capsys.readouterr().out)
        ids = [r["id"] for r in records if "id" in r]
        assert ids == ["aws_vpc.main", "aws_subnet.app", "aws_instance.web.0", "aws_instance.web.1"]
        edges = [(r["source"], r["target"]) for r in records if r["kind"] == "edge"]
        assert edges == [
            ("aws_instance.web.0", "aws_instance.web.1"),
            ("aws_instance.web.1", "aws_instance.web.0"),
        ]

    def test_convert_to_file(self, config_file, tmp_path, capsys):
        """Test convert writes the bundle and prints a summary."""
        out = tmp_path / "out" / "topology.json"
        manifest_dir = tmp_path / "manifest"

        code = main([
            "convert", str(config_file),
            "-o", str(out),
            "--format", "cytoscape",
            "--indent", "2",
            "--manifest-dir", str(manifest_dir),
        ])

        assert code == 0
        summary = json.loads(capsys.readouterr().out)
        assert summary == {
            "output": str(out),
            "resources": 4,
            "ok": 4,
            "skipped": 0,
            "errors": 0,
            "nodes": 4,
            "edges": 2,
        }
        records = json.loads(out.read_text())
        assert records[0] == {
            "data": {"id": "aws_vpc.main", "name": "aws_vpc.main", "type": "aws_vpc", "node_data": {"CidrBlock": "10.0.0.0/16"}}
        }
        manifest = json.loads((manifest_dir / "manifest.json").read_text())
        assert manifest["nodes"] == 4
        assert [r["address"] for r in manifest["resources"]] == [
            "aws_vpc.main",
            "aws_subnet.app",
            "aws_security_group.web",
            "aws_instance.web",
        ]

    def test_child_module(self, config_file, tmp_path, capsys):
        """Test --module loads a child module with qualified ids."""
        child = tmp_path / "child.tf.json"
        child.write_text(json.dumps({"resource": {"aws_vpc": {"inner": {}}}}))

        assert main(["convert", str(config_file), "-m", f"net.private={child}"]) == 0

        records = json.loads(capsys.readouterr().out)
        assert "module.net.private.aws_vpc.inner" in [r.get("id") for r in records]

    def test_invalid_configuration(self, tmp_path, capsys):
        """Test a malformed security group returns 1 with a JSON error."""
        path = tmp_path / "bad.tf.json"
        path.write_text(json.dumps({"resource": {"aws_security_group": {"bad": {"egress": [{"to_port": 22}]}}}}))

        assert main(["convert", str(path)]) == 1

        error = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
        assert error["type"] == "ConfigurationError"
        assert error["details"]["resource"] == "aws_security_group.bad"

    def test_keep_going(self, tmp_path, capsys):
        """Test --keep-going converts the remaining resources."""
        path = tmp_path / "bad.tf.json"
        document = {
            "resource": {
                "aws_vpc": {"main": {}},
                "aws_security_group": {"bad": {"egress": [{"to_port": 22}]}},
            }
        }
        path.write_text(json.dumps(document))

        assert main(["convert", str(path), "--keep-going"]) == 0

        records = json.loads(capsys.readouterr().out)
        assert records == [{"id": "aws_vpc.main", "name": "aws_vpc.main", "kind": "aws_vpc"}]

    def test_missing_file(self, tmp_path, capsys):
        assert main(["convert", str(tmp_path / "missing.tf.json")]) == 1
        assert "Cannot read configuration" in capsys.readouterr().err

"""Load Terraform JSON configuration into resource declarations.

Only the JSON configuration syntax (``*.tf.json``) is understood; HCL
parsing and remote module fetching are left to other tools. Modules are
supported by loading each module's document with its own module path and
merging the results.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Sequence, Tuple

from .constants import ROOT_MODULE
from .errors import ConfigurationError
from .resources import ResourceDeclaration, as_list

logger = logging.getLogger(__name__)

ModulePath = Tuple[str, ...]


@dataclass
class Configuration:
    """Declarations, input variable defaults and locals of one or more modules.

    Variables and locals are scoped by module path.
    """

    declarations: List[ResourceDeclaration] = field(default_factory=list)
    variables: Dict[ModulePath, Dict[str, Any]] = field(default_factory=dict)
    locals: Dict[ModulePath, Dict[str, Any]] = field(default_factory=dict)

    def merge(self, other: "Configuration") -> "Configuration":
        merged = Configuration(
            declarations=self.declarations + other.declarations,
            variables={k: dict(v) for k, v in self.variables.items()},
            locals={k: dict(v) for k, v in self.locals.items()},
        )
        for path, values in other.variables.items():
            merged.variables.setdefault(path, {}).update(values)
        for path, values in other.locals.items():
            merged.locals.setdefault(path, {}).update(values)
        return merged

    def __len__(self) -> int:
        return len(self.declarations)


def _blocks(value: Any, what: str) -> Iterator[Dict[str, Any]]:
    """Terraform JSON allows any block level to be an object or a list of objects."""
    for item in as_list(value):
        if not isinstance(item, dict):
            raise ConfigurationError(f"{what} must be an object, got {type(item).__name__}", field=what)
        yield item


def _iter_resources(section: Any) -> Iterator[Tuple[str, str, Dict[str, Any]]]:
    for by_type in _blocks(section, "resource"):
        for rtype, by_name in by_type.items():
            for names in _blocks(by_name, f"resource.{rtype}"):
                for name, bodies in names.items():
                    for body in _blocks(bodies, f"resource.{rtype}.{name}"):
                        yield rtype, name, body


def load_configuration(document: Dict[str, Any], module_path: Sequence[str] = (ROOT_MODULE,)) -> Configuration:
    """Build a Configuration from a parsed Terraform JSON document.

    Args:
        document: Parsed JSON object
        module_path: Module chain the document belongs to

    Raises:
        ConfigurationError: the document is not shaped like Terraform JSON
    """
    if not isinstance(document, dict):
        raise ConfigurationError(f"configuration must be a JSON object, got {type(document).__name__}")
    path = tuple(module_path)

    config = Configuration()
    for rtype, name, body in _iter_resources(document.get("resource")):
        attributes = dict(body)
        count = attributes.pop("count", None)
        depends_on = [str(d) for d in as_list(attributes.pop("depends_on", None))]
        config.declarations.append(
            ResourceDeclaration(
                type=rtype,
                name=name,
                module_path=path,
                attributes=attributes,
                count=count,
                depends_on=depends_on,
            )
        )

    variables: Dict[str, Any] = {}
    for block in _blocks(document.get("variable"), "variable"):
        for var_name, spec in block.items():
            if isinstance(spec, dict) and "default" in spec:
                variables[var_name] = spec["default"]
    if variables:
        config.variables[path] = variables

    local_values: Dict[str, Any] = {}
    for block in _blocks(document.get("locals"), "locals"):
        local_values.update(block)
    if local_values:
        config.locals[path] = local_values

    logger.debug(f"loaded {len(config.declarations)} resources for module path {'.'.join(path)}")
    return config


def load_file(path: Path, module_path: Sequence[str] = (ROOT_MODULE,)) -> Configuration:
    """Read and load a ``*.tf.json`` file.

    Raises:
        ConfigurationError: unreadable file or invalid JSON
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Cannot read configuration {path}: {e}") from e
    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {path}: {e}") from e
    return load_configuration(document, module_path)


def load_files(paths: Iterable[Tuple[Sequence[str], Path]]) -> Configuration:
    """Load several (module_path, file) pairs into one Configuration."""
    config = Configuration()
    for module_path, path in paths:
        config = config.merge(load_file(path, module_path))
    return config

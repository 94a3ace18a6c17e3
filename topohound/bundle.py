import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .errors import SerializationError
from .manifest import Manifest

MANIFEST_FILE = "manifest.json"


def json_serial(obj):
    """JSON serializer for manifest timestamps and file paths."""
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, Path):
        return str(obj)
    raise TypeError(f"Type {type(obj)} not serializable")


def _dumps(payload: Any, indent: Optional[int]) -> str:
    try:
        return json.dumps(payload, default=json_serial, indent=indent)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"cannot serialize topology: {e}") from e


def _check_record(rec: Dict[str, Any]) -> None:
    data = rec.get("data", rec)
    if data.get("source") is not None or data.get("target") is not None:
        if not data.get("source") or not data.get("target"):
            raise SerializationError("edge record without both endpoints", details={"record": data})
    elif not data.get("id"):
        raise SerializationError("node record without an id", details={"record": data})


def render(records: Iterable[Dict[str, Any]], indent: Optional[int] = None) -> str:
    """Serialize output records as one JSON array.

    Raises:
        SerializationError: a record breaks the node/edge shape or holds
            a value JSON cannot represent
    """
    records = list(records)
    for rec in records:
        _check_record(rec)
    return _dumps(records, indent)


def write_topology(records: List[Dict[str, Any]], path: Path, indent: Optional[int] = None) -> Path:
    text = render(records, indent=indent)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def write_manifest(manifest: Manifest, output_dir: Path) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    out = output_dir / MANIFEST_FILE
    out.write_text(_dumps(manifest.to_dict(), indent=2), encoding="utf-8")
    return out

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, List, Optional

from .schema import CompileSettings, InputRecord, UnitEntry


def _read_json(path: Path) -> Any:
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def _items(data: Any, key: str, source: Path) -> List[dict]:
    if isinstance(data, dict):
        data = data.get(key, [])
    if not isinstance(data, list):
        raise ValueError(f"{source}: expected a list of {key}")
    return data


def load_records(path: str | Path) -> List[InputRecord]:
    """Load records from a JSON file, or from every ``*.json`` file of a directory in name order."""
    records_path = Path(path)
    if not records_path.exists():
        raise FileNotFoundError(f"records not found: {path}")
    files = sorted(records_path.glob("*.json")) if records_path.is_dir() else [records_path]
    result: List[InputRecord] = []
    for p in files:
        result.extend(InputRecord(**r) for r in _items(_read_json(p), "records", p))
    return result


def load_units(path: str | Path) -> List[UnitEntry]:
    units_path = Path(path)
    if not units_path.exists():
        raise FileNotFoundError(f"units file not found: {path}")
    return [UnitEntry(**u) for u in _items(_read_json(units_path), "units", units_path)]


def load_settings(path: Optional[str | Path] = None) -> CompileSettings:
    if path is None:
        return CompileSettings()
    settings_path = Path(path)
    if not settings_path.exists():
        raise FileNotFoundError(f"settings file not found: {path}")
    data = _read_json(settings_path)
    if not isinstance(data, dict):
        raise ValueError(f"{settings_path}: settings must be a JSON object")
    return CompileSettings(**data)

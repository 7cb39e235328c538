from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List


WORKSPACE_DIRS = ("inputs", "outputs", "exports", "diagrams", "logs")
RUN_LOG = "logs/compile.jsonl"


class SandboxPathError(ValueError):
    pass


def resolve_in_sandbox(root: str | Path, rel: str | Path) -> Path:
    """Resolve ``rel`` under ``root``; absolute paths and ``..`` may not leave it."""
    root_path = Path(root).resolve()
    target = (root_path / rel).resolve()
    if target != root_path and root_path not in target.parents:
        raise SandboxPathError(f"path escapes workspace: {rel}")
    return target


def ensure_dirs(root: str | Path) -> Dict[str, Path]:
    root_path = Path(root).resolve()
    dirs = {name: resolve_in_sandbox(root_path, name) for name in WORKSPACE_DIRS}
    for p in dirs.values():
        p.mkdir(parents=True, exist_ok=True)
    dirs["root"] = root_path
    return dirs


def write_json(root: str | Path, rel: str | Path, obj: Any) -> Path:
    p = resolve_in_sandbox(root, rel)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("w", encoding="utf-8") as f:
        json.dump(obj, f, indent=2, ensure_ascii=False)
        f.write("\n")
    return p


def output_documents(root: str | Path, rel: str | Path = "outputs") -> Dict[str, Any]:
    """Compiled category documents found in the workspace, keyed by category."""
    out_dir = resolve_in_sandbox(root, rel)
    if not out_dir.is_dir():
        raise FileNotFoundError(f"no compiled outputs in {out_dir}")
    docs: Dict[str, Any] = {}
    for p in sorted(out_dir.glob("*.json")):
        with p.open("r", encoding="utf-8") as f:
            docs[p.stem] = json.load(f)
    return docs


def log_run(root: str | Path, summary: Dict[str, Any]) -> Path:
    p = resolve_in_sandbox(root, RUN_LOG)
    p.parent.mkdir(parents=True, exist_ok=True)
    entry = {"timestamp": datetime.now(timezone.utc).isoformat(), **summary}
    with p.open("a", encoding="utf-8") as f:
        f.write(json.dumps(entry, ensure_ascii=False, separators=(",", ":")))
        f.write("\n")
    return p


def read_runs(root: str | Path) -> List[Dict[str, Any]]:
    p = resolve_in_sandbox(root, RUN_LOG)
    if not p.exists():
        return []
    with p.open("r", encoding="utf-8") as f:
        return [json.loads(line) for line in f if line.strip()]

"""Diagnostic dumps — the agent's state at the moment a stream failed.

Dumps are JSON files named by millisecond timestamp in the dump
directory (./dump by default). Each one holds the rendered turn list, the
tool declarations, the model and its reasoning config, which is enough
to replay the failing request by hand.
"""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any, Sequence

from gent.agent.config import get_dump_dir
from gent.agent.turns import Turn


def _unique_path(dump_dir: Path) -> Path:
    stamp = int(time.time() * 1000)
    path = dump_dir / f"{stamp}.json"
    while path.exists():
        stamp += 1
        path = dump_dir / f"{stamp}.json"
    return path


def write_dump(
    turns: Sequence[Turn],
    tools: list[dict[str, Any]],
    model: str,
    reasoning: dict[str, Any] | None,
    dump_dir: Path | None = None,
) -> Path:
    """Write a dump file and return its path."""
    dump_dir = Path(dump_dir) if dump_dir is not None else get_dump_dir()
    dump_dir.mkdir(parents=True, exist_ok=True)

    data = {
        "input": [turn.to_input() for turn in turns],
        "tools": tools,
        "model": model,
        "reasoning": reasoning,
    }
    path = _unique_path(dump_dir)
    path.write_text(json.dumps(data))
    return path


def load_dump(path: str | Path) -> dict[str, Any] | None:
    """Load a dump file. Returns None if it is missing or unreadable."""
    path = Path(path)
    if not path.exists():
        return None
    try:
        return json.loads(path.read_text())
    except (json.JSONDecodeError, OSError):
        return None


def list_dumps(dump_dir: Path | None = None, limit: int = 50) -> list[dict[str, Any]]:
    """List dumps newest first. Returns metadata only (no turns)."""
    dump_dir = Path(dump_dir) if dump_dir is not None else get_dump_dir()
    if not dump_dir.exists():
        return []

    dumps = []
    for path in dump_dir.glob("*.json"):
        data = load_dump(path)
        if data is None:
            continue
        dumps.append({
            "path": str(path),
            "created_at": int(path.stem) / 1000 if path.stem.isdigit() else path.stat().st_mtime,
            "model": data.get("model", ""),
            "turn_count": len(data.get("input", [])),
        })

    dumps.sort(key=lambda d: d["created_at"], reverse=True)
    return dumps[:limit]

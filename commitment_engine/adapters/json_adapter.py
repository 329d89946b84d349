"""JSON adapter for the commit history."""

from __future__ import annotations

import json
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any

from commitment_engine.schema import DayCommit, TimeBlock

_REQUIRED_COMMIT_FIELDS = {"date", "blocks", "committed_at"}
_REQUIRED_BLOCK_FIELDS = {"id", "identity", "start", "end"}


def _parse_flag(item: dict, field: str, default: bool, label: str) -> bool:
    value = item.get(field, default)
    if not isinstance(value, bool):
        raise ValueError(f"{label}: {field} must be true or false")
    return value


def _parse_timestamp(value: Any, label: str) -> datetime:
    try:
        return datetime.fromisoformat(str(value))
    except Exception as exc:  # noqa: BLE001
        raise ValueError(f"{label}: malformed timestamp") from exc


def _parse_block(item: dict, label: str) -> TimeBlock:
    if not isinstance(item, dict):
        raise ValueError(f"{label}: block must be an object")
    missing = sorted(field for field in _REQUIRED_BLOCK_FIELDS if item.get(field) in (None, ""))
    if missing:
        raise ValueError(f"{label}: missing required fields {missing}")

    completed = item.get("completed")
    if completed is not None and not isinstance(completed, bool):
        raise ValueError(f"{label}: completed must be true, false or null")

    return TimeBlock(
        id=str(item["id"]).strip(),
        identity=str(item["identity"]).strip(),
        start=str(item["start"]).strip(),
        end=str(item["end"]).strip(),
        optional=_parse_flag(item, "optional", False, label),
        completed=completed,
    )


def _parse_item(item: dict, index: int) -> DayCommit:
    if not isinstance(item, dict):
        raise ValueError(f"Item {index}: commit must be an object")
    missing = sorted(field for field in _REQUIRED_COMMIT_FIELDS if item.get(field) in (None, ""))
    if missing:
        raise ValueError(f"Item {index}: missing required fields {missing}")

    try:
        datetime.strptime(str(item["date"]), "%Y-%m-%d")
    except ValueError as exc:
        raise ValueError(f"Item {index}: malformed date") from exc

    if not isinstance(item["blocks"], list):
        raise ValueError(f"Item {index}: blocks must be a list")
    blocks = tuple(_parse_block(block, f"Item {index} block {pos}") for pos, block in enumerate(item["blocks"], 1))

    finalized_raw = item.get("finalized_at")
    return DayCommit(
        date=str(item["date"]),
        blocks=blocks,
        committed_at=_parse_timestamp(item["committed_at"], f"Item {index}"),
        committed=_parse_flag(item, "committed", True, f"Item {index}"),
        finalized_at=_parse_timestamp(finalized_raw, f"Item {index}") if finalized_raw else None,
    )


def block_to_record(block: TimeBlock) -> dict:
    return {
        "id": block.id,
        "identity": block.identity,
        "start": block.start,
        "end": block.end,
        "optional": block.optional,
        "completed": block.completed,
    }


def commit_to_record(commit: DayCommit) -> dict:
    return {
        "date": commit.date,
        "blocks": [block_to_record(b) for b in commit.blocks],
        "committed_at": commit.committed_at.isoformat(),
        "committed": commit.committed,
        "finalized_at": commit.finalized_at.isoformat() if commit.finalized_at else None,
    }


def parse(file_path: str) -> list[DayCommit]:
    """Parse a JSON file into day commits."""

    with open(file_path, encoding="utf-8") as handle:
        payload = json.load(handle)

    if not isinstance(payload, list):
        raise ValueError("JSON payload must be a list of objects")

    commits = [_parse_item(item, i) for i, item in enumerate(payload, start=1)]
    dates = [c.date for c in commits]
    duplicates = sorted({d for d in dates if dates.count(d) > 1})
    if duplicates:
        raise ValueError(f"Duplicate commit dates {duplicates}")
    return commits


def write(file_path: str, commits: list[DayCommit]) -> None:
    """Write commits atomically so a crash never leaves a half-written history."""

    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = json.dumps([commit_to_record(c) for c in commits], indent=2)

    fd, temp_path = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(payload)
        os.replace(temp_path, path)
    except BaseException:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
        raise


class JsonCommitStore:
    """File-backed persistence collaborator for :class:`CommitmentStore`."""

    def __init__(self, file_path: str):
        self.file_path = file_path

    def load(self) -> list[DayCommit]:
        if not Path(self.file_path).exists():
            return []
        return parse(self.file_path)

    def save(self, commits: list[DayCommit]) -> None:
        write(self.file_path, commits)

"""CSV adapter for imported calendar events."""

from __future__ import annotations

import csv

from commitment_engine.errors import InvalidTimeError
from commitment_engine.schema import CalendarEvent
from commitment_engine.timeutil import time_to_minutes

_REQUIRED_FIELDS = {"id", "title", "start", "end"}


def _parse_row(row: dict, row_number: int) -> CalendarEvent:
    missing = sorted(field for field in _REQUIRED_FIELDS if not (row.get(field) or "").strip())
    if missing:
        raise ValueError(f"Row {row_number}: missing required fields {missing}")

    start = row["start"].strip()
    end = row["end"].strip()
    try:
        if time_to_minutes(start) >= time_to_minutes(end):
            raise ValueError(f"Row {row_number}: start must be before end")
    except InvalidTimeError as exc:
        raise ValueError(f"Row {row_number}: malformed time") from exc

    color_raw = row.get("account_color")
    return CalendarEvent(
        id=row["id"].strip(),
        title=row["title"].strip(),
        start=start,
        end=end,
        account_color=color_raw.strip() if color_raw and color_raw.strip() else None,
    )


def parse(file_path: str) -> list[CalendarEvent]:
    """Parse CSV file into a list of calendar events."""

    with open(file_path, newline="", encoding="utf-8") as handle:
        reader = csv.DictReader(handle)
        if not reader.fieldnames:
            return []

        events: list[CalendarEvent] = []
        for row_number, row in enumerate(reader, start=2):
            events.append(_parse_row(row, row_number))
        return events

"""Demo script for commitment-engine."""

import sys
from datetime import datetime, timedelta
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from commitment_engine.conflicts import apply_resolution, detect_conflicts
from commitment_engine.errors import FinalizedCommitError
from commitment_engine.logging_config import setup_logging
from commitment_engine.metrics import score_schedule
from commitment_engine.routines import analyze_routines
from commitment_engine.schema import CalendarEvent, TimeBlock
from commitment_engine.store import CommitmentStore


def main() -> None:
    setup_logging()
    clock = {"now": datetime(2025, 1, 6, 7, 0)}
    store = CommitmentStore(clock=lambda: clock["now"])

    for day in range(14):
        clock["now"] = datetime(2025, 1, 6, 7, 0) + timedelta(days=day)
        date = clock["now"].date().isoformat()
        if clock["now"].weekday() < 3:
            store.commit([TimeBlock("gym", "Gym Workout", "07:30", "08:30")], date)
            clock["now"] = clock["now"].replace(hour=8, minute=15)
            store.set_completion("gym", date, True)

    clock["now"] = datetime(2025, 1, 20, 6, 0)
    for routine in analyze_routines(store.commits, now=clock["now"]):
        print("Routine:", routine.identity, routine.status, routine.frequency, routine.original_variants)

    try:
        store.clear("2025-01-06")
    except FinalizedCommitError as exc:
        print("Rejected:", exc)

    blocks = [TimeBlock("deep", "Deep Work", "09:00", "10:00")]
    events = [CalendarEvent("standup", "Standup", "09:30", "10:30")]
    conflicts = detect_conflicts(blocks, events)
    for conflict in conflicts:
        print("Conflict:", conflict.severity, conflict.description)
        for resolution in conflict.suggested_resolutions:
            print("  option:", resolution.action, resolution.description)

    move_after = next(r for r in conflicts[0].suggested_resolutions if r.id == "move-after-event")
    moved = apply_resolution(blocks, move_after)
    print("After move:", moved)
    print("Schedule score:", score_schedule(moved, events, north_star_goals=["deep work"]))


if __name__ == "__main__":
    main()

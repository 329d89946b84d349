"""Print an adherence report for a commit history file."""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict
from datetime import datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from commitment_engine.adapters import csv_adapter, json_adapter
from commitment_engine.config import DEFAULT_CONFIG, load_config
from commitment_engine.conflicts import conflict_summary, detect_conflicts
from commitment_engine.logging_config import get_logger, setup_logging
from commitment_engine.metrics import (
    calculate_streaks,
    identity_adherence,
    score_schedule,
    time_by_identity,
    week_summary,
)
from commitment_engine.routines import analyze_routines
from commitment_engine.store import get_commit

logger = get_logger(__name__)


def build_report(
    commits, events, date: str, now: datetime, config=DEFAULT_CONFIG, routine_names=None, north_star_goals=None
) -> dict:
    """Assemble the report payload; plain dicts and lists only."""

    routines = analyze_routines(commits, routine_names=routine_names, now=now, config=config)
    day = get_commit(commits, date)
    conflicts = detect_conflicts(day.blocks if day else [], events, config=config)

    return {
        "date": date,
        "routines": [asdict(r) for r in routines],
        "streaks": calculate_streaks(commits, now=now),
        "identity_adherence": identity_adherence(commits, now=now),
        "time_by_identity": time_by_identity(commits, now=now),
        "week_summary": week_summary(commits, now=now),
        "conflicts": [asdict(c) for c in conflicts],
        "conflict_summary": conflict_summary(conflicts),
        "schedule_score": score_schedule(day.blocks if day else [], events, north_star_goals, config=config),
    }


def main() -> None:
    parser = argparse.ArgumentParser(description="Run commitment-engine adherence report")
    parser.add_argument("--commits", required=True, help="Path to JSON commit history")
    parser.add_argument("--events", help="Path to CSV calendar events for --date")
    parser.add_argument("--date", help="Day to check for conflicts (YYYY-MM-DD), default today")
    parser.add_argument("--config", help="Path to YAML engine config")
    parser.add_argument("--routine", action="append", default=[], help="Declared routine name (repeatable)")
    parser.add_argument("--goal", action="append", default=[], help="North-star goal for schedule scoring (repeatable)")
    parser.add_argument("--out", help="Also write the report to this path")
    args = parser.parse_args()

    setup_logging()
    config = load_config(args.config) if args.config else DEFAULT_CONFIG
    now = datetime.now()
    date = args.date or now.date().isoformat()

    commits = json_adapter.parse(args.commits)
    events = csv_adapter.parse(args.events) if args.events else []
    logger.info("report_inputs_loaded", commits=len(commits), events=len(events), date=date)

    report = build_report(
        commits, events, date, now, config=config, routine_names=args.routine or None, north_star_goals=args.goal or None
    )
    text = json.dumps(report, indent=2, default=str)
    print(text)

    if args.out:
        out_path = Path(args.out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(text, encoding="utf-8")
        logger.info("report_saved", path=str(out_path))


if __name__ == "__main__":
    main()

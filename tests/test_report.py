import importlib.util
import json
from datetime import datetime
from pathlib import Path

from commitment_engine.schema import CalendarEvent, DayCommit, TimeBlock

SCRIPT = Path(__file__).resolve().parents[1] / "scripts" / "run_report.py"


def load_script():
    module_spec = importlib.util.spec_from_file_location("run_report", SCRIPT)
    module = importlib.util.module_from_spec(module_spec)
    module_spec.loader.exec_module(module)
    return module


def test_build_report_is_json_serializable():
    run_report = load_script()
    now = datetime(2025, 3, 12, 12, 0)
    commits = [
        DayCommit(
            "2025-03-11",
            (TimeBlock("a", "Reading", "07:00", "08:00", completed=True),),
            committed_at=datetime(2025, 3, 11, 6, 0),
        ),
        DayCommit(
            "2025-03-12",
            (TimeBlock("b", "Deep Work", "09:00", "10:00"),),
            committed_at=datetime(2025, 3, 12, 6, 0),
        ),
    ]
    events = [CalendarEvent("s", "Standup", "09:30", "10:30")]

    report = run_report.build_report(commits, events, "2025-03-12", now)

    assert set(report) == {
        "date",
        "routines",
        "streaks",
        "identity_adherence",
        "time_by_identity",
        "week_summary",
        "conflicts",
        "conflict_summary",
        "schedule_score",
    }
    assert report["conflict_summary"]["critical"] == 1
    assert "reading" in {r["identity"] for r in report["routines"]}
    assert json.loads(json.dumps(report, default=str))["date"] == "2025-03-12"


def test_build_report_without_commit_for_date():
    run_report = load_script()
    report = run_report.build_report([], [], "2025-03-12", datetime(2025, 3, 12, 12, 0))
    assert report["conflicts"] == []
    assert report["routines"] == []
    assert report["schedule_score"]["overall"] == 0

from datetime import datetime

from commitment_engine.schema import CalendarEvent, DayCommit, TimeBlock
from commitment_engine.scheduling import analyze_habit_patterns, should_suggest, suggest_blocks

NOW = datetime(2025, 1, 27, 6, 0)


def sample_commits():
    rows = [
        ("2025-01-06", "07:00", "07:30"),
        ("2025-01-13", "07:10", "07:40"),
        ("2025-01-20", "07:20", "07:50"),
    ]
    commits = [
        DayCommit(day, (TimeBlock(f"r{i}", "Reading", start, end),), committed_at=datetime(2025, 1, 1))
        for i, (day, start, end) in enumerate(rows)
    ]
    commits.append(
        DayCommit("2025-01-21", (TimeBlock("p", "Piano", "18:00", "19:00"),), committed_at=datetime(2025, 1, 1))
    )
    return commits


def test_analyze_habit_patterns():
    patterns = analyze_habit_patterns(sample_commits(), now=NOW)

    assert [p.identity for p in patterns] == ["Reading"]
    reading = patterns[0]
    assert reading.frequency == 3
    assert reading.avg_start_time == "07:10"
    assert reading.avg_duration == 30
    assert reading.weekday_frequency == [3, 0, 0, 0, 0, 0, 0]
    assert reading.last_seen == "2025-01-20"
    assert 0.0 < reading.confidence <= 1.0


def test_suggest_at_usual_time():
    patterns = analyze_habit_patterns(sample_commits(), now=NOW)
    result = suggest_blocks(patterns, "2025-01-27")

    assert result.unplaced == []
    assert len(result.suggestions) == 1
    block = result.suggestions[0].block
    assert (block.identity, block.start, block.end) == ("Reading", "07:10", "07:40")
    assert block.id == "ghost-reading-2025-01-27"
    assert result.suggestions[0].reason == "You've done this 3 times"


def test_suggest_moves_to_first_free_slot():
    patterns = analyze_habit_patterns(sample_commits(), now=NOW)
    existing = [TimeBlock("gym", "Gym", "07:00", "08:00")]
    result = suggest_blocks(patterns, "2025-01-27", existing_blocks=existing)

    block = result.suggestions[0].block
    assert (block.start, block.end) == ("06:00", "06:30")
    assert "adjusted" in result.suggestions[0].reason


def test_no_free_slot_is_reported_not_raised():
    patterns = analyze_habit_patterns(sample_commits(), now=NOW)
    events = [CalendarEvent("conf", "Conference", "06:00", "22:00")]
    existing = [TimeBlock("x", "Deep Work", "09:00", "10:00")]
    result = suggest_blocks(patterns, "2025-01-27", existing_blocks=existing, events=events)

    assert result.suggestions == []
    assert [p.identity for p in result.unplaced] == ["Reading"]
    assert existing == [TimeBlock("x", "Deep Work", "09:00", "10:00")]


def test_suggestions_skip_other_weekdays_and_existing_identities():
    patterns = analyze_habit_patterns(sample_commits(), now=NOW)
    assert suggest_blocks(patterns, "2025-01-28").suggestions == []

    existing = [TimeBlock("r", "reading", "20:00", "20:30")]
    result = suggest_blocks(patterns, "2025-01-27", existing_blocks=existing)
    assert result.suggestions == []
    assert result.unplaced == []


def test_should_suggest():
    commits = sample_commits()
    assert should_suggest(commits, "2025-01-27", now=NOW)
    assert should_suggest(commits, "2025-01-28", now=NOW)
    assert not should_suggest(commits, "2025-01-29", now=NOW)
    assert not should_suggest(commits, "2025-01-27", [TimeBlock("a", "A", "09:00", "10:00")], now=NOW)
    assert not should_suggest(commits[:1], "2025-01-27", now=NOW)

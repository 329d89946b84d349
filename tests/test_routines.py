from datetime import date, datetime, timedelta

from commitment_engine.normalize import IdentityNormalizer, clean_label
from commitment_engine.routines import (
    analyze_routines,
    extract_north_star_identities,
    identity_progress,
    north_star_alignment,
)
from commitment_engine.schema import DayCommit, TimeBlock

FIRST_MONDAY = date(2025, 1, 6)


def weekly_commits(counts, identity="Gym Workout", completed=None, start=FIRST_MONDAY):
    """One block per day, ``counts[i]`` days in week ``i`` starting on Monday."""

    commits = []
    for week, count in enumerate(counts):
        for day in range(count):
            commit_date = start + timedelta(weeks=week, days=day)
            done = True if completed is None else completed(week, day)
            commits.append(
                DayCommit(
                    date=commit_date.isoformat(),
                    blocks=(TimeBlock(f"b{week}{day}", identity, "07:00", "08:00", completed=done),),
                    committed_at=datetime.combine(commit_date, datetime.min.time()),
                )
            )
    return commits


def monday_after(weeks):
    return datetime.combine(FIRST_MONDAY + timedelta(weeks=weeks), datetime.min.time()) + timedelta(hours=6)


def test_normalizer_rule_order():
    normalizer = IdentityNormalizer()
    assert normalizer.canonical("Gym Workout") == "exercise"
    assert normalizer.canonical("  Morning   WORKOUT ") == "morning routine"
    assert normalizer.canonical("deep work session") == "deep work"
    assert normalizer.canonical("Read") == "reading"
    assert normalizer.canonical("Thread review") == "thread review"
    assert normalizer.canonical("Piano") == "piano"
    assert clean_label("  Deep\t  Work ") == "deep work"


def test_declared_routine_names_take_precedence():
    normalizer = IdentityNormalizer(["Morning Routine", "Gym"])
    assert normalizer.canonical("morning") == "Morning Routine"
    assert normalizer.canonical("Gym Workout") == "Gym"
    assert normalizer.group(["Gym Workout", "gym", "Gym Workout", "Yoga"]) == {
        "Gym": ["Gym Workout", "gym"],
        "yoga": ["Yoga"],
    }


def test_established_after_three_consistent_weeks():
    routines = analyze_routines(weekly_commits([3, 3, 3]), now=monday_after(3))

    assert len(routines) == 1
    routine = routines[0]
    assert routine.identity == "exercise"
    assert routine.original_variants == ["Gym Workout"]
    assert routine.status == "established"
    assert routine.frequency == 3.0
    assert routine.completion_rate == 100
    assert routine.consistency == 3
    assert routine.last_week_frequency == 3


def test_drop_to_two_marks_fading():
    routines = analyze_routines(weekly_commits([3, 3, 3, 2]), now=monday_after(4))

    routine = routines[0]
    assert routine.status == "fading"
    assert routine.last_week_frequency == 2
    assert routine.frequency == 2.8
    assert routine.promotion_progress is None


def test_first_week_statuses():
    emerging = analyze_routines(weekly_commits([3]), now=monday_after(1))[0]
    assert emerging.status == "emerging"

    almost = analyze_routines(weekly_commits([2]), now=monday_after(1))[0]
    assert almost.status == "almost"
    assert almost.promotion_progress.needed == 1
    assert "1 more time" in almost.promotion_progress.message

    low = analyze_routines(
        weekly_commits([4], completed=lambda week, day: day == 0),
        now=monday_after(1),
    )[0]
    assert low.status == "almost"
    assert low.promotion_progress.needed == 2
    assert low.promotion_progress.message == "Complete 2 more times to reach 70% completion"

    single = analyze_routines(weekly_commits([1]), now=monday_after(1))[0]
    assert single.status == "one-off"


def test_pending_block_today_is_not_counted():
    today = date(2025, 1, 8)
    commit = DayCommit(
        date=today.isoformat(),
        blocks=(TimeBlock("t", "Reading", "10:00", "11:00", completed=True),),
        committed_at=datetime(2025, 1, 8, 7, 0),
    )

    before = analyze_routines([commit], now=datetime(2025, 1, 8, 9, 0))
    assert before == []

    after = analyze_routines([commit], now=datetime(2025, 1, 8, 11, 0))
    assert len(after) == 1
    assert after[0].total_occurrences == 1
    assert after[0].total_completions == 1


def test_drafts_and_future_days_are_ignored():
    draft = DayCommit("2025-01-06", (TimeBlock("d", "Reading", "07:00", "08:00", completed=True),),
                      committed_at=datetime(2025, 1, 6), committed=False)
    future = DayCommit("2025-01-20", (TimeBlock("f", "Reading", "07:00", "08:00"),),
                       committed_at=datetime(2025, 1, 6))
    assert analyze_routines([draft, future], now=datetime(2025, 1, 13, 9, 0)) == []


def test_output_sorted_by_status_then_occurrences():
    commits = weekly_commits([3, 3, 3])
    commits += weekly_commits([1], identity="Piano", start=FIRST_MONDAY + timedelta(weeks=2, days=4))
    routines = analyze_routines(commits, now=monday_after(3))
    assert [(r.identity, r.status) for r in routines] == [("exercise", "established"), ("piano", "one-off")]


def test_only_recent_weeks_are_analyzed():
    commits = weekly_commits([3, 3, 3, 3, 3, 3])
    routines = analyze_routines(commits, weeks=2, now=monday_after(6))
    assert routines[0].consistency == 2
    assert routines[0].weeks == ["2025-02-03", "2025-02-10"]


def test_north_star_progress():
    identities = extract_north_star_identities("I want to become a world-class athlete and a passionate reader")
    assert identities == ["athlete", "reader"]
    assert north_star_alignment("exercise", identities) == ["athlete"]
    assert extract_north_star_identities("Becoming calm, kind person") == ["calm", "kind"]

    now = monday_after(3)
    commits = weekly_commits([3, 3, 3])
    routines = analyze_routines(commits, now=now)
    progress = identity_progress(routines, identities, commits, now=now)

    athlete = next(p for p in progress if p["identity"] == "athlete")
    assert athlete["routines"] == ["exercise"]
    assert athlete["score"] == 45
    assert athlete["total_actions"] == 9
    assert athlete["recent_activity"] == 3
    assert "athlete" in routines[0].north_star_alignment

"""Adherence metrics over the committed history, plus a single-day schedule score."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta
from typing import Iterable, Optional

from commitment_engine.config import DEFAULT_CONFIG, EngineConfig
from commitment_engine.schema import CalendarEvent, DayCommit, TimeBlock
from commitment_engine.timeutil import block_has_ended, duration, parse_date, resolve_now, time_to_minutes


def _percent(part: int, whole: int) -> int:
    return int(part * 100 / whole + 0.5) if whole else 0


def _committed(commits: Iterable[DayCommit]) -> list[DayCommit]:
    return [c for c in commits if c.committed]


def calculate_streaks(commits: Iterable[DayCommit], now: Optional[datetime] = None, limit: int = 5) -> list[dict]:
    """Current and best run of completed blocks per identity, best first.

    Blocks that are not due yet neither extend nor break a streak.
    """

    now = resolve_now(now)
    current: dict[str, int] = defaultdict(int)
    best: dict[str, int] = defaultdict(int)

    for commit in sorted(_committed(commits), key=lambda c: c.date):
        commit_date = parse_date(commit.date)
        for block in commit.blocks:
            if not block_has_ended(block, commit_date, now):
                continue
            if block.completed is True:
                current[block.identity] += 1
                best[block.identity] = max(best[block.identity], current[block.identity])
            else:
                current[block.identity] = 0

    streaks = [
        {"identity": identity, "current": current[identity], "best": value}
        for identity, value in best.items()
        if value > 0
    ]
    streaks.sort(key=lambda s: s["best"], reverse=True)
    return streaks[:limit]


def day_adherence(commit: Optional[DayCommit], now: Optional[datetime] = None) -> dict:
    """Completed share of the day's due blocks, plus the first missed identity."""

    if commit is None or not commit.committed or not commit.blocks:
        return {"score": 0, "completed": 0, "due": 0, "top_blocker": None}

    now = resolve_now(now)
    commit_date = parse_date(commit.date)
    due = [b for b in commit.blocks if block_has_ended(b, commit_date, now)]
    completed = sum(1 for b in due if b.completed is True)

    missed = [b for b in commit.blocks if b.completed is False or (b.optional and b.completed is not True)]
    return {
        "score": _percent(completed, len(due)),
        "completed": completed,
        "due": len(due),
        "top_blocker": missed[0].identity if missed else None,
    }


def heatmap(
    commits: Iterable[DayCommit],
    now: Optional[datetime] = None,
    days: Optional[int] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> list[dict]:
    """One adherence cell per day, oldest first, ending today."""

    now = resolve_now(now)
    days = config.heatmap_days if days is None else days
    by_date = {c.date: c for c in commits}
    today = now.date()

    cells = []
    for offset in range(days - 1, -1, -1):
        day = (today - timedelta(days=offset)).isoformat()
        commit = by_date.get(day)
        cell = day_adherence(commit, now)
        cell["date"] = day
        cell["committed"] = len(commit.blocks) if commit is not None and commit.committed else 0
        cells.append(cell)
    return cells


def identity_adherence(commits: Iterable[DayCommit], now: Optional[datetime] = None) -> list[dict]:
    """Adherence percentage per identity over due blocks, highest first."""

    now = resolve_now(now)
    done: dict[str, int] = defaultdict(int)
    total: dict[str, int] = defaultdict(int)
    for commit in _committed(commits):
        commit_date = parse_date(commit.date)
        for block in commit.blocks:
            if not block_has_ended(block, commit_date, now):
                continue
            total[block.identity] += 1
            done[block.identity] += 1 if block.completed is True else 0

    bars = [{"name": identity, "adherence": _percent(done[identity], count)} for identity, count in total.items()]
    bars = [bar for bar in bars if bar["adherence"] > 0]
    return sorted(bars, key=lambda bar: bar["adherence"], reverse=True)


def _window(commits: Iterable[DayCommit], start, end) -> list[DayCommit]:
    return [c for c in _committed(commits) if start <= parse_date(c.date) <= end]


def time_by_identity(
    commits: Iterable[DayCommit],
    now: Optional[datetime] = None,
    days: int = 7,
    limit: int = 5,
) -> list[dict]:
    """Scheduled hours per identity over the last ``days`` days."""

    today = resolve_now(now).date()
    minutes: dict[str, int] = defaultdict(int)
    for commit in _window(commits, today - timedelta(days=days), today):
        for block in commit.blocks:
            minutes[block.identity or "Other"] += duration(block.start, block.end)

    total = sum(minutes.values())
    rows = [
        {"identity": identity, "hours": value / 60, "percentage": _percent(value, total)}
        for identity, value in minutes.items()
    ]
    rows.sort(key=lambda row: row["hours"], reverse=True)
    return rows[:limit]


def _completion_rate(commits: list[DayCommit]) -> int:
    blocks = [b for c in commits for b in c.blocks]
    answered = [b for b in blocks if b.completed is not None]
    return _percent(sum(1 for b in answered if b.completed), len(answered))


def _hours(commits: list[DayCommit]) -> float:
    return sum(duration(b.start, b.end) for c in commits for b in c.blocks) / 60


def week_summary(commits: Iterable[DayCommit], now: Optional[datetime] = None) -> dict:
    """Last 7 days against the 7 days before them."""

    commits = list(commits)
    today = resolve_now(now).date()
    week_ago = today - timedelta(days=7)
    this_week = _window(commits, week_ago, today)
    last_week = _window(commits, today - timedelta(days=14), week_ago - timedelta(days=1))

    def pct_change(old: float, new: float) -> int:
        if old == 0:
            return 0
        return int(round((new - old) / old * 100))

    completion = _completion_rate(this_week)
    previous_completion = _completion_rate(last_week)
    hours = _hours(this_week)

    return {
        "blocks_committed": sum(len(c.blocks) for c in this_week),
        "completion_rate": completion,
        "completion_change": completion - previous_completion if previous_completion else 0,
        "hours_scheduled": hours,
        "hours_change": pct_change(_hours(last_week), hours),
        "days_committed": len(this_week),
    }


_SCORE_WEIGHTS = {"focus_time": 0.3, "balance": 0.2, "transitions": 0.2, "identity_alignment": 0.3}


def score_schedule(
    blocks: Iterable[TimeBlock],
    events: Iterable[CalendarEvent] = (),
    north_star_goals: Optional[list[str]] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> dict:
    """Score one day's plan from 0 to 100 on four axes and a weighted overall.

    - focus_time: minutes in long blocks against the focus target
    - balance: distinct identities against the balance target
    - transitions: penalty per pair of blocks with too short a gap
    - identity_alignment: share of blocks matching a north-star goal, 50 without goals

    ``events`` does not change the score.
    """

    blocks = sorted(blocks, key=lambda b: time_to_minutes(b.start))
    if not blocks:
        return {"overall": 0, "focus_time": 0, "balance": 0, "transitions": 100, "identity_alignment": 0}

    focus_minutes = sum(
        length
        for length in (duration(b.start, b.end) for b in blocks)
        if length >= config.focus_block_minutes
    )
    focus = min(100.0, focus_minutes / config.focus_target_minutes * 100)

    identities = {b.identity.lower() for b in blocks}
    balance = min(100.0, len(identities) / config.balance_target_identities * 100)

    short_gaps = sum(
        1
        for prev, curr in zip(blocks, blocks[1:])
        if time_to_minutes(curr.start) - time_to_minutes(prev.end) < config.transition_gap_minutes
    )
    transitions = 100.0 if len(blocks) == 1 else max(0.0, 100.0 - short_gaps * config.transition_penalty)

    alignment = 50.0
    goals = [g.lower() for g in north_star_goals or [] if g]
    if goals:
        aligned = sum(1 for b in blocks if any(g in b.identity.lower() or b.identity.lower() in g for g in goals))
        alignment = min(100.0, aligned / len(blocks) * 100)

    scores = {"focus_time": focus, "balance": balance, "transitions": transitions, "identity_alignment": alignment}
    overall = sum(scores[name] * weight for name, weight in _SCORE_WEIGHTS.items())
    return {"overall": int(overall + 0.5), **{name: int(value + 0.5) for name, value in scores.items()}}

"""Recurring habit detection and suggested block placement."""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

import numpy as np

from commitment_engine.config import DEFAULT_CONFIG, EngineConfig
from commitment_engine.logging_config import get_logger
from commitment_engine.schema import CalendarEvent, DayCommit, TimeBlock
from commitment_engine.timeutil import MINUTES_PER_DAY, minutes_to_time, parse_date, resolve_now, time_to_minutes

logger = get_logger(__name__)

_RECENCY_WINDOW = timedelta(days=30)


@dataclass
class HabitPattern:
    identity: str
    frequency: int
    avg_start_time: str
    avg_duration: int
    weekday_frequency: list[int]
    confidence: float
    last_seen: str


@dataclass
class SuggestedBlock:
    block: TimeBlock
    pattern: HabitPattern
    reason: str


@dataclass
class PlacementResult:
    suggestions: list[SuggestedBlock] = field(default_factory=list)
    unplaced: list[HabitPattern] = field(default_factory=list)


def _round_to_five(minutes: float) -> int:
    return int(math.floor(minutes / 5 + 0.5) * 5)


def _title(identity: str) -> str:
    return " ".join(word[:1].upper() + word[1:] for word in identity.split(" "))


def analyze_habit_patterns(
    commits: Iterable[DayCommit],
    min_occurrences: int = 2,
    now: Optional[datetime] = None,
) -> list[HabitPattern]:
    """Find identities committed repeatedly, with their usual time and weekday."""

    now = resolve_now(now)
    starts: dict[str, list[int]] = defaultdict(list)
    durations: dict[str, list[int]] = defaultdict(list)
    weekdays: dict[str, list[int]] = defaultdict(list)
    dates: dict[str, list[date]] = defaultdict(list)

    for commit in commits:
        if not commit.committed or not commit.blocks:
            continue
        commit_date = parse_date(commit.date)
        for block in commit.blocks:
            key = block.identity.strip().lower()
            start = time_to_minutes(block.start)
            starts[key].append(start)
            durations[key].append(time_to_minutes(block.end) - start)
            weekdays[key].append(commit_date.weekday())
            dates[key].append(commit_date)

    patterns: list[HabitPattern] = []
    for key, times in starts.items():
        if len(times) < min_occurrences:
            continue

        times_arr = np.asarray(times, dtype=float)
        avg_start = float(np.mean(times_arr))
        time_consistency = max(0.0, 1.0 - float(np.std(times_arr)) / 120.0)

        last_seen = max(dates[key])
        age = now - datetime.combine(last_seen, datetime.min.time())
        recency = min(1.0, max(0.0, 1.0 - age / _RECENCY_WINDOW))
        frequency = min(1.0, len(times) / 10)

        avg_start = min(max(_round_to_five(avg_start), 0), MINUTES_PER_DAY - 5)
        patterns.append(
            HabitPattern(
                identity=_title(key),
                frequency=len(times),
                avg_start_time=minutes_to_time(avg_start),
                avg_duration=max(5, _round_to_five(float(np.mean(durations[key])))),
                weekday_frequency=np.bincount(weekdays[key], minlength=7).tolist(),
                confidence=time_consistency * 0.4 + recency * 0.3 + frequency * 0.3,
                last_seen=last_seen.isoformat(),
            )
        )

    return sorted(patterns, key=lambda p: p.confidence, reverse=True)


def _slug(identity: str) -> str:
    return "-".join(identity.lower().split())


def suggest_blocks(
    patterns: list[HabitPattern],
    target_date: str,
    existing_blocks: Iterable[TimeBlock] = (),
    events: Iterable[CalendarEvent] = (),
    max_suggestions: int = 5,
    config: EngineConfig = DEFAULT_CONFIG,
) -> PlacementResult:
    """Place suggested blocks for habits usually done on this weekday.

    A habit keeps its usual time when that is free, otherwise it takes the
    first free slot of the search window. Habits with no free slot are returned
    in ``unplaced``; existing blocks and events are never moved.
    """

    weekday = parse_date(target_date).weekday()
    existing = list(existing_blocks)
    busy = [(time_to_minutes(item.start), time_to_minutes(item.end)) for item in [*existing, *events]]
    taken = {block.identity.strip().lower() for block in existing}

    def relevance(pattern: HabitPattern) -> float:
        return pattern.weekday_frequency[weekday] * pattern.confidence

    def is_free(start: int, end: int) -> bool:
        return all(end <= b_start or start >= b_end for b_start, b_end in busy)

    relevant = [
        p
        for p in patterns
        if p.weekday_frequency[weekday] > 0 and p.weekday_frequency[weekday] / max(p.weekday_frequency) >= 0.3
    ]
    relevant.sort(key=relevance, reverse=True)

    result = PlacementResult()
    for pattern in relevant:
        if len(result.suggestions) >= max_suggestions:
            break
        if pattern.identity.lower() in taken:
            continue

        length = pattern.avg_duration
        preferred = time_to_minutes(pattern.avg_start_time)
        if preferred + length <= MINUTES_PER_DAY and is_free(preferred, preferred + length):
            slot = preferred
            reason = f"You've done this {pattern.frequency} times"
        else:
            slot = next(
                (
                    start
                    for start in range(
                        config.slot_search_start_minutes,
                        config.slot_search_end_minutes - length + 1,
                        config.slot_search_step_minutes,
                    )
                    if is_free(start, start + length)
                ),
                None,
            )
            reason = f"Usually at {pattern.avg_start_time}, adjusted for your schedule"

        if slot is None:
            logger.info("no_suitable_slot", identity=pattern.identity, date=target_date, minutes=length)
            result.unplaced.append(pattern)
            continue

        block = TimeBlock(
            id=f"ghost-{_slug(pattern.identity)}-{target_date}",
            identity=pattern.identity,
            start=minutes_to_time(slot),
            end=minutes_to_time(slot + length),
        )
        result.suggestions.append(SuggestedBlock(block=block, pattern=pattern, reason=reason))
        busy.append((slot, slot + length))
        taken.add(pattern.identity.lower())

    return result


def should_suggest(
    commits: Iterable[DayCommit],
    target_date: str,
    existing_blocks: Iterable[TimeBlock] = (),
    now: Optional[datetime] = None,
) -> bool:
    """Suggestions only fill an empty, uncommitted today or tomorrow with enough history."""

    if list(existing_blocks):
        return False

    commits = list(commits)
    current = next((c for c in commits if c.date == target_date), None)
    if current is not None and current.committed:
        return False

    today = resolve_now(now).date()
    if parse_date(target_date) not in (today, today + timedelta(days=1)):
        return False

    return sum(1 for c in commits if c.committed and c.blocks) >= 2

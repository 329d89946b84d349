"""Routine detection over the committed history."""

from __future__ import annotations

import math
import re
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Optional

from commitment_engine.config import DEFAULT_CONFIG, EngineConfig
from commitment_engine.normalize import IdentityNormalizer
from commitment_engine.schema import DayCommit, PromotionProgress, RoutineAnalysis
from commitment_engine.store import is_finalized
from commitment_engine.timeutil import block_has_ended, parse_date, resolve_now, week_start

STATUS_PRIORITY = {"established": 5, "emerging": 4, "almost": 3, "fading": 2, "one-off": 1}

NORTH_STAR_KEYWORDS = (
    "athlete",
    "employee",
    "founder",
    "reader",
    "researcher",
    "writer",
    "learner",
    "parent",
    "partner",
    "friend",
    "creator",
    "developer",
    "designer",
    "entrepreneur",
    "student",
    "teacher",
)

SEMANTIC_MATCHES: dict[str, tuple[str, ...]] = {
    "athlete": ("exercise", "workout", "training", "gym", "running", "fitness"),
    "reader": ("reading", "books", "study"),
    "writer": ("writing", "journal", "blog"),
    "learner": ("study", "learning", "course", "education"),
    "employee": ("work", "deep work", "meeting"),
    "founder": ("work", "startup", "business"),
}

_INTRO = re.compile(r"^(i want to become|becoming|i'm becoming|a person that's)\s*", re.IGNORECASE)
_OUTRO = re.compile(r"\s+(person|individual|someone)$", re.IGNORECASE)


@dataclass
class _IdentityStats:
    occurrences: dict[str, int] = field(default_factory=lambda: defaultdict(int))
    completions: dict[str, int] = field(default_factory=lambda: defaultdict(int))
    total_occurrences: int = 0
    total_completions: int = 0
    variants: list[str] = field(default_factory=list)


def _percent(part: int, whole: int) -> int:
    if not whole:
        return 0
    return int(math.floor(part * 100 / whole + 0.5))


def _counts_toward_stats(commit: DayCommit, block, now: datetime, config: EngineConfig) -> bool:
    # a block still pending must not move the numbers either way
    if is_finalized(commit, now, config):
        return True
    return parse_date(commit.date) == now.date() and block_has_ended(block, now.date(), now)


def _was_established(stats: _IdentityStats, week_keys: list[str], config: EngineConfig) -> bool:
    """Whether the weeks before the last one met the established bar on their own."""

    earlier = week_keys[:-1]
    if not earlier:
        return False
    counts = [stats.occurrences.get(key, 0) for key in earlier]
    done = sum(stats.completions.get(key, 0) for key in earlier)
    return (
        sum(1 for count in counts if count) >= config.established_min_weeks
        and sum(counts) / len(earlier) >= config.established_min_frequency
        and _percent(done, sum(counts)) >= config.established_min_completion
    )


def _classify(
    stats: _IdentityStats,
    week_keys: list[str],
    avg_frequency: float,
    config: EngineConfig,
) -> tuple[str, Optional[PromotionProgress]]:
    last_week = week_keys[-1]
    consistency = len(stats.occurrences)
    completion_rate = _percent(stats.total_completions, stats.total_occurrences)
    last_frequency = stats.occurrences.get(last_week, 0)
    last_completions = stats.completions.get(last_week, 0)
    last_rate = _percent(last_completions, last_frequency)
    habitual = consistency >= config.established_min_weeks and avg_frequency >= config.established_min_frequency

    if habitual and completion_rate >= config.established_min_completion:
        if last_frequency >= config.established_min_frequency:
            return "established", None
        return "fading", None

    if last_frequency < config.established_min_frequency and _was_established(stats, week_keys, config):
        return "fading", None

    if (
        last_frequency >= config.established_min_frequency
        and consistency == 1
        and last_rate >= config.emerging_min_completion
    ):
        return "emerging", None

    if last_frequency == config.almost_frequency:
        needed = config.established_min_frequency - last_frequency
        plural = "s" if needed > 1 else ""
        return "almost", PromotionProgress(needed, f"Commit {needed} more time{plural} this week to make it a routine")

    if (
        last_frequency >= config.established_min_frequency
        and consistency == 1
        and last_rate < config.emerging_min_completion
    ):
        target = math.ceil(round(last_frequency * config.completion_target, 6))
        needed = max(1, target - last_completions)
        plural = "s" if needed > 1 else ""
        target_pct = int(round(config.completion_target * 100))
        return "almost", PromotionProgress(needed, f"Complete {needed} more time{plural} to reach {target_pct}% completion")

    if habitual and last_frequency < config.established_min_frequency:
        return "fading", None

    return "one-off", None


def analyze_routines(
    commits: Iterable[DayCommit],
    weeks: Optional[int] = None,
    routine_names: Optional[Iterable[str]] = None,
    now: Optional[datetime] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> list[RoutineAnalysis]:
    """Classify each canonical identity seen in the last ``weeks`` weeks of commits."""

    now = resolve_now(now)
    weeks = config.routine_weeks if weeks is None else weeks
    normalizer = IdentityNormalizer(routine_names, config.synonyms)
    today = now.date()

    by_week: dict[str, list[DayCommit]] = defaultdict(list)
    for commit in commits:
        if not commit.committed:
            continue
        commit_date = parse_date(commit.date)
        if commit_date > today:
            continue
        by_week[week_start(commit_date).isoformat()].append(commit)

    week_keys = sorted(by_week)[-weeks:] if weeks > 0 else []
    if not week_keys:
        return []

    stats_by_identity: dict[str, _IdentityStats] = {}
    for week_key in week_keys:
        for commit in by_week[week_key]:
            for block in commit.blocks:
                stats = stats_by_identity.setdefault(normalizer.canonical(block.identity), _IdentityStats())
                if block.identity not in stats.variants:
                    stats.variants.append(block.identity)

                if not _counts_toward_stats(commit, block, now, config):
                    continue
                stats.occurrences[week_key] += 1
                stats.total_occurrences += 1
                if block.completed is True:
                    stats.completions[week_key] += 1
                    stats.total_completions += 1

    last_week = week_keys[-1]
    routines: list[RoutineAnalysis] = []
    for identity, stats in stats_by_identity.items():
        if not stats.total_occurrences:
            continue
        avg_frequency = stats.total_occurrences / len(week_keys)
        status, progress = _classify(stats, week_keys, avg_frequency, config)
        routines.append(
            RoutineAnalysis(
                identity=identity,
                original_variants=stats.variants,
                frequency=math.floor(avg_frequency * 10 + 0.5) / 10,
                completion_rate=_percent(stats.total_completions, stats.total_occurrences),
                consistency=len(stats.occurrences),
                weeks=[key for key in week_keys if key in stats.occurrences],
                total_occurrences=stats.total_occurrences,
                total_completions=stats.total_completions,
                status=status,
                last_week_frequency=stats.occurrences.get(last_week, 0),
                last_week_completions=stats.completions.get(last_week, 0),
                promotion_progress=progress,
            )
        )

    return sorted(routines, key=lambda r: (-STATUS_PRIORITY[r.status], -r.total_occurrences))


def extract_north_star_identities(north_star: Optional[str]) -> list[str]:
    """Pull identity keywords out of a free-text "who I want to become" statement."""

    if not north_star:
        return []
    text = north_star.lower()

    identities = [keyword for keyword in NORTH_STAR_KEYWORDS if keyword in text]
    if not identities:
        for part in text.split(","):
            cleaned = _OUTRO.sub("", _INTRO.sub("", part.strip())).strip()
            if 3 < len(cleaned) < 50:
                identities.append(cleaned)

    return list(dict.fromkeys(identities))


def north_star_alignment(activity: str, north_star_identities: Iterable[str]) -> list[str]:
    """North-star identities served by an activity label."""

    activity = activity.lower()
    aligned: list[str] = []
    for identity in north_star_identities:
        lowered = identity.lower()
        if activity in lowered or lowered in activity:
            aligned.append(identity)
            continue
        for key, matches in SEMANTIC_MATCHES.items():
            if key in lowered and any(match in activity for match in matches):
                aligned.append(identity)
                break
    return list(dict.fromkeys(aligned))


def identity_progress(
    routines: list[RoutineAnalysis],
    north_star_identities: list[str],
    commits: Iterable[DayCommit],
    now: Optional[datetime] = None,
    max_routine_score: float = 20.0,
) -> list[dict]:
    """Score 0-100 per north-star identity from aligned routines and recent actions."""

    if not north_star_identities:
        return []
    now = resolve_now(now)
    week_ago = now.date() - timedelta(days=7)
    committed = [c for c in commits if c.committed]

    progress = []
    for identity in north_star_identities:
        aligned = [r for r in routines if identity in north_star_alignment(r.identity, [identity])]
        for routine in aligned:
            if identity not in routine.north_star_alignment:
                routine.north_star_alignment.append(identity)

        total_actions = 0
        recent = 0
        for commit in committed:
            recent_day = parse_date(commit.date) >= week_ago
            for block in commit.blocks:
                if identity in north_star_alignment(block.identity, [identity]):
                    total_actions += 1
                    recent += 1 if recent_day else 0

        routine_score = sum(r.frequency * r.consistency for r in aligned)
        score = min(100, int(round(routine_score / max_routine_score * 100)))
        progress.append(
            {
                "identity": identity,
                "score": max(score, min(100, recent * 10)),
                "total_actions": total_actions,
                "routines": [r.identity for r in aligned],
                "recent_activity": recent,
            }
        )
    return progress

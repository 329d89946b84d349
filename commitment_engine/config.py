"""Named thresholds used across the engine, overridable from YAML."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import yaml

DEFAULT_SYNONYMS: dict[str, str] = {
    "workout": "exercise",
    "gym": "exercise",
    "training": "exercise",
    "fitness": "exercise",
    "work out": "exercise",
    "morning routine": "morning routine",
    "morning workout": "morning routine",
    "morning exercise": "morning routine",
    "deep work": "deep work",
    "focused work": "deep work",
    "work session": "deep work",
    "reading": "reading",
    "read": "reading",
    "book reading": "reading",
    "writing": "writing",
    "write": "writing",
    "journaling": "writing",
    "journal": "writing",
    "study": "study",
    "studying": "study",
    "learning": "study",
    "course": "study",
}


@dataclass(frozen=True)
class EngineConfig:
    """Judgment-call constants kept in one place.

    The defaults reproduce the behaviour users already know; none of them is
    derived from data, so they are exposed rather than re-tuned.
    """

    # conflicts
    overlap_critical_minutes: int = 30
    back_to_back_gap_minutes: int = 5
    usable_day_minutes: int = 17 * 60
    day_start_minutes: int = 6 * 60
    day_end_minutes: int = 23 * 60
    move_buffer_minutes: int = 10
    buffer_shrink_minutes: int = 5
    split_min_minutes: int = 15
    split_gap_minutes: int = 5
    max_overbooked_suggestions: int = 3

    # finalization
    finalize_grace_minutes: int = 0

    # routines
    routine_weeks: int = 4
    established_min_weeks: int = 2
    established_min_frequency: int = 3
    established_min_completion: int = 70
    emerging_min_completion: int = 50
    almost_frequency: int = 2
    completion_target: float = 0.7

    # suggestions
    slot_search_start_minutes: int = 6 * 60
    slot_search_end_minutes: int = 22 * 60
    slot_search_step_minutes: int = 30

    # derivatives
    heatmap_days: int = 84
    focus_block_minutes: int = 90
    focus_target_minutes: int = 180
    balance_target_identities: int = 4
    transition_gap_minutes: int = 15
    transition_penalty: int = 15

    synonyms: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_SYNONYMS))


DEFAULT_CONFIG = EngineConfig()


def config_from_mapping(values: dict[str, Any], base: EngineConfig = DEFAULT_CONFIG) -> EngineConfig:
    """Overlay a mapping onto ``base``; ``synonyms`` extends rather than replaces."""

    known = {f.name for f in fields(EngineConfig)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ValueError(f"Unknown config keys {unknown}")

    overrides = dict(values)
    if "synonyms" in overrides:
        extra = overrides["synonyms"] or {}
        if not isinstance(extra, dict):
            raise ValueError("synonyms must be a mapping of variant -> canonical name")
        merged = dict(base.synonyms)
        merged.update({str(k).strip().lower(): str(v).strip().lower() for k, v in extra.items()})
        overrides["synonyms"] = merged
    return replace(base, **overrides)


def load_config(path: str | Path) -> EngineConfig:
    """Read an engine config YAML file."""

    with open(path, encoding="utf-8") as handle:
        payload = yaml.safe_load(handle) or {}
    if not isinstance(payload, dict):
        raise ValueError("Config file must contain a mapping")
    return config_from_mapping(payload)

"""Core data schema for committed schedules and derived analytics."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

SEVERITY_ORDER = {"critical": 0, "warning": 1, "info": 2}
CONFLICT_TYPES = ("overlap", "insufficient-time", "back-to-back", "overbooked")
RESOLUTION_ACTIONS = ("move", "shrink", "merge", "split", "remove")
ROUTINE_STATUSES = ("established", "emerging", "almost", "fading", "one-off")
SYNC_OPS = ("insert", "update", "delete")


@dataclass(frozen=True)
class TimeBlock:
    """A labelled time interval inside one day."""

    id: str
    identity: str
    start: str
    end: str
    optional: bool = False
    completed: Optional[bool] = None


@dataclass(frozen=True)
class DayCommit:
    """The plan locked in for a single date."""

    date: str
    blocks: tuple[TimeBlock, ...]
    committed_at: datetime
    committed: bool = True
    finalized_at: Optional[datetime] = None

    def block(self, block_id: str) -> Optional[TimeBlock]:
        return next((b for b in self.blocks if b.id == block_id), None)


@dataclass(frozen=True)
class CalendarEvent:
    """Externally imported calendar event, never modified here."""

    id: str
    title: str
    start: str
    end: str
    account_color: Optional[str] = None


@dataclass(frozen=True)
class BlockSpan:
    block_id: str
    start: Optional[str]
    end: Optional[str]


@dataclass(frozen=True)
class ConflictResolution:
    id: str
    action: str
    description: str
    before: BlockSpan
    after: BlockSpan


@dataclass(frozen=True)
class Conflict:
    id: str
    type: str
    severity: str
    description: str
    blocks: tuple[TimeBlock, ...]
    events: tuple[CalendarEvent, ...]
    suggested_resolutions: tuple[ConflictResolution, ...]


@dataclass(frozen=True)
class PromotionProgress:
    needed: int
    message: str


@dataclass
class RoutineAnalysis:
    """Trend classification for one canonical identity."""

    identity: str
    original_variants: list[str]
    frequency: float
    completion_rate: int
    consistency: int
    weeks: list[str]
    total_occurrences: int
    total_completions: int
    status: str
    last_week_frequency: int
    last_week_completions: int
    promotion_progress: Optional[PromotionProgress] = None
    north_star_alignment: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class SyncRequest:
    """Remote sync call requested by a store transition."""

    commit: DayCommit
    op: str


@dataclass(frozen=True)
class Transition:
    """New store state plus the side effects it requests."""

    commits: tuple[DayCommit, ...]
    sync: tuple[SyncRequest, ...] = ()

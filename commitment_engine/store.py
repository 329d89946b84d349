"""Day commitment state machine.

Each date moves through ``absent -> draft -> committed -> finalized``. The
transition functions below are pure: they take the current tuple of commits and
return a :class:`Transition` carrying the new tuple plus the sync requests the
caller should fire. :class:`CommitmentStore` wraps them with local persistence
and fire-and-forget remote sync.

A finalized day can never be re-committed, cleared or have its completion
answers edited, so adherence history cannot be rewritten after the fact.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional, Protocol

from commitment_engine.config import DEFAULT_CONFIG, EngineConfig
from commitment_engine.errors import (
    FinalizedCommitError,
    InvalidBlockError,
    UnknownBlockError,
    UnknownCommitError,
)
from commitment_engine.logging_config import get_logger
from commitment_engine.schema import DayCommit, SyncRequest, TimeBlock, Transition
from commitment_engine.sync import SyncSink, dispatch
from commitment_engine.timeutil import (
    minute_of_day,
    parse_date,
    resolve_now,
    time_to_minutes,
    validate_block,
)

logger = get_logger(__name__)


class Persistence(Protocol):
    def load(self) -> list[DayCommit]: ...

    def save(self, commits: list[DayCommit]) -> None: ...


def is_finalized(commit: DayCommit, now: Optional[datetime] = None, config: EngineConfig = DEFAULT_CONFIG) -> bool:
    """Whether ``commit`` is permanently locked as of ``now``.

    Locked when already stamped, when its date is in the past, or when it is
    today's commit and every block has ended. Does not mutate anything.
    """

    if commit.finalized_at is not None:
        return True

    now = resolve_now(now)
    commit_date = parse_date(commit.date)
    today = now.date()
    if commit_date < today:
        return True
    if commit_date > today or not commit.blocks:
        return False

    current = minute_of_day(now)
    return all(time_to_minutes(b.end) + config.finalize_grace_minutes <= current for b in commit.blocks)


def get_commit(commits: Iterable[DayCommit], date: str) -> Optional[DayCommit]:
    return next((c for c in commits if c.date == date), None)


def _stamp_if_due(commit: DayCommit, now: datetime, config: EngineConfig) -> DayCommit:
    if commit.finalized_at is None and is_finalized(commit, now, config):
        return replace(commit, finalized_at=now)
    return commit


def _replace_in(commits: tuple[DayCommit, ...], updated: DayCommit) -> tuple[DayCommit, ...]:
    return tuple(updated if c.date == updated.date else c for c in commits)


def _reject_if_finalized(existing: Optional[DayCommit], now: datetime, config: EngineConfig, action: str) -> None:
    if existing is not None and is_finalized(existing, now, config):
        logger.warning("finalized_commit_rejected", date=existing.date, action=action)
        raise FinalizedCommitError(existing.date, action)


def _validate_blocks(blocks: tuple[TimeBlock, ...], require_blocks: bool) -> None:
    if require_blocks and not blocks:
        raise InvalidBlockError("add some blocks before committing")
    seen: set[str] = set()
    for block in blocks:
        validate_block(block)
        if block.id in seen:
            raise InvalidBlockError(f"duplicate block id {block.id!r}")
        seen.add(block.id)


def commit(
    commits: Iterable[DayCommit],
    blocks: Iterable[TimeBlock],
    date: str,
    now: Optional[datetime] = None,
    committed: bool = True,
    config: EngineConfig = DEFAULT_CONFIG,
) -> Transition:
    """Create or replace the record for ``date`` (last write wins)."""

    now = resolve_now(now)
    state = tuple(commits)
    commit_date = parse_date(date)
    blocks = tuple(blocks)
    _validate_blocks(blocks, require_blocks=committed)

    existing = get_commit(state, date)
    _reject_if_finalized(existing, now, config, "re-commit" if existing and existing.committed else "commit")

    if commit_date > now.date():
        # nothing has happened yet on a future day
        blocks = tuple(replace(b, completed=None) if b.completed is not None else b for b in blocks)

    record = _stamp_if_due(
        DayCommit(date=date, blocks=blocks, committed_at=now, committed=committed),
        now,
        config,
    )

    if existing is None:
        new_state = (record, *state)
        op = "insert"
    else:
        new_state = _replace_in(state, record)
        op = "update"

    logger.info(
        "day_committed",
        date=date,
        blocks=len(blocks),
        draft=not committed,
        finalized=record.finalized_at is not None,
    )
    return Transition(commits=new_state, sync=(SyncRequest(record, op),))


def set_completion(
    commits: Iterable[DayCommit],
    block_id: str,
    date: str,
    value: bool,
    now: Optional[datetime] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> Transition:
    """Record whether a block was completed; the only edit allowed after commit."""

    now = resolve_now(now)
    state = tuple(commits)
    existing = get_commit(state, date)
    if existing is None:
        raise UnknownCommitError(f"no commit for {date}")
    _reject_if_finalized(existing, now, config, "edit completion of")

    block = existing.block(block_id)
    if block is None:
        raise UnknownBlockError(f"no block {block_id!r} in commit {date}")
    value = bool(value)
    if block.completed is value:
        return Transition(commits=state)

    updated = replace(
        existing,
        blocks=tuple(replace(b, completed=value) if b.id == block_id else b for b in existing.blocks),
    )
    logger.info("block_completion_set", date=date, block_id=block_id, completed=value)
    return Transition(commits=_replace_in(state, updated), sync=(SyncRequest(updated, "update"),))


def clear(
    commits: Iterable[DayCommit],
    date: str,
    now: Optional[datetime] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> Transition:
    """Delete a non-finalized record; clearing an absent date is a no-op."""

    now = resolve_now(now)
    state = tuple(commits)
    existing = get_commit(state, date)
    if existing is None:
        return Transition(commits=state)
    _reject_if_finalized(existing, now, config, "uncommit")

    logger.info("day_cleared", date=date)
    return Transition(
        commits=tuple(c for c in state if c.date != date),
        sync=(SyncRequest(existing, "delete"),),
    )


def finalize_due(
    commits: Iterable[DayCommit],
    now: Optional[datetime] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> Transition:
    """Stamp ``finalized_at`` on every record that has become locked."""

    now = resolve_now(now)
    new_state: list[DayCommit] = []
    requests: list[SyncRequest] = []
    for record in commits:
        stamped = _stamp_if_due(record, now, config)
        if stamped is not record:
            requests.append(SyncRequest(stamped, "update"))
        new_state.append(stamped)
    if requests:
        logger.info("days_finalized", dates=[r.commit.date for r in requests])
    return Transition(commits=tuple(new_state), sync=tuple(requests))


def effective_commit_date(now: Optional[datetime] = None, cutoff: str = "22:00") -> str:
    """The date a new commit targets: tomorrow once the evening cutoff has passed."""

    now = resolve_now(now)
    if minute_of_day(now) >= time_to_minutes(cutoff):
        return (now.date() + timedelta(days=1)).isoformat()
    return now.date().isoformat()


def commit_window_open(date: str, has_commit: bool, now: Optional[datetime] = None, cutoff: str = "22:00") -> bool:
    """Whether the UI should offer committing ``date``.

    Today stays open until committed; tomorrow opens at the cutoff; later days
    open once their previous day has arrived; past days are closed.
    """

    if has_commit:
        return False

    now = resolve_now(now)
    target = parse_date(date)
    today = now.date()
    if target < today:
        return False
    if target == today:
        return True

    day_before = target - timedelta(days=1)
    if day_before == today:
        return minute_of_day(now) >= time_to_minutes(cutoff)
    return day_before < today


class CommitmentStore:
    """Local-first holder of the commit collection.

    Every mutation applies a pure transition, saves through the persistence
    collaborator, then hands sync requests to the remote sink. A rejected
    transition or a failed local save leaves the held state unchanged; a failed
    remote sync never does.
    """

    def __init__(
        self,
        persistence: Optional[Persistence] = None,
        sync_sink: Optional[SyncSink] = None,
        config: EngineConfig = DEFAULT_CONFIG,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.persistence = persistence
        self.sync_sink = sync_sink
        self.config = config
        self.clock = clock
        self.commits: tuple[DayCommit, ...] = tuple(persistence.load()) if persistence else ()
        self.failed_sync: list[SyncRequest] = []

    def _apply(self, transition: Transition) -> Transition:
        if transition.commits != self.commits and self.persistence is not None:
            self.persistence.save(list(transition.commits))
        self.commits = transition.commits
        self.failed_sync.extend(dispatch(transition.sync, self.sync_sink))
        return transition

    def get(self, date: str) -> Optional[DayCommit]:
        return get_commit(self.commits, date)

    def today(self) -> Optional[DayCommit]:
        return self.get(self.clock().date().isoformat())

    def is_finalized(self, date: str) -> bool:
        record = self.get(date)
        return record is not None and is_finalized(record, self.clock(), self.config)

    def commit(self, blocks: Iterable[TimeBlock], date: Optional[str] = None, committed: bool = True) -> DayCommit:
        now = self.clock()
        date = date or now.date().isoformat()
        self._apply(commit(self.commits, blocks, date, now=now, committed=committed, config=self.config))
        return self.get(date)

    def set_completion(self, block_id: str, date: str, value: bool) -> DayCommit:
        self._apply(set_completion(self.commits, block_id, date, value, now=self.clock(), config=self.config))
        return self.get(date)

    def clear(self, date: str) -> None:
        self._apply(clear(self.commits, date, now=self.clock(), config=self.config))

    def finalize_due(self) -> list[DayCommit]:
        transition = self._apply(finalize_due(self.commits, now=self.clock(), config=self.config))
        return [request.commit for request in transition.sync]

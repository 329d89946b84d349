"""Conflict detection between identity blocks and calendar events."""

from __future__ import annotations

from dataclasses import replace
from typing import Iterable

from commitment_engine.config import DEFAULT_CONFIG, EngineConfig
from commitment_engine.schema import (
    SEVERITY_ORDER,
    BlockSpan,
    CalendarEvent,
    Conflict,
    ConflictResolution,
    TimeBlock,
)
from commitment_engine.timeutil import MINUTES_PER_DAY, minutes_to_time, overlap_minutes, time_to_minutes


def _bounds(item) -> tuple[int, int]:
    return time_to_minutes(item.start), time_to_minutes(item.end)


def _span(block: TimeBlock) -> BlockSpan:
    return BlockSpan(block.id, block.start, block.end)


def _resolution(res_id: str, action: str, description: str, block: TimeBlock, start, end) -> ConflictResolution:
    after_start = minutes_to_time(start) if isinstance(start, int) else start
    after_end = minutes_to_time(end) if isinstance(end, int) else end
    return ConflictResolution(
        id=res_id,
        action=action,
        description=description,
        before=_span(block),
        after=BlockSpan(block.id, after_start, after_end),
    )


def _block_overlap_resolutions(first: TimeBlock, second: TimeBlock) -> list[ConflictResolution]:
    s1, e1 = _bounds(first)
    s2, e2 = _bounds(second)
    resolutions = []

    if e1 + (e2 - s2) <= MINUTES_PER_DAY:
        resolutions.append(
            _resolution(
                "move-block2-after",
                "move",
                f'Move "{second.identity}" to start after "{first.identity}"',
                second,
                e1,
                e1 + (e2 - s2),
            )
        )

    if s2 > s1:
        resolutions.append(
            _resolution(
                "shrink-block1",
                "shrink",
                f'Shorten "{first.identity}" to end at {second.start}',
                first,
                s1,
                s2,
            )
        )

    if first.identity.strip().lower() == second.identity.strip().lower():
        resolutions.append(
            _resolution(
                "merge-blocks",
                "merge",
                f'Merge both "{first.identity}" blocks into one',
                first,
                min(s1, s2),
                max(e1, e2),
            )
        )

    return resolutions


def _event_resolutions(block: TimeBlock, event: CalendarEvent, config: EngineConfig) -> list[ConflictResolution]:
    block_start, block_end = _bounds(block)
    event_start, event_end = _bounds(event)
    length = block_end - block_start
    buffer = config.move_buffer_minutes
    resolutions = []

    # the moved block must not start before the usable day begins
    moved_start = event_start - buffer - length
    if moved_start >= config.day_start_minutes:
        resolutions.append(
            _resolution(
                "move-before-event",
                "move",
                f'Move "{block.identity}" to before "{event.title}"',
                block,
                moved_start,
                moved_start + length,
            )
        )

    if event_end + length <= config.day_end_minutes:
        # buffer shrinks near the ceiling so the block still ends by day end
        moved_start = min(event_end + buffer, config.day_end_minutes - length)
        resolutions.append(
            _resolution(
                "move-after-event",
                "move",
                f'Move "{block.identity}" to after "{event.title}"',
                block,
                moved_start,
                moved_start + length,
            )
        )

    before = event_start - block_start
    after = block_end - event_end
    gap = config.split_gap_minutes
    if before >= config.split_min_minutes:
        resolutions.append(
            _resolution(
                "split-around-event",
                "split",
                f'Keep the part of "{block.identity}" before "{event.title}"',
                block,
                block_start,
                event_start - gap,
            )
        )
    elif after >= config.split_min_minutes:
        resolutions.append(
            _resolution(
                "split-around-event",
                "split",
                f'Keep the part of "{block.identity}" after "{event.title}"',
                block,
                event_end + gap,
                block_end,
            )
        )

    resolutions.append(
        _resolution(
            "remove-block",
            "remove",
            f'Remove "{block.identity}" (calendar event takes priority)',
            block,
            None,
            None,
        )
    )
    return resolutions


def _buffer_resolutions(prev: TimeBlock, curr: TimeBlock, config: EngineConfig) -> list[ConflictResolution]:
    prev_start, prev_end = _bounds(prev)
    curr_start, curr_end = _bounds(curr)
    length = curr_end - curr_start
    buffer = config.move_buffer_minutes
    shrink = config.buffer_shrink_minutes
    resolutions = []

    if prev_end + buffer + length <= MINUTES_PER_DAY:
        resolutions.append(
            _resolution(
                f"add-{buffer}min-buffer",
                "move",
                f"Add {buffer}-minute buffer by moving the second block",
                curr,
                prev_end + buffer,
                prev_end + buffer + length,
            )
        )
    if prev_end - shrink > prev_start:
        resolutions.append(
            _resolution(
                f"shrink-prev-{shrink}min",
                "shrink",
                f"Shorten the first block by {shrink} minutes",
                prev,
                prev_start,
                prev_end - shrink,
            )
        )
    return resolutions


def _overbooked_resolutions(blocks: list[TimeBlock], config: EngineConfig) -> list[ConflictResolution]:
    optional = [b for b in blocks if b.optional]
    candidates = optional or blocks
    ranked = sorted(candidates, key=lambda b: -(_bounds(b)[1] - _bounds(b)[0]))
    return [
        _resolution(
            f"reduce-{block.id}",
            "remove",
            f'Remove "{block.identity}" to free {(_bounds(block)[1] - _bounds(block)[0])} minutes',
            block,
            None,
            None,
        )
        for block in ranked[: config.max_overbooked_suggestions]
    ]


def detect_conflicts(
    blocks: Iterable[TimeBlock],
    events: Iterable[CalendarEvent] = (),
    config: EngineConfig = DEFAULT_CONFIG,
) -> list[Conflict]:
    """Detect overlap, back-to-back and overbooking problems in one day."""

    sorted_blocks = sorted(blocks, key=lambda b: time_to_minutes(b.start))
    sorted_events = sorted(events, key=lambda e: time_to_minutes(e.start))
    conflicts: list[Conflict] = []

    for i, first in enumerate(sorted_blocks):
        for second in sorted_blocks[i + 1 :]:
            minutes = overlap_minutes(*_bounds(first), *_bounds(second))
            if minutes <= 0:
                continue
            conflicts.append(
                Conflict(
                    id=f"overlap-{first.id}-{second.id}",
                    type="overlap",
                    severity="critical" if minutes > config.overlap_critical_minutes else "warning",
                    description=f'"{first.identity}" and "{second.identity}" overlap by {minutes} minutes',
                    blocks=(first, second),
                    events=(),
                    suggested_resolutions=tuple(_block_overlap_resolutions(first, second)),
                )
            )

    for block in sorted_blocks:
        for event in sorted_events:
            minutes = overlap_minutes(*_bounds(block), *_bounds(event))
            if minutes <= 0:
                continue
            conflicts.append(
                Conflict(
                    id=f"event-conflict-{block.id}-{event.id}",
                    type="overlap",
                    severity="critical",
                    description=(
                        f'"{block.identity}" conflicts with calendar event "{event.title}" for {minutes} minutes'
                    ),
                    blocks=(block,),
                    events=(event,),
                    suggested_resolutions=tuple(_event_resolutions(block, event, config)),
                )
            )

    for prev, curr in zip(sorted_blocks, sorted_blocks[1:]):
        gap = time_to_minutes(curr.start) - time_to_minutes(prev.end)
        if 0 <= gap < config.back_to_back_gap_minutes:
            conflicts.append(
                Conflict(
                    id=f"back-to-back-{prev.id}-{curr.id}",
                    type="back-to-back",
                    severity="info",
                    description=f'No break between "{prev.identity}" and "{curr.identity}"',
                    blocks=(prev, curr),
                    events=(),
                    suggested_resolutions=tuple(_buffer_resolutions(prev, curr, config)),
                )
            )

    booked = sum(end - start for start, end in map(_bounds, [*sorted_blocks, *sorted_events]))
    if booked > config.usable_day_minutes:
        excess_hours = round((booked - config.usable_day_minutes) / 60, 1)
        conflicts.append(
            Conflict(
                id="overbooked-day",
                type="overbooked",
                severity="warning",
                description=f"Day is overbooked by {excess_hours} hours",
                blocks=tuple(sorted_blocks),
                events=tuple(sorted_events),
                suggested_resolutions=tuple(_overbooked_resolutions(sorted_blocks, config)),
            )
        )

    return sorted(conflicts, key=lambda c: SEVERITY_ORDER[c.severity])


def apply_resolution(blocks: Iterable[TimeBlock], resolution: ConflictResolution) -> list[TimeBlock]:
    """Return a new block list with ``resolution`` applied; other blocks are untouched."""

    target = resolution.before.block_id
    if resolution.action == "remove":
        return [b for b in blocks if b.id != target]

    return [
        replace(b, start=resolution.after.start or b.start, end=resolution.after.end or b.end) if b.id == target else b
        for b in blocks
    ]


def conflict_summary(conflicts: list[Conflict]) -> dict:
    """Count conflicts per severity with a one-line headline."""

    critical = sum(1 for c in conflicts if c.severity == "critical")
    warnings = sum(1 for c in conflicts if c.severity == "warning")
    info = sum(1 for c in conflicts if c.severity == "info")

    def plural(count: int, word: str) -> str:
        return f"{count} {word}{'s' if count > 1 else ''}"

    if critical:
        message = f"{plural(critical, 'critical conflict')} need attention"
    elif warnings:
        message = f"{plural(warnings, 'warning')} to review"
    elif info:
        message = f"{plural(info, 'suggestion')} to optimize"
    else:
        message = "No conflicts detected"

    return {"critical": critical, "warnings": warnings, "info": info, "message": message}

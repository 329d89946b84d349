from datetime import date, datetime

import pytest

from commitment_engine.errors import InvalidBlockError, InvalidTimeError
from commitment_engine.schema import TimeBlock
from commitment_engine.timeutil import (
    block_has_ended,
    minutes_to_time,
    overlap_minutes,
    span_overlap,
    time_to_minutes,
    validate_block,
    week_start,
)


def test_time_conversion():
    assert time_to_minutes("00:00") == 0
    assert time_to_minutes("09:30") == 570
    assert time_to_minutes("7:05") == 425
    assert time_to_minutes("24:00") == 1440
    assert minutes_to_time(570) == "09:30"
    assert minutes_to_time(1440) == "24:00"


def test_malformed_times_rejected():
    for value in ("24:30", "25:00", "10:60", "ten", "", None, "10-30"):
        with pytest.raises(InvalidTimeError):
            time_to_minutes(value)
    with pytest.raises(InvalidTimeError):
        minutes_to_time(-5)


def test_overlap_is_symmetric_and_self_overlap_is_duration():
    spans = [(540, 600), (570, 630), (600, 660), (0, 1440), (615, 620)]
    for a in spans:
        assert overlap_minutes(*a, *a) == a[1] - a[0]
        for b in spans:
            assert overlap_minutes(*a, *b) == overlap_minutes(*b, *a)
    assert overlap_minutes(540, 600, 600, 660) == 0


def test_span_overlap_on_blocks():
    a = TimeBlock("a", "Deep Work", "09:00", "10:00")
    b = TimeBlock("b", "Standup", "09:30", "10:30")
    assert span_overlap(a, b) == 30
    assert span_overlap(b, a) == 30


def test_validate_block():
    validate_block(TimeBlock("a", "Deep Work", "09:00", "10:00"))
    with pytest.raises(InvalidBlockError):
        validate_block(TimeBlock("a", "Deep Work", "10:00", "10:00"))
    with pytest.raises(InvalidBlockError):
        validate_block(TimeBlock("a", "Deep Work", "11:00", "10:00"))
    with pytest.raises(InvalidBlockError):
        validate_block(TimeBlock("a", "Deep Work", "09:00", "10:75"))
    with pytest.raises(InvalidBlockError):
        validate_block(TimeBlock("a", "  ", "09:00", "10:00"))


def test_week_start_is_monday():
    assert week_start(date(2025, 3, 12)) == date(2025, 3, 10)
    assert week_start(date(2025, 3, 16)) == date(2025, 3, 10)
    assert week_start(date(2025, 3, 10)) == date(2025, 3, 10)


def test_block_has_ended():
    block = TimeBlock("a", "Deep Work", "09:00", "10:00")
    today = date(2025, 3, 12)
    assert not block_has_ended(block, today, datetime(2025, 3, 12, 9, 59, 59))
    assert block_has_ended(block, today, datetime(2025, 3, 12, 10, 0))
    assert block_has_ended(block, date(2025, 3, 11), datetime(2025, 3, 12, 0, 1))
    assert not block_has_ended(block, date(2025, 3, 13), datetime(2025, 3, 12, 23, 0))

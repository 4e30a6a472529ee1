from datetime import datetime, timedelta, timezone

import pytest

from pialert_relay.history import PollHistory
from pialert_relay.models import OutcomeKind, PollRecord


def make_record(i, **kwargs):
    return PollRecord(kind=OutcomeKind.API_ERROR, detail=f"record {i}", **kwargs)


def test_append_newest_first():
    history = PollHistory(capacity=5)
    for i in range(3):
        history.append(make_record(i))
    assert [r.detail for r in history.snapshot()] == ["record 2", "record 1", "record 0"]
    assert len(history) == 3


def test_capacity_evicts_oldest():
    history = PollHistory(capacity=4)
    for i in range(10):
        history.append(make_record(i))
    snap = history.snapshot()
    assert len(snap) == 4
    assert [r.detail for r in snap] == ["record 9", "record 8", "record 7", "record 6"]


def test_order_ignores_timestamps():
    """A record with an earlier timestamp appended later is still newest."""
    history = PollHistory(capacity=3)
    now = datetime.now(timezone.utc)
    history.append(make_record("late", timestamp=now))
    history.append(make_record("skewed", timestamp=now - timedelta(hours=1)))
    assert history.snapshot()[0].detail == "record skewed"


def test_snapshot_is_a_copy():
    history = PollHistory(capacity=3)
    history.append(make_record(1))
    snap = history.snapshot()
    snap.clear()
    assert len(history) == 1


def test_default_capacity():
    assert PollHistory().capacity == 50


@pytest.mark.parametrize("capacity", [0, -1])
def test_invalid_capacity(capacity):
    with pytest.raises(ValueError):
        PollHistory(capacity=capacity)

"""Unit tests for readiness tracking"""
import pytest
from benor.communication.readiness import ReadinessTracker, mark_ready_when_live, wait_until_ready


def test_tracker_all_ready():
    tracker = ReadinessTracker(3)
    tracker.mark_ready(0)
    tracker.mark_ready(0)
    tracker.mark_ready(2)
    assert not tracker.all_ready()
    assert tracker.ready_nodes() == {0, 2}

    tracker.mark_ready(1)
    assert tracker.all_ready()
    assert tracker.ready_nodes() == {0, 1, 2}


@pytest.mark.asyncio
async def test_wait_until_ready_gives_up_when_told():
    assert await wait_until_ready(lambda: False, 0.001, should_continue=lambda: False) is False
    assert await wait_until_ready(lambda: True, 0.001) is True


@pytest.mark.asyncio
async def test_mark_ready_when_live():
    tracker = ReadinessTracker(3)
    tracker.mark_ready(0)
    attempts = {1: 0, 2: 0}

    async def is_live(peer_id):
        attempts[peer_id] += 1
        return peer_id == 1 or attempts[peer_id] >= 3

    await mark_ready_when_live(tracker, is_live, [1, 2], 0.001)

    assert tracker.all_ready()
    assert attempts == {1: 1, 2: 3}

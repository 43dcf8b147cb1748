"""
Publish Scheduler Tests
=======================
"""

import asyncio

import pytest

from crop_relay.relay.request_state import RequestState
from crop_relay.relay.scheduler import AsyncioTimer, PublishScheduler
from crop_relay.models.request import DownsampleRequest, RequestMode


class TestPublishScheduler:
    """Tests for timer ownership and rate capping."""

    def test_effective_frequency(self):
        scheduler = PublishScheduler(max_frequency=5.0)

        assert scheduler.effective_frequency(10.0) == 5.0
        assert scheduler.effective_frequency(2.0) == 2.0
        assert scheduler.effective_frequency(0.0) == 0.0

    def test_arm_replaces_previous_timer(self, timer_factory):
        """At most one timer is live at a time."""
        scheduler = PublishScheduler(max_frequency=100.0, timer_factory=timer_factory)

        scheduler.arm(1.0, lambda: None)
        scheduler.arm(4.0, lambda: None)

        assert len(timer_factory.live) == 1
        assert timer_factory.live[0].period == pytest.approx(0.25)
        assert scheduler.timers_armed == 2

    def test_arm_zero_cancels_and_returns_none(self, timer_factory):
        scheduler = PublishScheduler(max_frequency=100.0, timer_factory=timer_factory)

        scheduler.arm(1.0, lambda: None)
        assert scheduler.arm(0.0, lambda: None) is None

        assert timer_factory.live == []
        assert not scheduler.active
        assert scheduler.frequency is None

    def test_cancel_idempotent(self, timer_factory):
        scheduler = PublishScheduler(timer_factory=timer_factory)
        scheduler.cancel()
        scheduler.arm(1.0, lambda: None)
        scheduler.cancel()
        scheduler.cancel()

        assert not scheduler.active


class TestAsyncioTimer:
    """Tests for the event-loop timer."""

    def test_fires_until_cancelled(self):
        async def scenario():
            ticks = []
            timer = AsyncioTimer(0.01, lambda: ticks.append(1))
            await asyncio.sleep(0.08)
            timer.cancel()
            fired = len(ticks)
            await asyncio.sleep(0.05)
            return fired, len(ticks)

        fired, total = asyncio.run(scenario())

        assert fired >= 2
        assert total == fired

    def test_rejects_non_positive_period(self):
        async def scenario():
            AsyncioTimer(0.0, lambda: None)

        with pytest.raises(ValueError):
            asyncio.run(scenario())


class TestRequestState:
    """Tests for the versioned request cell."""

    def test_empty_until_first_request(self):
        state = RequestState()

        assert state.current() is None
        assert state.generation == 0

    def test_replace_bumps_generation(self):
        state = RequestState()

        first = state.replace(DownsampleRequest(mode="PERIODIC"))
        second = state.replace(DownsampleRequest(mode="PERIODIC"))

        assert (first.generation, second.generation) == (1, 2)
        assert state.is_current(2, RequestMode.PERIODIC)
        assert not state.is_current(1, RequestMode.PERIODIC)
        assert not state.is_current(2, RequestMode.ALL)

    def test_crop_config_derived(self):
        state = RequestState()
        active = state.replace(
            DownsampleRequest(
                binning_x=3,
                binning_y=2,
                roi={"x_offset": 4, "y_offset": 5, "width": 6, "height": 7},
            )
        )

        config = active.crop_config
        assert (config.decimation_x, config.decimation_y) == (3, 2)
        assert (config.x_offset, config.y_offset, config.width, config.height) == (4, 5, 6, 7)

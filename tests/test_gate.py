"""
Subscription Gate Tests
=======================
"""

import asyncio
import threading
import time

from crop_relay.relay.gate import SubscriptionGate
from crop_relay.stream import FrameConsumer, OutputPublisher


class CountingSubscription:
    """Records open/close calls and tracks how many are open."""

    def __init__(self):
        self.opens = 0
        self.closes = 0
        self.open_now = 0

    def open(self):
        self.opens += 1
        self.open_now += 1

    def close(self):
        self.closes += 1
        self.open_now -= 1


class TestSubscriptionGate:
    """Tests for consumer-count driven subscription."""

    def test_starts_closed(self):
        sub = CountingSubscription()
        gate = SubscriptionGate(sub.open, sub.close)

        assert not gate.is_open
        assert sub.opens == 0

    def test_open_and_close_once(self):
        """0->1 opens once, 1->0 closes once."""
        sub = CountingSubscription()
        gate = SubscriptionGate(sub.open, sub.close)

        gate.on_consumer_count_changed(1)
        assert gate.is_open
        assert sub.opens == 1

        gate.on_consumer_count_changed(0)
        assert not gate.is_open
        assert sub.closes == 1

    def test_repeated_transitions_are_noops(self):
        """Evaluations that agree with the current state do nothing."""
        sub = CountingSubscription()
        gate = SubscriptionGate(sub.open, sub.close)

        gate.on_consumer_count_changed(0)
        gate.on_consumer_count_changed(1)
        gate.on_consumer_count_changed(2)
        gate.on_consumer_count_changed(1)
        gate.on_consumer_count_changed(0)
        gate.on_consumer_count_changed(0)

        assert sub.opens == 1
        assert sub.closes == 1

    def test_reopen_after_close(self):
        sub = CountingSubscription()
        gate = SubscriptionGate(sub.open, sub.close)

        gate.on_consumer_count_changed(1)
        gate.on_consumer_count_changed(0)
        gate.on_consumer_count_changed(3)

        assert sub.opens == 2
        assert gate.is_open

    def test_concurrent_attach_opens_once(self):
        """Racing notifications never open two subscriptions."""
        sub = CountingSubscription()
        gate = SubscriptionGate(sub.open, sub.close)
        barrier = threading.Barrier(8)

        def attach(count):
            barrier.wait()
            gate.on_consumer_count_changed(count)

        threads = [threading.Thread(target=attach, args=(i + 1,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sub.opens == 1
        assert sub.open_now == 1

    def test_close_on_shutdown(self):
        sub = CountingSubscription()
        gate = SubscriptionGate(sub.open, sub.close)

        gate.on_consumer_count_changed(2)
        gate.close()
        gate.close()

        assert sub.closes == 1
        assert sub.open_now == 0

    def test_lost_subscription_reopens_on_next_count(self):
        """A subscription that ended upstream is reopened by the next consumer change."""
        sub = CountingSubscription()
        gate = SubscriptionGate(sub.open, sub.close)

        gate.on_consumer_count_changed(1)
        gate.on_subscription_lost()
        assert not gate.is_open

        gate.on_consumer_count_changed(2)
        assert gate.is_open
        assert sub.opens == 2
        assert sub.closes == 0

    def test_lost_while_closed_is_noop(self):
        sub = CountingSubscription()
        gate = SubscriptionGate(sub.open, sub.close)

        gate.on_subscription_lost()
        gate.on_consumer_count_changed(0)

        assert not gate.is_open
        assert sub.closes == 0


class TestPublisherGateWiring:
    """The gate driven by a real OutputPublisher and FrameConsumer."""

    def test_overlapping_detach_and_attach_leave_gate_open(self):
        """A slow 0-notification cannot land after a later attach's notification."""
        sub = CountingSubscription()
        gate = SubscriptionGate(sub.open, sub.close)
        notifying_zero = threading.Event()

        def slow_listener(count):
            if count == 0:
                notifying_zero.set()
                time.sleep(0.05)
            gate.on_consumer_count_changed(count)

        publisher = OutputPublisher(on_consumer_count=slow_listener)
        first = publisher.attach()

        detacher = threading.Thread(target=publisher.detach, args=(first,))
        detacher.start()
        assert notifying_zero.wait(timeout=1.0)
        attacher = threading.Thread(target=publisher.attach)
        attacher.start()
        detacher.join()
        attacher.join()

        assert publisher.consumer_count == 1
        assert gate.is_open
        assert sub.open_now == 1

    def test_exhausted_reconnects_reopen_on_next_attach(self):
        """When the source gives up, the next attach subscribes again."""
        consumer = FrameConsumer(
            url="ws://127.0.0.1:1/unreachable",
            on_frame=lambda frame: None,
            reconnect_backoff_ms=50,
            max_reconnect_attempts=1,
        )
        gate = SubscriptionGate(open_fn=consumer.start, close_fn=consumer.stop)
        consumer.on_stopped = gate.on_subscription_lost
        publisher = OutputPublisher(on_consumer_count=gate.on_consumer_count_changed)

        async def scenario():
            publisher.attach()
            assert gate.is_open

            for _ in range(100):
                if not gate.is_open:
                    break
                await asyncio.sleep(0.05)
            closed_after_give_up = not gate.is_open

            publisher.attach()
            reopened = gate.is_open
            await consumer.shutdown()
            return closed_after_give_up, reopened

        closed_after_give_up, reopened = asyncio.run(scenario())

        assert closed_after_give_up
        assert reopened
        assert consumer.metrics.subscribe_count == 2
        assert consumer.metrics.reconnect_count == 1

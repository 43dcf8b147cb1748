"""
Subscription Gate
=================

Opens the upstream camera subscription only while someone is listening
downstream.

Rules:
    count == 0            -> close (if open)
    count > 0 and closed  -> open
    anything else         -> no-op

A subscription that ends by itself (the source gave up reconnecting) is
reported through on_subscription_lost() so a later count can reopen it.

Evaluations are serialized by a single lock, so racing attach/detach
notifications can neither open two subscriptions nor leave one dangling.
"""

import logging
import threading
from typing import Callable


logger = logging.getLogger(__name__)


class SubscriptionGate:
    """
    Toggles the upstream subscription from downstream consumer counts.

    Attributes:
        is_open: Whether the upstream subscription is currently open

    Example:
        gate = SubscriptionGate(open_fn=consumer.start, close_fn=consumer.stop)
        publisher = OutputPublisher(on_consumer_count=gate.on_consumer_count_changed)
    """

    def __init__(
        self,
        open_fn: Callable[[], None],
        close_fn: Callable[[], None],
    ) -> None:
        """
        Args:
            open_fn: Subscribes to the camera source
            close_fn: Unsubscribes from the camera source
        """
        self._open_fn = open_fn
        self._close_fn = close_fn
        self._lock = threading.Lock()
        self._open: bool = False

    @property
    def is_open(self) -> bool:
        with self._lock:
            return self._open

    def on_consumer_count_changed(self, count: int) -> None:
        """Re-evaluate the subscription for the given consumer count."""
        with self._lock:
            if count <= 0:
                if self._open:
                    self._close_fn()
                    self._open = False
                    logger.info("Unsubscribed from camera (no consumers)")
            elif not self._open:
                self._open_fn()
                self._open = True
                logger.info(f"Subscribed to camera ({count} consumer(s))")

    def close(self) -> None:
        """Force the subscription closed, e.g. on shutdown."""
        self.on_consumer_count_changed(0)

    def on_subscription_lost(self) -> None:
        """
        Record that the upstream subscription ended on its own.

        The next positive consumer count opens it again.
        """
        with self._lock:
            if self._open:
                self._open = False
                logger.warning("Camera subscription lost; will resubscribe on next consumer change")

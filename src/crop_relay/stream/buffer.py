"""
Consumer Outbox
===============

Bounded queue of serialized frames waiting to be sent to one consumer.

This module provides the Outbox class, which sits between the publish
path and a single downstream WebSocket connection.

Design Rules:
    - Fixed maximum size (drops oldest on overflow)
    - put_nowait() never blocks, so publishing never waits on a slow consumer
    - Counts dropped payloads for observability
    - Does NOT modify payloads
"""

import asyncio
import logging
from typing import Optional


logger = logging.getLogger(__name__)


class Outbox:
    """
    Drop-oldest bounded queue of outbound payloads.

    Attributes:
        dropped_count: Number of payloads dropped due to overflow

    Example:
        outbox = Outbox(maxsize=1)

        # Publisher side (sync)
        outbox.put_nowait(payload)

        # Connection side
        payload = await outbox.get(timeout=1.0)
    """

    def __init__(self, maxsize: int = 1) -> None:
        """
        Initialize outbox.

        Args:
            maxsize: Maximum payloads to hold. Must be >= 1.
        """
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")

        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=maxsize)
        self._dropped_count: int = 0

    @property
    def dropped_count(self) -> int:
        """Number of payloads dropped due to overflow."""
        return self._dropped_count

    def put_nowait(self, payload: str) -> bool:
        """
        Add payload, dropping the oldest if full.

        Returns:
            True if added without dropping, False if the oldest payload
            was dropped to make room.
        """
        dropped = False

        if self._queue.full():
            try:
                self._queue.get_nowait()
                self._dropped_count += 1
                dropped = True
                logger.debug(f"Outbox full, dropped oldest frame. Total dropped: {self._dropped_count}")
            except asyncio.QueueEmpty:
                pass

        self._queue.put_nowait(payload)
        return not dropped

    async def get(self, timeout: Optional[float] = None) -> Optional[str]:
        """
        Get next payload.

        Args:
            timeout: Maximum seconds to wait. None = wait forever.

        Returns:
            Next payload, or None if timeout occurred.
        """
        try:
            if timeout is not None:
                return await asyncio.wait_for(self._queue.get(), timeout=timeout)
            return await self._queue.get()
        except asyncio.TimeoutError:
            return None

    def get_nowait(self) -> Optional[str]:
        """Next payload if available, None otherwise."""
        try:
            return self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None


"""
LISTEN/NOTIFY subscriptions.

A Subscription registers a listener on the asyncpg connection underneath
the Bus connection and buffers incoming signals in an asyncio.Queue. The
listener is registered when the Queue is built, so a signal published
between a failed claim and the following wait is never lost: it sits in
the buffer and the wait returns at once. The buffer holds at most one
signal plus the broken marker, so a Queue that only pushes does not
accumulate its own notifications.

Signals carry nothing but "something may have changed". Several pushes
may arrive as one wakeup, and a wakeup does not mean a row is still
claimable. Callers always claim again after waking.
"""

import asyncio
import logging
from datetime import timedelta
from typing import Any

from asyncpg.exceptions import InterfaceError, PostgresError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection

from pqbus.errors import ListenError, ReceiveNotificationError
from pqbus.types.message import Notification

logger = logging.getLogger(__name__)

# Marks the buffer as broken; stays in the buffer once put there
_TERMINATED = None


def as_seconds(timeout: float | timedelta) -> float:
    """Accept seconds or a timedelta."""
    if isinstance(timeout, timedelta):
        return timeout.total_seconds()
    return float(timeout)


class Subscription:
    """
    Buffered notifications for exactly one channel.

    Torn down together with the connection: once the connection
    terminates every wait raises ReceiveNotificationError.
    """

    def __init__(self, channel: str):
        self.channel = channel
        self._events: asyncio.Queue[Notification | None] = asyncio.Queue()
        self._driver_connection: Any = None
        self._broken_reason: str | None = None

    @classmethod
    async def listen(
        cls,
        connection: AsyncConnection,
        channel: str,
        lock: asyncio.Lock | None = None,
    ) -> "Subscription":
        """
        Subscribe a connection to a channel.

        Args:
            connection: The Bus connection. Must be backed by asyncpg.
            channel: The notification channel.
            lock: The Bus statement lock. LISTEN goes straight to asyncpg,
                outside SQLAlchemy's own locking, so it must not overlap
                statements issued through the connection.

        Returns:
            The live subscription.

        Raises:
            ListenError: If LISTEN fails.
        """
        subscription = cls(channel)
        try:
            async with lock or asyncio.Lock():
                raw = await connection.get_raw_connection()
                driver_connection = raw.driver_connection
                await driver_connection.add_listener(channel, subscription._on_notification)
        except (SQLAlchemyError, PostgresError, InterfaceError, OSError) as e:
            raise ListenError(channel, e) from e

        driver_connection.add_termination_listener(subscription._on_termination)
        subscription._driver_connection = driver_connection

        logger.debug("Listening", extra={"channel": channel})
        return subscription

    def _on_notification(self, connection: Any, pid: int, channel: str, payload: str) -> None:
        self.publish(Notification(channel=channel, pid=pid, payload=payload))

    def _on_termination(self, connection: Any) -> None:
        self.terminate("connection terminated")

    def publish(self, notification: Notification) -> None:
        """
        Buffer a received signal.

        At most one signal is held; a signal arriving while another is
        pending is dropped, since both mean the same thing.
        """
        if self._broken_reason is None and self._events.empty():
            self._events.put_nowait(notification)

    def terminate(self, reason: str) -> None:
        """Mark the subscription broken and wake every waiter."""
        if self._broken_reason is not None:
            return
        self._broken_reason = reason
        logger.warning(
            "Notification channel broken",
            extra={"channel": self.channel, "reason": reason},
        )
        self._events.put_nowait(_TERMINATED)

    @property
    def is_broken(self) -> bool:
        return self._broken_reason is not None

    def has_pending(self) -> bool:
        """Check for buffered signals without blocking."""
        return not self._events.empty()

    def drain_pending(self) -> int:
        """
        Discard every buffered signal without blocking.

        A broken marker is kept so the next wait still fails.

        Returns:
            Number of signals discarded.
        """
        drained = 0
        while not self._events.empty():
            event = self._events.get_nowait()
            if event is _TERMINATED:
                self._events.put_nowait(_TERMINATED)
                break
            drained += 1
        return drained

    async def wait_forever(self) -> Notification:
        """
        Wait until a signal arrives.

        Raises:
            ReceiveNotificationError: If the channel is or becomes broken.
        """
        event = await self._events.get()
        return self._received(event)

    async def wait_timeout(self, timeout: float | timedelta) -> bool:
        """
        Wait until a signal arrives or the timeout elapses.

        Args:
            timeout: Seconds, or a timedelta.

        Returns:
            True if a signal arrived, False on timeout.

        Raises:
            ReceiveNotificationError: If the channel is or becomes broken.
        """
        try:
            async with asyncio.timeout(max(0.0, as_seconds(timeout))):
                event = await self._events.get()
        except TimeoutError:
            return False
        self._received(event)
        return True

    def _received(self, event: Notification | None) -> Notification:
        if event is _TERMINATED:
            self._events.put_nowait(_TERMINATED)
            raise ReceiveNotificationError(self.channel, self._broken_reason or "terminated")
        return event

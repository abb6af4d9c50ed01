"""
Queue facade.

Composes the repository (storage and claims) and the subscription
(notifications) into push/pop operations, and exposes message streams.
"""

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import Generic, NoReturn, TypeVar

from sqlalchemy.ext.asyncio import AsyncConnection

from pqbus.constants import SPAN_ENSURE_QUEUE, SPAN_POP, SPAN_PUSH
from pqbus.db.notifications import Subscription, as_seconds
from pqbus.db.repository import QueueRepository
from pqbus.errors import BodyDeserializeError, BodySerializeError
from pqbus.naming import QueueNames
from pqbus.observability.metrics import MetricsCollector, get_metrics
from pqbus.observability.tracing import get_tracer
from pqbus.stream import MessageStream, NextMessageBlocking, NextMessagePending
from pqbus.types.codec import Codec
from pqbus.types.message import RawMessage

logger = logging.getLogger(__name__)

T = TypeVar("T")

MessageHandler = Callable[[T], Awaitable[None] | None]


class Queue(Generic[T]):
    """
    A named push/pop message queue.

    Delivery is at-most-once: a row is claimed by exactly one consumer and
    never delivered again, even if that consumer fails before handling it.
    Claimed rows stay in the table.

    Only the blocking operations (pop_blocking, pop_wait, pop_callback and
    blocking streams) wait for notifications; everything else is a single
    round trip.
    """

    def __init__(
        self,
        repository: QueueRepository,
        subscription: Subscription,
        codec: Codec[T],
        metrics: MetricsCollector | None = None,
    ):
        """
        Initialize the queue. Use Bus.queue() rather than calling this directly.

        Args:
            repository: Statements for the queue's table.
            subscription: Notifications for the queue's channel.
            codec: Converts between values and message bodies.
            metrics: Metrics collector. Defaults to the process-wide one.
        """
        self._repository = repository
        self._subscription = subscription
        self._codec = codec
        self._metrics = metrics or get_metrics()
        self._channel = repository.names.channel

    @classmethod
    async def open(
        cls,
        connection: AsyncConnection,
        names: QueueNames,
        codec: Codec[T],
        claimant: str,
        lock: asyncio.Lock | None = None,
    ) -> "Queue[T]":
        """
        Ensure the queue's table exists and subscribe to its channel.

        Both steps must succeed; no Queue is returned otherwise. ``lock`` is
        the Bus statement lock, shared by every Queue on the connection.

        Raises:
            CreateError: If the table cannot be created.
            ListenError: If the subscription fails.
        """
        lock = lock or asyncio.Lock()
        repository = QueueRepository(connection, names, claimant, lock)
        with get_tracer().start_as_current_span(SPAN_ENSURE_QUEUE) as span:
            span.set_attribute("pqbus.queue", names.channel)
            await repository.ensure()
        subscription = await Subscription.listen(connection, names.channel, lock)

        logger.info(
            "Queue ready",
            extra={"bus": names.bus_name, "queue": names.queue_name},
        )
        return cls(repository, subscription, codec)

    @property
    def names(self) -> QueueNames:
        return self._repository.names

    @property
    def name(self) -> str:
        return self._repository.names.queue_name

    @property
    def codec(self) -> Codec[T]:
        return self._codec

    def __repr__(self) -> str:
        return f"Queue({self._channel!r}, codec={self._codec!r})"

    async def size(self) -> int:
        """
        Return the number of messages ever pushed.

        Claimed rows are never removed, so this counts claimed and
        unclaimed rows alike.

        Raises:
            SizeError: If the query fails.
        """
        size = await self._repository.count()
        self._metrics.update_queue_size(self._channel, size)
        return size

    async def is_empty(self) -> bool:
        """Check whether size() is zero."""
        return await self.size() == 0

    async def push(self, value: T) -> None:
        """
        Push a message into the queue.

        The row is committed before the notification is sent; a failed
        insert sends nothing.

        Raises:
            BodySerializeError: If the codec rejects the value. Nothing is written.
            PushError: If the insert fails.
            NotifyError: If the notification fails. The row is already stored.
        """
        try:
            body = self._codec.encode(value)
        except Exception as e:
            raise BodySerializeError(e) from e

        with get_tracer().start_as_current_span(SPAN_PUSH) as span:
            span.set_attribute("pqbus.queue", self._channel)
            span.set_attribute("pqbus.body_size", len(body))
            await self._repository.insert(body)
            await self._repository.notify()

        self._metrics.record_pushed(self._channel)

    async def claim(self) -> RawMessage | None:
        """
        Claim one message without decoding it. Never waits.

        Raises:
            PopError: If the claim statement fails.
        """
        with get_tracer().start_as_current_span(SPAN_POP) as span:
            span.set_attribute("pqbus.queue", self._channel)
            message = await self._repository.claim()
            span.set_attribute("pqbus.claimed", message is not None)

        if message is None:
            self._metrics.record_claim_empty(self._channel)
        else:
            self._metrics.record_claimed(self._channel)
        return message

    def decode(self, message: RawMessage) -> T:
        """
        Decode a claimed message.

        Raises:
            BodyDeserializeError: If the codec rejects the body. The row stays
                claimed; its bytes are not returned.
        """
        try:
            return self._codec.decode(message.body)
        except Exception as e:
            self._metrics.record_decode_failure(self._channel)
            logger.warning(
                "Failed to decode claimed message",
                extra={"queue": self._channel, "message_id": message.id},
            )
            raise BodyDeserializeError(e) from e

    async def pop(self) -> T | None:
        """
        Pop a message if one is pending.

        Returns:
            The decoded message, or None if nothing is claimable.

        Raises:
            PopError: If the claim statement fails.
            BodyDeserializeError: If decoding fails (the message is consumed).
        """
        message = await self.claim()
        if message is None:
            return None
        return self.decode(message)

    async def pop_blocking(self) -> T:
        """
        Pop a message, waiting for one if none are pending.

        Never returns without a message. Stale signals are discarded
        before each claim, and every wakeup is followed by a fresh claim.

        Raises:
            PopError: If a claim statement fails.
            BodyDeserializeError: If decoding fails.
            ReceiveNotificationError: If the notification channel breaks.
        """
        while True:
            self._subscription.drain_pending()
            message = await self.claim()
            if message is not None:
                return self.decode(message)
            await self._wait_forever()

    async def pop_wait(self, timeout: float | timedelta) -> T | None:
        """
        Pop a message, waiting up to ``timeout`` for one if none are pending.

        Args:
            timeout: Seconds, or a timedelta.

        Returns:
            The decoded message, or None if nothing was claimable in time.

        Raises:
            PopError: If a claim statement fails.
            BodyDeserializeError: If decoding fails.
            ReceiveNotificationError: If the notification channel breaks.
        """
        self._subscription.drain_pending()
        message = await self.claim()
        if message is None and await self._wait_timeout(timeout):
            message = await self.claim()
        if message is None:
            return None
        return self.decode(message)

    async def pop_callback(self, handler: MessageHandler[T]) -> NoReturn:
        """
        Run a handler on every message, forever.

        Repeatedly discards pending signals, hands every claimable message
        to the handler, then waits for the next signal. The handler may be
        a plain function or a coroutine function.

        Only returns by raising: any error from a claim, decode, wait or
        the handler ends the loop.
        """
        while True:
            self._subscription.drain_pending()
            await self._consume_pending(handler)
            await self._wait_forever()

    async def _consume_pending(self, handler: MessageHandler[T]) -> int:
        handled = 0
        while (message := await self.claim()) is not None:
            result = handler(self.decode(message))
            if inspect.isawaitable(result):
                await result
            handled += 1
        return handled

    async def _wait_forever(self) -> None:
        started = time.monotonic()
        await self._subscription.wait_forever()
        self._metrics.record_wait(self._channel, time.monotonic() - started, True)

    async def _wait_timeout(self, timeout: float | timedelta) -> bool:
        started = time.monotonic()
        notified = await self._subscription.wait_timeout(as_seconds(timeout))
        self._metrics.record_wait(self._channel, time.monotonic() - started, notified)
        return notified

    def messages(self) -> MessageStream[T]:
        """
        Stream pending messages. Ends as soon as nothing is claimable.

        Each iteration reflects the live queue, not a snapshot.
        """
        return MessageStream(self, NextMessagePending())

    def messages_blocking(self) -> MessageStream[T]:
        """Stream messages forever, waiting whenever none are pending."""
        return MessageStream(self, NextMessageBlocking())

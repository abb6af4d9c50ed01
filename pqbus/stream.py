"""
Message streams.

A MessageStream is an async iterator over a queue, advanced by a
NextMessage policy:

- NextMessagePending: one claim per step; ends when nothing is claimable.
- NextMessageBlocking: one pop_blocking per step; never ends.

End of stream is StopAsyncIteration. A failing step raises its error
from that ``__anext__`` call only; the stream is not a generator, so the
next step starts a fresh claim.
"""

from typing import TYPE_CHECKING, Generic, Protocol, TypeVar

if TYPE_CHECKING:
    from pqbus.queue import Queue

T = TypeVar("T")


class NextMessage(Protocol[T]):
    """Iterator condition: produces the next message or ends the stream."""

    async def next(self, queue: "Queue[T]") -> T:
        """Return the next message, or raise StopAsyncIteration when complete."""
        ...


class NextMessagePending(Generic[T]):
    """Iterate until the queue is empty."""

    async def next(self, queue: "Queue[T]") -> T:
        message = await queue.claim()
        if message is None:
            raise StopAsyncIteration
        return queue.decode(message)


class NextMessageBlocking(Generic[T]):
    """Iterate forever, blocking when the queue is empty."""

    async def next(self, queue: "Queue[T]") -> T:
        return await queue.pop_blocking()


class MessageStream(Generic[T]):
    """Lazy stream of decoded messages from one queue."""

    def __init__(self, queue: "Queue[T]", next_message: NextMessage[T]):
        self._queue = queue
        self._next_message = next_message

    def __aiter__(self) -> "MessageStream[T]":
        return self

    async def __anext__(self) -> T:
        return await self._next_message.next(self._queue)

    async def take(self, count: int) -> list[T]:
        """
        Collect up to ``count`` messages.

        Stops early only if the stream ends; errors propagate.
        """
        messages: list[T] = []
        while len(messages) < count:
            try:
                messages.append(await self.__anext__())
            except StopAsyncIteration:
                break
        return messages

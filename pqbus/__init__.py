"""
pqbus

An event driven message queue backed by PostgreSQL. Consumers claim rows
with FOR UPDATE SKIP LOCKED and sleep on LISTEN/NOTIFY instead of polling.

Producer::

    bus = await pqbus.connect("postgresql+asyncpg://postgres@localhost/pqbus", "myapp")
    queue = await bus.queue("new_users")
    await queue.push("sgibbs")

Consumer::

    bus = await pqbus.connect("postgresql+asyncpg://postgres@localhost/pqbus", "myapp")
    queue = await bus.queue("new_users")
    async for message in queue.messages_blocking():
        print(f"New User: {message}")
"""

from pqbus.bus import Bus, connect
from pqbus.db.connection import RetryPolicy
from pqbus.errors import (
    BodyDeserializeError,
    BodySerializeError,
    BusConnectionError,
    CodecError,
    CreateError,
    InvalidBusNameError,
    InvalidNameError,
    InvalidQueueNameError,
    ListenError,
    NotifyError,
    PopError,
    PqBusError,
    PushError,
    ReceiveNotificationError,
    SizeError,
    StorageError,
)
from pqbus.naming import is_valid_name
from pqbus.queue import Queue
from pqbus.stream import MessageStream, NextMessage, NextMessageBlocking, NextMessagePending
from pqbus.types.codec import BytesCodec, Codec, JsonCodec, ModelCodec, Utf8Codec

__version__ = "1.0.0"

__all__ = [
    "connect",
    "Bus",
    "Queue",
    "RetryPolicy",
    "is_valid_name",
    # Streams
    "MessageStream",
    "NextMessage",
    "NextMessagePending",
    "NextMessageBlocking",
    # Codecs
    "Codec",
    "Utf8Codec",
    "BytesCodec",
    "JsonCodec",
    "ModelCodec",
    # Errors
    "PqBusError",
    "InvalidNameError",
    "InvalidBusNameError",
    "InvalidQueueNameError",
    "BusConnectionError",
    "StorageError",
    "CreateError",
    "ListenError",
    "SizeError",
    "PushError",
    "NotifyError",
    "PopError",
    "ReceiveNotificationError",
    "CodecError",
    "BodySerializeError",
    "BodyDeserializeError",
]

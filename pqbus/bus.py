"""
Bus: the top-level namespace.

A Bus owns one database connection and builds Queues on it. Every Queue
from a Bus claims and listens on that same connection, because claim
visibility and notification delivery are only coherent within one
session. Consumers that must claim in parallel each need their own Bus.
"""

import asyncio
import logging
import os
from types import TracebackType

from sqlalchemy.engine import URL
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from pqbus.config import get_settings
from pqbus.db.connection import RetryPolicy, open_connection
from pqbus.naming import QueueNames, validate_bus_name
from pqbus.queue import Queue
from pqbus.types.codec import Codec, Utf8Codec

logger = logging.getLogger(__name__)


def default_claimant() -> str:
    """Identify this process as hostname-pid."""
    return f"{os.uname().nodename}-{os.getpid()}"


class Bus:
    """
    Highest level namespace. Constructs Queues.

    Use connect() to build one. Closing the Bus closes its connection,
    which invalidates every Queue built from it.
    """

    def __init__(
        self,
        name: str,
        engine: AsyncEngine,
        connection: AsyncConnection,
        claimant: str,
    ):
        self.name = validate_bus_name(name)
        self.claimant = claimant
        self._engine = engine
        self._connection = connection
        self._queues: dict[str, Queue] = {}
        # One operation at a time on the connection, LISTEN included
        self._statement_lock = asyncio.Lock()
        self._closed = False

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @property
    def connection(self) -> AsyncConnection:
        return self._connection

    @property
    def closed(self) -> bool:
        return self._closed

    def queue_names(self, queue_name: str) -> QueueNames:
        """
        Derive the storage names of a queue on this bus.

        Raises:
            InvalidQueueNameError: If the queue name is rejected.
        """
        return QueueNames.build(self.name, queue_name)

    async def queue(self, name: str, codec: Codec | None = None) -> Queue:
        """
        Construct a queue on the bus.

        Creates the queue's table if missing and subscribes to its
        channel. Constructing the same queue again is harmless and leaves
        existing messages untouched.

        Args:
            name: Queue name.
            codec: Message codec. Defaults to UTF-8 text.

        Returns:
            The Queue.

        Raises:
            InvalidQueueNameError: If the name is rejected; nothing is executed.
            CreateError: If the table cannot be created.
            ListenError: If the subscription fails.
        """
        names = self.queue_names(name)
        queue = await Queue.open(
            self._connection,
            names,
            codec if codec is not None else Utf8Codec(),
            self.claimant,
            self._statement_lock,
        )
        self._queues[name] = queue
        return queue

    async def close(self) -> None:
        """Close the connection. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        try:
            await self._connection.close()
        finally:
            await self._engine.dispose()
        logger.info("Bus closed", extra={"bus": self.name})

    async def __aenter__(self) -> "Bus":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"Bus({self.name!r}, queues={sorted(self._queues)!r})"


async def connect(
    database_url: str | URL,
    name: str,
    *,
    retry_policy: RetryPolicy | None = None,
    claimant: str | None = None,
) -> Bus:
    """
    Construct a new Bus.

    The name is validated before any connection attempt.

    Args:
        database_url: PostgreSQL URL. ``postgresql://`` is served by asyncpg.
        name: Bus name.
        retry_policy: Connection retry policy. Defaults to settings.
        claimant: Value written to claimed rows. Defaults to settings, then hostname-pid.

    Returns:
        The connected Bus.

    Raises:
        InvalidBusNameError: If the name is rejected.
        BusConnectionError: If no connection could be established.
    """
    validate_bus_name(name)
    engine, connection = await open_connection(database_url, retry_policy)
    claimant = claimant or get_settings().claimant_id or default_claimant()
    return Bus(name, engine, connection, claimant)

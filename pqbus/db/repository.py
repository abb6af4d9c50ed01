"""
Queue repository for database operations.
Implements the storage side of a queue: schema creation, insert, notify, count and claim.
"""

import asyncio
import logging

from sqlalchemy import Table, func, insert, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection

from pqbus.constants import SCHEMA_LOCK_KEY
from pqbus.db.models import create_queue_ddl, queue_table
from pqbus.errors import CreateError, NotifyError, PopError, PushError, SizeError
from pqbus.naming import QueueNames
from pqbus.types.message import RawMessage

logger = logging.getLogger(__name__)


class QueueRepository:
    """
    Repository for one queue's table.

    Every statement runs on the Bus connection, which is in AUTOCOMMIT
    mode: each call is its own transaction. Calls hold the Bus statement
    lock, because the connection runs one operation at a time. Statements
    are built once and the driver caches their prepared form per connection.

    Implements atomic operations for:
    - Idempotent table creation, safe against concurrent creators
    - Claiming one row with FOR UPDATE SKIP LOCKED
    """

    def __init__(
        self,
        connection: AsyncConnection,
        names: QueueNames,
        claimant: str,
        lock: asyncio.Lock | None = None,
    ):
        """
        Initialize the repository.

        Args:
            connection: The Bus connection.
            names: Storage names of the queue.
            claimant: Value written to claimed_by on claim.
            lock: Lock shared by everything issuing statements on the connection.
        """
        self._connection = connection
        self._lock = lock or asyncio.Lock()
        self._names = names
        self._claimant = claimant
        self._table: Table = queue_table(names)

        self._insert_stmt = insert(self._table)
        self._count_stmt = select(func.count()).select_from(self._table)
        self._notify_stmt = text("SELECT pg_notify(:channel, '')")
        # Raw SQL so the SKIP LOCKED subquery and the UPDATE stay one statement
        self._claim_stmt = text(f"""
            UPDATE {names.qualified_table} AS q
            SET claimed_by = :claimant
            FROM (
                SELECT id
                FROM {names.qualified_table}
                WHERE claimed_by IS NULL
                ORDER BY id
                LIMIT 1
                FOR UPDATE SKIP LOCKED
            ) AS sub
            WHERE q.id = sub.id
            RETURNING q.id, q.body
        """)

    @property
    def names(self) -> QueueNames:
        return self._names

    @property
    def table(self) -> Table:
        return self._table

    async def ensure(self) -> None:
        """
        Create the queue's schema and table if missing.

        Runs as a single DO block holding a transaction-scoped advisory lock,
        so concurrent first-time creators wait instead of failing on catalog
        conflicts. Existing rows are never touched.

        Raises:
            CreateError: If the statement fails.
        """
        statements = ";\n".join(create_queue_ddl(self._table))
        ddl = (
            "DO $$\nBEGIN\n"
            f"PERFORM pg_advisory_xact_lock({SCHEMA_LOCK_KEY});\n"
            f"{statements};\n"
            "END\n$$"
        )
        try:
            async with self._lock:
                await self._connection.exec_driver_sql(ddl)
        except SQLAlchemyError as e:
            raise CreateError(self._names.channel, e) from e

        logger.debug("Ensured queue table", extra={"table": self._names.channel})

    async def insert(self, body: bytes) -> None:
        """
        Insert one message. Commits immediately.

        Raises:
            PushError: If the insert fails.
        """
        try:
            async with self._lock:
                await self._connection.execute(self._insert_stmt, {"body": body})
        except SQLAlchemyError as e:
            raise PushError(self._names.channel, e) from e

    async def notify(self) -> None:
        """
        Publish an empty signal on the queue's channel.

        Raises:
            NotifyError: If the notification fails.
        """
        try:
            async with self._lock:
                await self._connection.execute(
                    self._notify_stmt, {"channel": self._names.channel}
                )
        except SQLAlchemyError as e:
            raise NotifyError(self._names.channel, e) from e

    async def count(self) -> int:
        """
        Count every row, claimed or not.

        Raises:
            SizeError: If the query fails.
        """
        try:
            async with self._lock:
                result = await self._connection.execute(self._count_stmt)
        except SQLAlchemyError as e:
            raise SizeError(self._names.channel, e) from e
        return result.scalar() or 0

    async def claim(self) -> RawMessage | None:
        """
        Claim the oldest unclaimed row not locked by another claimant.

        Never waits: rows locked by concurrent claims are skipped, and an
        empty result means nothing is claimable right now.

        Returns:
            The claimed message, or None.

        Raises:
            PopError: If the statement fails.
        """
        try:
            async with self._lock:
                result = await self._connection.execute(
                    self._claim_stmt, {"claimant": self._claimant}
                )
                row = result.first()
        except SQLAlchemyError as e:
            raise PopError(self._names.channel, e) from e

        if row is None:
            return None

        logger.debug(
            "Claimed message",
            extra={"table": self._names.channel, "message_id": row.id},
        )
        return RawMessage(id=row.id, body=bytes(row.body))

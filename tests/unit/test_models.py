"""
Unit tests for queue table definitions, DDL and repository statements.
"""

import asyncio

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql

from pqbus.db.models import create_queue_ddl, queue_table
from pqbus.db.repository import QueueRepository
from pqbus.naming import QueueNames


class TestQueueTable:
    """Tests for queue_table."""

    def test_columns(self):
        table = queue_table(QueueNames.build("test", "work"))

        assert [column.name for column in table.columns] == ["id", "body", "claimed_by"]
        assert table.c.id.primary_key
        assert not table.c.body.nullable
        assert table.c.claimed_by.nullable

    def test_storage_names(self):
        table = queue_table(QueueNames.build("Mixed", "Case"))

        assert table.schema == "pqbus_Mixed"
        assert table.name == "Case_queue"


class TestCreateQueueDdl:
    """Tests for create_queue_ddl."""

    def test_idempotent_statements(self):
        schema_ddl, table_ddl = create_queue_ddl(queue_table(QueueNames.build("test", "work")))

        assert schema_ddl == 'CREATE SCHEMA IF NOT EXISTS "pqbus_test"'
        assert table_ddl.startswith('CREATE TABLE IF NOT EXISTS "pqbus_test"."work_queue"')

    def test_column_types(self):
        _, table_ddl = create_queue_ddl(queue_table(QueueNames.build("test", "work")))

        assert "BIGSERIAL" in table_ddl
        assert "BYTEA NOT NULL" in table_ddl
        assert "claimed_by VARCHAR" in table_ddl
        assert "PRIMARY KEY (id)" in table_ddl

    def test_statements_quote_lowercase_names(self):
        table = queue_table(QueueNames.build("test", "work"))

        sql = str(select(func.count()).select_from(table).compile(dialect=postgresql.dialect()))

        assert 'FROM "pqbus_test"."work_queue"' in sql

    def test_mixed_case_is_quoted(self):
        _, table_ddl = create_queue_ddl(queue_table(QueueNames.build("Mixed", "Case")))

        assert '"pqbus_Mixed"."Case_queue"' in table_ddl


class TestClaimStatement:
    """Tests for the statements prepared by QueueRepository."""

    def test_claim_skips_locked_rows_in_id_order(self):
        names = QueueNames.build("test", "work")
        repository = QueueRepository(connection=None, names=names, claimant="me")

        sql = str(repository._claim_stmt.compile(dialect=postgresql.dialect()))

        assert "FOR UPDATE SKIP LOCKED" in sql
        assert "ORDER BY id" in sql
        assert "WHERE claimed_by IS NULL" in sql
        assert '"pqbus_test"."work_queue"' in sql


class TestStatementLock:
    """Tests for the statement lock around repository calls."""

    async def test_claim_waits_for_lock(self):
        class RecordingConnection:
            def __init__(self):
                self.executed = 0

            async def execute(self, statement, params=None):
                self.executed += 1

                class Result:
                    def first(self):
                        return None

                return Result()

        connection = RecordingConnection()
        lock = asyncio.Lock()
        repository = QueueRepository(connection, QueueNames.build("test", "work"), "me", lock)

        await lock.acquire()
        claim = asyncio.create_task(repository.claim())
        await asyncio.sleep(0.05)
        assert connection.executed == 0

        lock.release()
        assert await asyncio.wait_for(claim, timeout=1) is None
        assert connection.executed == 1

"""
SQLAlchemy table definitions.
Every queue is its own table, so tables are built per (bus, queue) pair.
"""

from sqlalchemy import BigInteger, Column, LargeBinary, MetaData, String, Table, quoted_name
from sqlalchemy.dialects import postgresql
from sqlalchemy.schema import CreateSchema, CreateTable

from pqbus.naming import QueueNames


def queue_table(names: QueueNames) -> Table:
    """
    Build the table backing one queue.

    The table always has exactly three columns:
    - id: monotonically increasing, also the uncontended claim order
    - body: the opaque message payload
    - claimed_by: NULL until claimed, then set once and never reset

    Claimed rows are kept; nothing in pqbus deletes or archives them.

    Args:
        names: Storage names of the queue.

    Returns:
        The Table, bound to its own MetaData. Schema and table names are
        always quoted, matching QueueNames.qualified_table.
    """
    return Table(
        quoted_name(names.table, True),
        MetaData(),
        Column("id", BigInteger, primary_key=True, autoincrement=True),
        Column("body", LargeBinary, nullable=False),
        Column("claimed_by", String, nullable=True, default=None),
        schema=quoted_name(names.schema, True),
    )


def create_queue_ddl(table: Table) -> list[str]:
    """Render idempotent CREATE statements for a queue table and its schema."""
    dialect = postgresql.dialect()
    return [
        str(CreateSchema(quoted_name(table.schema, True), if_not_exists=True).compile(dialect=dialect)),
        str(CreateTable(table, if_not_exists=True).compile(dialect=dialect)).strip(),
    ]

"""
Name validation and storage naming.

Bus and queue names are interpolated into SQL identifiers, so they are
checked here before any statement is built from them.
"""

import re
from dataclasses import dataclass

from pqbus.constants import MAX_IDENTIFIER_LENGTH, NAME_PATTERN, SCHEMA_PREFIX, TABLE_SUFFIX
from pqbus.errors import InvalidBusNameError, InvalidQueueNameError

_NAME_RE = re.compile(NAME_PATTERN)


def is_valid_name(name: str) -> bool:
    """Check that a name starts with a letter and holds only letters, digits and underscores."""
    return isinstance(name, str) and _NAME_RE.fullmatch(name) is not None


def quote_ident(identifier: str) -> str:
    """Quote an identifier that has already been validated."""
    return f'"{identifier}"'


def schema_name(bus_name: str) -> str:
    return f"{SCHEMA_PREFIX}{bus_name}"


def validate_bus_name(bus_name: str) -> str:
    """
    Validate a bus name.

    Args:
        bus_name: The bus name.

    Returns:
        The name, unchanged.

    Raises:
        InvalidBusNameError: If the name is malformed or too long.
    """
    if not is_valid_name(bus_name):
        raise InvalidBusNameError(bus_name)
    if len(schema_name(bus_name)) > MAX_IDENTIFIER_LENGTH:
        raise InvalidBusNameError(
            bus_name, f"schema name exceeds {MAX_IDENTIFIER_LENGTH} bytes"
        )
    return bus_name


@dataclass(frozen=True)
class QueueNames:
    """
    Deterministic storage names for one (bus, queue) pair.

    The schema separates buses and the table separates queues, so two
    distinct pairs never map to the same object.
    """

    bus_name: str
    queue_name: str

    @classmethod
    def build(cls, bus_name: str, queue_name: str) -> "QueueNames":
        """
        Validate both names and derive storage names from them.

        Raises:
            InvalidBusNameError: If the bus name is rejected.
            InvalidQueueNameError: If the queue name is rejected.
        """
        validate_bus_name(bus_name)
        if not is_valid_name(queue_name):
            raise InvalidQueueNameError(queue_name)
        names = cls(bus_name=bus_name, queue_name=queue_name)
        if len(names.channel) > MAX_IDENTIFIER_LENGTH:
            raise InvalidQueueNameError(
                queue_name, f"channel name exceeds {MAX_IDENTIFIER_LENGTH} bytes"
            )
        return names

    @property
    def schema(self) -> str:
        return schema_name(self.bus_name)

    @property
    def table(self) -> str:
        return f"{self.queue_name}{TABLE_SUFFIX}"

    @property
    def qualified_table(self) -> str:
        """Quoted ``schema.table`` for use in statements."""
        return f"{quote_ident(self.schema)}.{quote_ident(self.table)}"

    @property
    def channel(self) -> str:
        """Notification channel, one per queue."""
        return f"{self.schema}.{self.table}"

"""
Message type definitions for internal use.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class RawMessage:
    """
    A claimed row before decoding.

    The id is only used for logging; messages have no identity beyond
    the row that carries them.
    """

    id: int
    body: bytes

    def __len__(self) -> int:
        return len(self.body)


@dataclass(frozen=True)
class Notification:
    """A signal received on a queue's channel. Carries no payload semantics."""

    channel: str
    pid: int
    payload: str = ""

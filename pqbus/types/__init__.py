"""
Type definitions for pqbus.
Contains codec protocol and built-in codecs, and internal message types.
"""

from pqbus.types.codec import (
    BytesCodec,
    Codec,
    JsonCodec,
    ModelCodec,
    Utf8Codec,
)
from pqbus.types.message import (
    Notification,
    RawMessage,
)

__all__ = [
    # Codecs
    "Codec",
    "Utf8Codec",
    "BytesCodec",
    "JsonCodec",
    "ModelCodec",
    # Message types
    "RawMessage",
    "Notification",
]

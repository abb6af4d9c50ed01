"""
Message codecs.

A codec converts between application values and the raw bytes stored in
the ``body`` column. Any object with ``encode`` and ``decode`` methods
satisfies the ``Codec`` protocol; no base class is required.

Codecs raise their own exception types. The queue wraps them in
``BodySerializeError`` / ``BodyDeserializeError`` and keeps the original
on ``cause``.
"""

from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

from pydantic import BaseModel, TypeAdapter

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


@runtime_checkable
class Codec(Protocol[T]):
    """
    Encode/decode pair for one value type.

    ``decode`` must accept every byte string ``encode`` produced for the
    same type, and return an equal value.
    """

    def encode(self, value: T) -> bytes:
        """Convert a value to the wire payload."""
        ...

    def decode(self, data: bytes) -> T:
        """Convert a wire payload back to a value."""
        ...


class Utf8Codec:
    """UTF-8 text. Decoding raises ``UnicodeDecodeError`` on invalid input."""

    def encode(self, value: str) -> bytes:
        return value.encode("utf-8")

    def decode(self, data: bytes) -> str:
        return bytes(data).decode("utf-8")

    def __repr__(self) -> str:
        return "Utf8Codec()"


class BytesCodec:
    """Raw bytes, passed through untouched."""

    def encode(self, value: bytes) -> bytes:
        return bytes(value)

    def decode(self, data: bytes) -> bytes:
        return bytes(data)

    def __repr__(self) -> str:
        return "BytesCodec()"


class JsonCodec(Generic[T]):
    """
    JSON documents, validated against an optional type.

    Uses a pydantic ``TypeAdapter`` so ``JsonCodec(list[int])`` both
    serializes and validates. Without a type any JSON value is accepted.
    """

    def __init__(self, type_: Any = Any) -> None:
        self._type = type_
        self._adapter: TypeAdapter[Any] = TypeAdapter(type_)

    def encode(self, value: T) -> bytes:
        return self._adapter.dump_json(value)

    def decode(self, data: bytes) -> T:
        return self._adapter.validate_json(bytes(data))

    def __repr__(self) -> str:
        return f"JsonCodec({self._type!r})"


class ModelCodec(Generic[M]):
    """Pydantic models, serialized with ``model_dump_json``."""

    def __init__(self, model: type[M]) -> None:
        self.model = model

    def encode(self, value: M) -> bytes:
        return value.model_dump_json().encode("utf-8")

    def decode(self, data: bytes) -> M:
        return self.model.model_validate_json(bytes(data))

    def __repr__(self) -> str:
        return f"ModelCodec({self.model.__name__})"

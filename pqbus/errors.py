"""
Exception hierarchy for pqbus.

PqBusError
├── InvalidNameError
│   ├── InvalidBusNameError      bus name unsafe for identifiers
│   └── InvalidQueueNameError    queue name unsafe for identifiers
├── BusConnectionError           connect failed after all retries
├── StorageError                 a statement failed (wraps the driver error)
│   ├── CreateError, ListenError, SizeError
│   └── PushError, NotifyError, PopError
├── ReceiveNotificationError     subscription broke while waiting
└── CodecError                   application codec failed (wraps its error)
    ├── BodySerializeError
    └── BodyDeserializeError
"""


class PqBusError(Exception):
    """Base class for all pqbus exceptions."""


class InvalidNameError(PqBusError):
    """Raised when a name cannot be used to build a storage identifier."""

    kind = "name"

    def __init__(self, name: str, reason: str | None = None) -> None:
        self.name = name
        message = f"Invalid {self.kind} {name!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class InvalidBusNameError(InvalidNameError):
    """Raised before connecting when the bus name is rejected."""

    kind = "bus name"


class InvalidQueueNameError(InvalidNameError):
    """Raised before any statement when the queue name is rejected."""

    kind = "queue name"


class BusConnectionError(PqBusError):
    """
    Raised when no connection could be established.

    Attributes
    ----------
    url : str
        The database URL with the password hidden.
    cause : Exception
        The error from the last connection attempt.
    """

    def __init__(self, url: str, cause: BaseException) -> None:
        self.url = url
        self.cause = cause
        super().__init__(f"Giving up on PostgreSQL connection to {url}: {cause}")


class StorageError(PqBusError):
    """
    Wraps a failed statement.

    Attributes
    ----------
    cause : Exception
        The original SQLAlchemy / driver exception.
    """

    operation = "statement"

    def __init__(self, target: str, cause: BaseException) -> None:
        self.target = target
        self.cause = cause
        super().__init__(f"{self.operation} failed on {target}: {cause}")


class CreateError(StorageError):
    operation = "create"


class ListenError(StorageError):
    operation = "listen"


class SizeError(StorageError):
    operation = "size"


class PushError(StorageError):
    operation = "push"


class NotifyError(StorageError):
    operation = "notify"


class PopError(StorageError):
    operation = "pop"


class ReceiveNotificationError(PqBusError):
    """Raised from a wait when the notification channel is broken."""

    def __init__(self, channel: str, reason: str = "connection terminated") -> None:
        self.channel = channel
        super().__init__(f"Cannot receive notifications on {channel!r}: {reason}")


class CodecError(PqBusError):
    """
    Wraps an exception raised by an application codec.

    The codec's own exception type is preserved on ``cause``.
    """

    direction = "convert"

    def __init__(self, cause: BaseException) -> None:
        self.cause = cause
        super().__init__(f"Failed to {self.direction} message body: {cause}")


class BodySerializeError(CodecError):
    """Encoding failed; nothing was written."""

    direction = "serialize"


class BodyDeserializeError(CodecError):
    """
    Decoding failed after the row was claimed.

    The row stays claimed, so the message is consumed regardless.
    """

    direction = "deserialize"

"""
Database connection management.
Opens the single AUTOCOMMIT connection a Bus owns, retrying per a RetryPolicy.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt

from pqbus.config import Settings, get_settings
from pqbus.constants import (
    DEFAULT_CONNECT_BACKOFF_MAX_SECONDS,
    DEFAULT_CONNECT_BACKOFF_SECONDS,
    DEFAULT_CONNECT_MAX_ATTEMPTS,
)
from pqbus.errors import BusConnectionError

logger = logging.getLogger(__name__)

ASYNC_DRIVER = "postgresql+asyncpg"


def exponential_backoff(
    base: float = DEFAULT_CONNECT_BACKOFF_SECONDS,
    cap: float = DEFAULT_CONNECT_BACKOFF_MAX_SECONDS,
) -> Callable[[int], float]:
    """
    Build a backoff function doubling from ``base`` up to ``cap``.

    Args:
        base: Delay after the first failed attempt, in seconds.
        cap: Upper bound on any delay, in seconds.

    Returns:
        A function mapping the 1-based attempt number to a delay.
    """

    def _backoff(attempt: int) -> float:
        return min(cap, base * (2 ** max(0, attempt - 1)))

    return _backoff


def is_transient_error(exc: BaseException) -> bool:
    """Network and driver failures are retried; malformed URLs are not."""
    if isinstance(exc, ArgumentError):
        return False
    return isinstance(exc, (OSError, SQLAlchemyError))


@dataclass(frozen=True)
class RetryPolicy:
    """
    How hard to try when opening a connection.

    Attributes:
        max_attempts: Total attempts, including the first.
        backoff: Maps the 1-based number of the failed attempt to a delay in seconds.
        should_retry: Decides whether an exception is worth another attempt.
    """

    max_attempts: int = DEFAULT_CONNECT_MAX_ATTEMPTS
    backoff: Callable[[int], float] = field(default_factory=exponential_backoff)
    should_retry: Callable[[BaseException], bool] = is_transient_error

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "RetryPolicy":
        """Build the policy described by settings."""
        settings = settings or get_settings()
        return cls(
            max_attempts=settings.connect_max_attempts,
            backoff=exponential_backoff(
                settings.connect_backoff_seconds,
                settings.connect_backoff_max_seconds,
            ),
        )

    @classmethod
    def no_retry(cls) -> "RetryPolicy":
        return cls(max_attempts=1)

    def retrying(self) -> AsyncRetrying:
        """Translate the policy into a tenacity controller."""
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=lambda state: self.backoff(state.attempt_number),
            retry=retry_if_exception(self.should_retry),
            before_sleep=_log_failed_attempt,
            reraise=True,
        )


def _log_failed_attempt(state: RetryCallState) -> None:
    exc = state.outcome.exception() if state.outcome else None
    logger.warning(
        f"Failed to connect to PostgreSQL server: {exc}",
        extra={"attempt": state.attempt_number},
    )


def redact_url(database_url: str | URL) -> str:
    """Render a database URL with its password hidden."""
    try:
        return make_url(database_url).render_as_string(hide_password=True)
    except ArgumentError:
        return "<unparseable database url>"


def coerce_async_url(database_url: str | URL) -> URL:
    """
    Point plain ``postgresql://`` URLs at the asyncpg driver.

    Notifications are received through asyncpg, so any other driver is rejected.

    Raises:
        ArgumentError: If the URL cannot be parsed or names another driver.
    """
    url = make_url(database_url)
    if url.drivername in ("postgresql", "postgres"):
        url = url.set(drivername=ASYNC_DRIVER)
    if url.drivername != ASYNC_DRIVER:
        raise ArgumentError(
            f"pqbus requires the {ASYNC_DRIVER} driver, got {url.drivername!r}"
        )
    return url


def create_bus_engine(database_url: str | URL) -> AsyncEngine:
    """
    Create an engine for one Bus.

    NullPool and AUTOCOMMIT: the Bus holds exactly one connection, and every
    insert commits before its notification is published.
    """
    return create_async_engine(
        coerce_async_url(database_url),
        poolclass=NullPool,
        isolation_level="AUTOCOMMIT",
    )


async def open_connection(
    database_url: str | URL,
    retry_policy: RetryPolicy | None = None,
) -> tuple[AsyncEngine, AsyncConnection]:
    """
    Open a dedicated connection, retrying per the policy.

    Args:
        database_url: SQLAlchemy URL of the database.
        retry_policy: Retry policy. Defaults to the one built from settings.

    Returns:
        Tuple of (engine, connection). The caller owns both.

    Raises:
        BusConnectionError: If the URL is unusable or every attempt failed.
    """
    policy = retry_policy or RetryPolicy.from_settings()
    redacted = redact_url(database_url)

    try:
        engine = create_bus_engine(database_url)
    except ArgumentError as e:
        logger.error(f"Unusable database URL: {e}")
        raise BusConnectionError(redacted, e) from e

    try:
        async for attempt in policy.retrying():
            with attempt:
                connection = await engine.connect()
    except Exception as e:
        logger.error(
            f"Giving up on PostgreSQL server connection: {e}",
            extra={"url": redacted, "max_attempts": policy.max_attempts},
        )
        await engine.dispose()
        raise BusConnectionError(redacted, e) from e

    logger.info("Database connection opened", extra={"url": redacted})
    return engine, connection

"""
Worker process for consuming or publishing messages.

In consumer mode the worker runs pop_callback on one queue until it is
stopped; in publisher mode it pushes a numbered series of messages.
"""

import asyncio
import logging
import signal
from collections.abc import Awaitable, Callable

from pqbus.bus import Bus, connect
from pqbus.config import Settings, get_settings
from pqbus.constants import WorkerMode
from pqbus.db.connection import RetryPolicy
from pqbus.observability.logging import bind_queue_context, setup_logging
from pqbus.observability.metrics import setup_metrics
from pqbus.observability.tracing import instrument_sqlalchemy, setup_tracing

logger = logging.getLogger(__name__)

Handler = Callable[[str], Awaitable[None]]


async def log_message(message: str) -> None:
    """Default handler: log the message body."""
    logger.info("Received message", extra={"body": message})


async def connect_from_settings(settings: Settings) -> Bus:
    """Connect the Bus described by settings."""
    bus = await connect(
        settings.database_url,
        settings.bus_name,
        retry_policy=RetryPolicy.from_settings(settings),
        claimant=settings.claimant_id,
    )
    if settings.tracing_enabled:
        instrument_sqlalchemy(bus.engine)
    return bus


class Worker:
    """
    Message consumer.

    Features:
    - Wakes on LISTEN/NOTIFY instead of polling
    - Handles every claimable message before sleeping again
    - Graceful shutdown on SIGTERM/SIGINT
    """

    def __init__(
        self,
        queue_name: str | None = None,
        handler: Handler | None = None,
        settings: Settings | None = None,
    ):
        """
        Initialize the worker.

        Args:
            queue_name: Queue to consume. Defaults to settings.
            handler: Coroutine called with each message. Defaults to logging it.
            settings: Settings. Defaults to get_settings().
        """
        self.settings = settings or get_settings()
        self.queue_name = queue_name or self.settings.worker_queue_name
        self.handler = handler or log_message
        self.processed = 0

        self._consume_task: asyncio.Task | None = None
        self._stopping = False

    async def start(self) -> None:
        """Connect and consume until stopped or an error ends the loop."""
        bus = await connect_from_settings(self.settings)
        bind_queue_context(bus=bus.name, queue=self.queue_name)
        logger.info("Worker starting", extra={"claimant": bus.claimant})

        try:
            queue = await bus.queue(self.queue_name)
            if self._stopping:
                return
            self._consume_task = asyncio.create_task(queue.pop_callback(self._handle))
            await self._consume_task
        except asyncio.CancelledError:
            if not self._stopping:
                raise
        finally:
            await bus.close()
            logger.info("Worker stopped", extra={"processed": self.processed})

    async def stop(self) -> None:
        """Stop the worker. A message claimed but not yet handled is lost."""
        logger.info("Worker stopping")
        self._stopping = True
        if self._consume_task is not None:
            self._consume_task.cancel()

    async def _handle(self, message: str) -> None:
        await self.handler(message)
        self.processed += 1


async def publish(
    bus: Bus,
    queue_name: str,
    count: int,
    interval_seconds: float = 0.0,
) -> int:
    """
    Push ``count`` messages ``some_data <n>`` to a queue.

    Returns:
        Number of messages pushed.
    """
    queue = await bus.queue(queue_name)
    for n in range(count):
        await queue.push(f"some_data {n}")
        logger.debug("Pushed message", extra={"n": n})
        if interval_seconds:
            await asyncio.sleep(interval_seconds)
    return count


async def run_async() -> None:
    """Run the worker asynchronously."""
    settings = get_settings()
    setup_logging(settings)
    setup_metrics(settings.prometheus_port)
    if settings.tracing_enabled:
        setup_tracing()

    if settings.worker_mode == WorkerMode.PUBLISHER:
        async with await connect_from_settings(settings) as bus:
            pushed = await publish(
                bus,
                settings.worker_queue_name,
                settings.worker_publish_count,
                settings.worker_publish_interval_seconds,
            )
        logger.info("Publisher finished", extra={"pushed": pushed})
        return

    worker = Worker(settings=settings)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: asyncio.create_task(worker.stop())
        )

    await worker.start()


def run() -> None:
    """Run the worker."""
    asyncio.run(run_async())


if __name__ == "__main__":
    run()

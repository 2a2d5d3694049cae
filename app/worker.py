#!/usr/bin/env python3
"""
Generation worker process.

Runs the queue receive loop and the serialized dispatcher side by side;
delivery tasks are spawned by the dispatcher. Run separately from the web
process:

    python -m worker            (from the app/ directory)
    slack-diffusion-worker      (installed console script)
"""

import asyncio
import signal
from typing import Optional

from core.clients import build_client_registry
from core.config import settings
from core.logger import logger
from core.readiness import ClientRegistry
from integrations.sqs_client import JobQueue
from integrations.stability_client import StabilityClient
from services.delivery_service import DeliveryWorker
from services.dispatcher_service import GenerationBackend, GenerationDispatcher


async def run_worker(
    registry: Optional[ClientRegistry] = None,
    backend: Optional[GenerationBackend] = None,
    stop: Optional[asyncio.Event] = None,
) -> None:
    """
    Run until `stop` is set or one of the loops dies.
    SIGTERM and SIGINT set `stop` when it is not supplied by the caller.
    """
    registry = registry or build_client_registry()
    backend = backend or StabilityClient()
    if stop is None:
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, stop.set)

    registry.start()
    handoff: asyncio.Queue = asyncio.Queue(maxsize=settings.HANDOFF_QUEUE_SIZE)
    dispatcher = GenerationDispatcher(handoff, backend, DeliveryWorker(registry.storage), registry.chat)

    queue: JobQueue = await registry.queue.get()
    loops = [
        asyncio.create_task(queue.consume(handoff), name="receive-loop"),
        asyncio.create_task(dispatcher.run(), name="dispatcher"),
    ]
    stopper = asyncio.create_task(stop.wait(), name="stop")

    try:
        done, _ = await asyncio.wait([*loops, stopper], return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            if task is not stopper and not task.cancelled() and task.exception() is not None:
                logger.error(f"{task.get_name()} stopped: {task.exception()}")
                raise task.exception()
    finally:
        logger.info("Shutting down worker...")
        for task in [*loops, stopper]:
            task.cancel()
        await asyncio.gather(*loops, stopper, return_exceptions=True)
        if dispatcher.in_flight:
            logger.info(f"Waiting for {len(dispatcher.in_flight)} delivery task(s)")
            await asyncio.gather(*dispatcher.in_flight, return_exceptions=True)
        await registry.aclose()
        logger.info("Worker stopped.")


def main() -> None:
    logger.info("=" * 60)
    logger.info(f"Starting {settings.PROJECT_NAME} worker")
    logger.info(f"  Queue: {settings.SQS_QUEUE_URL}")
    logger.info(f"  Bucket: {settings.STORAGE_BUCKET}")
    logger.info(f"  Image size: {settings.IMAGE_WIDTH}x{settings.IMAGE_HEIGHT}")
    logger.info("=" * 60)
    asyncio.run(run_worker())


if __name__ == "__main__":
    main()

# services/dispatcher_service.py
"""
Serialized generation dispatcher.

The generation backend is the scarce resource, so exactly one generation
call is in flight per worker process. Jobs arrive on an in-process hand-off
channel fed by the queue's receive loop and are taken strictly one at a time,
in arrival order.

Finished images are handed to a delivery task and the loop goes straight back
to the channel. Delivery tasks are not awaited, not ordered relative to each
other, and have no barrier across them.

There is no timeout around the generation call. A backend that never answers
stalls this loop, and with it every job behind it.
"""

import asyncio
from typing import Optional, Protocol, Set

from core.config import settings
from core.logger import logger
from core.readiness import ClientHandle
from integrations.slack_client import ChatPlatform
from schemas.job_models import GeneratedArtifact, JobDescriptor
from services.delivery_service import DeliveryWorker
from services.status_service import StatusMessage


class GenerationBackend(Protocol):
    def generate(self, prompt: str, count: int, width: int, height: int) -> list: ...


class GenerationDispatcher:

    def __init__(
        self,
        handoff: asyncio.Queue,
        backend: GenerationBackend,
        delivery: DeliveryWorker,
        chat: ClientHandle,
        width: int = None,
        height: int = None,
        max_images: int = None,
    ):
        self.handoff = handoff
        self.backend = backend
        self.delivery = delivery
        self.chat = chat
        self.width = width or settings.IMAGE_WIDTH
        self.height = height or settings.IMAGE_HEIGHT
        self.max_images = max_images or settings.MAX_IMAGE_COUNT
        self._in_flight: Set[asyncio.Task] = set()

    @property
    def in_flight(self) -> Set[asyncio.Task]:
        """Delivery tasks that have not finished yet."""
        return set(self._in_flight)

    async def run(self) -> None:
        """Consume the hand-off channel forever."""
        logger.info(f"Dispatcher started width={self.width} height={self.height} max_images={self.max_images}")
        while True:
            job = await self.handoff.get()
            try:
                await self.dispatch(job)
            except Exception:
                logger.exception(f"{job.correlation_id} dispatch failed unexpectedly")
            finally:
                self.handoff.task_done()

    async def dispatch(self, job: JobDescriptor) -> Optional[asyncio.Task]:
        """
        Generate one job's images and spawn its delivery.

        Returns the delivery task, or None when the job ended here.
        """
        job_id = job.correlation_id
        platform: ChatPlatform = await self.chat.get()
        try:
            slack = await asyncio.to_thread(platform.for_user, job.requester_id)
        except Exception as e:
            # without the user's token the status message cannot be edited
            logger.error(f"{job_id} dropped, no chat client for {job.requester_id}: {e}")
            return None

        status = StatusMessage(slack, job_id, job.conversation_id, job.message_ref)
        count = min(job.image_count, self.max_images)
        if count != job.image_count:
            logger.warning(f"{job_id} requested {job.image_count} images, generating {count}")

        logger.info(f"{job_id} generating {count} image(s): {job.prompt}")
        await status.mark_generating()
        try:
            images = await asyncio.to_thread(
                self.backend.generate, job.prompt, count, self.width, self.height
            )
        except Exception as e:
            logger.error(f"{job_id} generation failed: {e}")
            await status.mark_errored()
            return None

        artifacts = [GeneratedArtifact(job_id, i, data) for i, data in enumerate(images)]
        task = asyncio.create_task(self.delivery.deliver(job, status, artifacts), name=f"deliver-{job_id}")
        self._in_flight.add(task)
        task.add_done_callback(self._delivery_done)
        return task

    def _delivery_done(self, task: asyncio.Task) -> None:
        self._in_flight.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"{task.get_name()} crashed: {task.exception()}")

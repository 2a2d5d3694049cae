# services/delivery_service.py
import asyncio
from typing import List

from core.logger import logger
from core.readiness import ClientHandle
from integrations.s3_client import ObjectStore
from schemas.job_models import GeneratedArtifact, JobDescriptor
from services.status_service import StatusMessage


class DeliveryWorker:
    """
    Uploads a job's images and performs the final status edit.

    One `deliver` call runs per generated job, as its own task, alongside
    other deliveries and the next generation.
    """

    def __init__(self, storage: ClientHandle):
        self.storage = storage

    async def deliver(self, job: JobDescriptor, status: StatusMessage,
                      artifacts: List[GeneratedArtifact]) -> bool:
        """
        Returns True once every artifact is stored, whether or not the final
        edit reached Slack. Returns False after an upload failure; objects
        uploaded before the failure stay in the bucket.
        """
        job_id = job.correlation_id
        await status.mark_loading()
        logger.info(f"{job_id} uploading {len(artifacts)} image(s)")

        urls: List[str] = []
        try:
            store: ObjectStore = await self.storage.get()
            requester_name = await asyncio.to_thread(status.chat.get_user_name, job.requester_id)
            metadata = {
                "prompt": job.prompt,
                "user-id": job.requester_id,
                "name": requester_name,
            }

            for artifact in artifacts:
                url = await asyncio.to_thread(store.upload, artifact.object_key, artifact.data, metadata)
                urls.append(url)
        except Exception as e:
            logger.error(f"{job_id} upload failed after {len(urls)} image(s): {e}")
            await status.mark_errored()
            return False
        finally:
            # the bucket owns the images now, or the job is abandoned
            artifacts.clear()

        logger.info(f"{job_id} sending response")
        if not await status.mark_delivered(urls, job.prompt):
            logger.error(f"{job_id} images stored but final message edit did not go through")
        return True

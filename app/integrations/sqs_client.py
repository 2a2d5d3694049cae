# app/integrations/sqs_client.py
import asyncio
from typing import Any, Dict, Optional

from pydantic import ValidationError

from core.config import settings
from core.logger import logger
from schemas.job_models import JobDescriptor


class JobQueue:
    """
    Durable, at-least-once channel between intake and the worker.

    Publishing is synchronous (called through asyncio.to_thread by intake);
    `consume` is the worker's receive loop.
    """

    def __init__(self, sqs, queue_url: str = None):
        self._sqs = sqs
        self.queue_url = queue_url or settings.SQS_QUEUE_URL

    def publish(self, job: JobDescriptor) -> str:
        """
        Publish a job. Bodies are a few hundred bytes, well under the 256KB limit.
        """
        params = {
            "QueueUrl": self.queue_url,
            "MessageBody": job.to_wire(),
            "MessageAttributes": {
                "correlation_id": {"DataType": "String", "StringValue": job.correlation_id},
                "content_type": {"DataType": "String", "StringValue": "application/json"},
            },
        }
        resp = self._sqs.send_message(**params)
        msg_id = resp.get("MessageId", "")
        logger.info("SQS publish ok job_id=%s msg_id=%s", job.correlation_id, msg_id)
        return msg_id

    def ack(self, message: Dict[str, Any]) -> None:
        self._sqs.delete_message(QueueUrl=self.queue_url, ReceiptHandle=message["ReceiptHandle"])

    def nack(self, message: Dict[str, Any]) -> None:
        """Make the message visible again right away so it is redelivered."""
        self._sqs.change_message_visibility(
            QueueUrl=self.queue_url,
            ReceiptHandle=message["ReceiptHandle"],
            VisibilityTimeout=0,
        )

    def receive(self) -> list:
        resp = self._sqs.receive_message(
            QueueUrl=self.queue_url,
            MaxNumberOfMessages=settings.SQS_MAX_MESSAGES,
            WaitTimeSeconds=settings.SQS_WAIT_TIME_SECONDS,
            MessageAttributeNames=["All"],
        )
        return resp.get("Messages", [])

    async def consume(self, handoff: asyncio.Queue) -> None:
        """
        Receive loop: settle the whole batch first, then forward the decoded
        jobs to the dispatcher's hand-off channel in order. Runs until cancelled.

        The hand-off channel blocks while the dispatcher is generating, so no
        message may wait on it un-acked past its visibility timeout.

        Errors from SQS itself propagate; botocore has already retried them.
        """
        logger.info(f"Listening on {self.queue_url}")
        while True:
            messages = await asyncio.to_thread(self.receive)
            jobs = []
            for message in messages:
                job = await self.settle(message)
                if job is not None:
                    jobs.append(job)
            for job in jobs:
                await handoff.put(job)

    async def settle(self, message: Dict[str, Any]) -> Optional[JobDescriptor]:
        """Decode one message and ack it, or nack it when it does not decode."""
        try:
            job = JobDescriptor.from_wire(message["Body"])
        except (ValidationError, KeyError) as e:
            logger.error(f"Undecodable queue message msg_id={message.get('MessageId')}: {e}")
            await asyncio.to_thread(self.nack, message)
            return None

        await asyncio.to_thread(self.ack, message)
        logger.info(f"{job.correlation_id} received from queue")
        return job

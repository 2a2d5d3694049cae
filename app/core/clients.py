# core/clients.py
"""
Factories for the three process-wide clients. Each runs once, in a worker
thread, when the registry starts.
"""

from core.aws_client import get_s3_client, get_sqs_client
from core.readiness import ClientRegistry, FailureCallback, terminate_process
from core.redis_client import RedisClient
from integrations.s3_client import ObjectStore
from integrations.slack_client import ChatPlatform
from integrations.sqs_client import JobQueue
from services.credential_service import CredentialStore


def build_job_queue() -> JobQueue:
    return JobQueue(get_sqs_client())


def build_object_store() -> ObjectStore:
    return ObjectStore(get_s3_client())


def build_chat_platform() -> ChatPlatform:
    redis_client = RedisClient()
    return ChatPlatform(CredentialStore(redis_client.get_client(), owner=redis_client))


def build_client_registry(on_failure: FailureCallback = terminate_process) -> ClientRegistry:
    return ClientRegistry(
        queue_factory=build_job_queue,
        storage_factory=build_object_store,
        chat_factory=build_chat_platform,
        on_failure=on_failure,
    )

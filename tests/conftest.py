"""Shared test fixtures and fakes for every external client."""

from __future__ import annotations

import os
import threading
import time

# Required settings must exist before anything imports core.config
os.environ.setdefault("SQS_QUEUE_URL", "https://sqs.us-east-1.amazonaws.com/123456789012/diffusion-jobs")
os.environ.setdefault("STORAGE_BUCKET", "diffusion-images")
os.environ.setdefault("STORAGE_PUBLIC_HOST", "storage.example.com")
os.environ.setdefault("STABILITY_API_KEY", "sk-test")
os.environ.setdefault("SLACK_CLIENT_ID", "1111.2222")
os.environ.setdefault("SLACK_CLIENT_SECRET", "client-secret")
os.environ.setdefault("SLACK_SIGNING_SECRET", "signing-secret")
os.environ.setdefault("INTAKE_RATE_LIMIT", "1000/minute")

import pytest  # noqa: E402

from core.errors import AuthorizationRequired, GenerationError  # noqa: E402
from integrations.s3_client import ObjectStore  # noqa: E402
from integrations.sqs_client import JobQueue  # noqa: E402


class FakeSlack:
    """Records Slack calls the way SlackClient would make them."""

    def __init__(self) -> None:
        self.posts: list[tuple[str, list, str]] = []
        self.updates: list[tuple[str, str, list, str]] = []
        self.fail_posts_from: int | None = None
        self.fail_updates = False
        self._lock = threading.Lock()

    def post_message(self, channel, blocks, text=""):
        with self._lock:
            if self.fail_posts_from is not None and len(self.posts) >= self.fail_posts_from:
                raise RuntimeError("chat.postMessage failed: channel_not_found")
            self.posts.append((channel, blocks, text))
            return channel, f"1700000000.{len(self.posts):06d}"

    def update_message(self, channel, ts, blocks, text=""):
        with self._lock:
            if self.fail_updates:
                raise RuntimeError("chat.update failed: message_not_found")
            self.updates.append((channel, ts, blocks, text))

    def get_user_name(self, user_id):
        return "fox (Mr Fox)"

    def texts_for(self, ts: str) -> list[str]:
        """Section text (or 'images') of every edit made to one message."""
        texts = []
        for _, update_ts, blocks, _ in self.updates:
            if update_ts != ts:
                continue
            if blocks and blocks[0]["type"] == "image":
                texts.append("images")
            else:
                texts.append(blocks[0]["text"]["text"])
        return texts


class FakePlatform:
    def __init__(self, slack: FakeSlack, tokens: dict[str, str] | None = None) -> None:
        self.slack = slack
        self.tokens = dict(tokens or {})

    def for_user(self, user_id):
        if user_id not in self.tokens:
            raise AuthorizationRequired(user_id)
        return self.slack

    def authorize_url(self):
        return "https://slack.com/oauth/v2/authorize?client_id=1111.2222"

    def exchange_code(self, code):
        if code != "good-code":
            raise RuntimeError("invalid_code")
        self.tokens["U_NEW"] = "xoxp-new"
        return "U_NEW", "xoxp-new"


class FakeSQS:
    """Just enough of the boto3 SQS client."""

    def __init__(self, messages: list[dict] | None = None) -> None:
        self.pending = list(messages or [])
        self.sent: list[dict] = []
        self.deleted: list[str] = []
        self.made_visible: list[str] = []
        self.fail_send = False

    def send_message(self, **params):
        if self.fail_send:
            raise RuntimeError("AWS.SimpleQueueService.NonExistentQueue")
        self.sent.append(params)
        return {"MessageId": f"msg-{len(self.sent)}"}

    def receive_message(self, **params):
        if not self.pending:
            time.sleep(0.01)
            return {}
        batch, self.pending = self.pending, []
        return {"Messages": batch}

    def delete_message(self, QueueUrl, ReceiptHandle):
        self.deleted.append(ReceiptHandle)

    def change_message_visibility(self, QueueUrl, ReceiptHandle, VisibilityTimeout):
        assert VisibilityTimeout == 0
        self.made_visible.append(ReceiptHandle)


class FakeS3:
    def __init__(self) -> None:
        self.objects: dict[str, dict] = {}
        self.fail_on_put: int | None = None
        self.gate: threading.Event | None = None
        self._puts = 0

    def put_object(self, **params):
        if self.gate is not None:
            self.gate.wait(5)
        self._puts += 1
        if self.fail_on_put is not None and self._puts == self.fail_on_put:
            raise RuntimeError("SlowDown")
        self.objects[params["Key"]] = params


class FakeBackend:
    """Generation backend that records calls and the peak concurrency."""

    def __init__(self, delay: float = 0.0) -> None:
        self.delay = delay
        self.calls: list[tuple[str, int, int, int]] = []
        self.fail_prompts: set[str] = set()
        self.gate: threading.Event | None = None
        self.active = 0
        self.peak = 0
        self._lock = threading.Lock()

    def generate(self, prompt, count, width, height):
        with self._lock:
            self.calls.append((prompt, count, width, height))
            self.active += 1
            self.peak = max(self.peak, self.active)
        try:
            if self.gate is not None:
                self.gate.wait(5)
            time.sleep(self.delay)
            if prompt in self.fail_prompts:
                raise GenerationError("status 500: {'message': 'engine overloaded'}")
            return [f"png-{prompt}-{i}".encode() for i in range(count)]
        finally:
            with self._lock:
                self.active -= 1


@pytest.fixture()
def slack() -> FakeSlack:
    return FakeSlack()


@pytest.fixture()
def platform(slack: FakeSlack) -> FakePlatform:
    return FakePlatform(slack, tokens={"U_FOX": "xoxp-fox"})


@pytest.fixture()
def sqs() -> FakeSQS:
    return FakeSQS()


@pytest.fixture()
def job_queue(sqs: FakeSQS) -> JobQueue:
    return JobQueue(sqs)


@pytest.fixture()
def s3() -> FakeS3:
    return FakeS3()


@pytest.fixture()
def object_store(s3: FakeS3) -> ObjectStore:
    return ObjectStore(s3, bucket="diffusion-images", public_host="storage.example.com")


@pytest.fixture()
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture()
def client_factories(job_queue, object_store, platform):
    """Factories for a ClientRegistry; build the registry inside a running loop."""
    return {
        "queue_factory": lambda: job_queue,
        "storage_factory": lambda: object_store,
        "chat_factory": lambda: platform,
    }

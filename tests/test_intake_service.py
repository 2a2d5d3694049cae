from __future__ import annotations

import asyncio
import json

import allure
import pytest

from core.config import settings
from core.errors import AuthorizationRequired, UnknownCommandError
from core.readiness import ClientRegistry
from schemas.job_models import JobDescriptor
from schemas.request_models import SlashCommand
from services.intake_service import IntakeService

pytestmark = [allure.epic("Intake"), allure.feature("Slash command intake")]


def _command(text: str, command: str = "/diffusion", user_id: str = "U_FOX") -> SlashCommand:
    return SlashCommand(command=command, text=text, channel_id="C123", user_id=user_id)


def _run_intake(client_factories, command: SlashCommand):
    async def scenario():
        registry = ClientRegistry(**client_factories, on_failure=lambda n, e: None)
        registry.start()
        return await IntakeService(registry).handle(command)

    return asyncio.run(scenario())


def test_generate_echoes_posts_status_and_publishes(client_factories, slack, sqs) -> None:
    job = _run_intake(client_factories, _command("x2 a red fox"))

    assert job.prompt == "a red fox"
    assert job.image_count == 2
    assert job.requester_id == "U_FOX"
    assert job.conversation_id == "C123"

    echo, status = slack.posts
    assert echo[1][0]["text"] == {"type": "plain_text", "text": "/diffusion x2 a red fox"}
    assert status[1][0]["text"]["text"] == "_Queueing..._"
    assert job.message_ref == "1700000000.000002"

    assert len(sqs.sent) == 1
    sent = sqs.sent[0]
    assert JobDescriptor.from_wire(sent["MessageBody"]) == job
    assert sent["MessageAttributes"]["correlation_id"]["StringValue"] == job.correlation_id
    assert json.loads(sent["MessageBody"])["prompt"] == "a red fox"


def test_count_is_capped(client_factories) -> None:
    job = _run_intake(client_factories, _command("x9 too many cats"))

    assert job.image_count == settings.MAX_IMAGE_COUNT
    assert job.prompt == "too many cats"


def test_plain_prompt_is_one_image(client_factories) -> None:
    job = _run_intake(client_factories, _command("a lighthouse"))

    assert job.image_count == 1
    assert job.prompt == "a lighthouse"


def test_each_job_gets_its_own_correlation_id(client_factories) -> None:
    first = _run_intake(client_factories, _command("one"))
    second = _run_intake(client_factories, _command("two"))

    assert first.correlation_id != second.correlation_id


def test_publish_failure_errors_the_status_message(client_factories, slack, sqs) -> None:
    sqs.fail_send = True

    job = _run_intake(client_factories, _command("a red fox"))

    assert job is None
    assert sqs.sent == []
    status_ts = "1700000000.000002"
    assert slack.texts_for(status_ts) == [settings.ERROR_NOTICE]


def test_status_post_failure_publishes_nothing(client_factories, slack, sqs) -> None:
    # the echo goes through, the status placeholder does not
    slack.fail_posts_from = 1

    with pytest.raises(RuntimeError):
        _run_intake(client_factories, _command("a red fox"))

    assert len(slack.posts) == 1
    assert sqs.sent == []


def test_unknown_command_is_rejected(client_factories, slack, sqs) -> None:
    with pytest.raises(UnknownCommandError):
        _run_intake(client_factories, _command("hello", command="/imagine"))

    assert slack.posts == []
    assert sqs.sent == []


def test_unauthorized_user_is_asked_to_authorize(client_factories, slack, sqs) -> None:
    with pytest.raises(AuthorizationRequired) as excinfo:
        _run_intake(client_factories, _command("a red fox", user_id="U_STRANGER"))

    assert excinfo.value.user_id == "U_STRANGER"
    assert slack.posts == []
    assert sqs.sent == []

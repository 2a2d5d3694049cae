# services/intake_service.py
"""
Intake: turn a verified slash command into a queued generation job.

Steps for the generate command:
1. Parse the optional `x<N> ` prefix and cap the count.
2. Echo the user's command into the channel.
3. Post the status message in QUEUED.
4. Publish the job. If publishing fails the status message goes to ERRORED.

A failure in steps 2-3 aborts before anything is queued.
"""

import asyncio
from typing import Awaitable, Callable, Dict, Optional

from core.config import settings
from core.errors import UnknownCommandError
from core.logger import logger
from core.readiness import ClientRegistry
from integrations.slack_client import ChatPlatform, SlackClient, plain_section_block
from integrations.sqs_client import JobQueue
from schemas.job_models import JobDescriptor, new_correlation_id, parse_command
from schemas.request_models import SlashCommand
from services.status_service import StatusMessage

CommandHandler = Callable[[SlashCommand, SlackClient], Awaitable[Optional[JobDescriptor]]]


class IntakeService:

    def __init__(self, clients: ClientRegistry, max_images: int = None):
        self.clients = clients
        self.max_images = max_images or settings.MAX_IMAGE_COUNT
        self.handlers: Dict[str, CommandHandler] = {
            settings.SLACK_COMMAND: self.generate,
        }

    async def handle(self, command: SlashCommand) -> Optional[JobDescriptor]:
        """
        Route a command to its handler.

        Raises:
            UnknownCommandError: no handler for `command.command`
            AuthorizationRequired: the user has not installed the app yet
        """
        handler = self.handlers.get(command.command)
        if handler is None:
            raise UnknownCommandError(command.command)

        platform: ChatPlatform = await self.clients.chat.get()
        slack = await asyncio.to_thread(platform.for_user, command.user_id)
        return await handler(command, slack)

    async def generate(self, command: SlashCommand, slack: SlackClient) -> Optional[JobDescriptor]:
        """
        Returns the published job, or None when publishing failed (the status
        message already shows the error). Slack errors before the status
        message exists propagate.
        """
        parsed = parse_command(command.text)
        image_count = parsed.image_count
        if image_count > self.max_images:
            logger.warning(
                f"Capping image count from {image_count} to {self.max_images} for {command.user_id}"
            )
            image_count = self.max_images

        job_id = new_correlation_id()
        logger.info(f"{job_id} intake from {command.user_id} in {command.channel_id}: {parsed.prompt}")

        # the visible echo lets later messages land before Slack's HTTP reply
        await asyncio.to_thread(
            slack.post_message, command.channel_id, [plain_section_block(command.display)], command.display
        )
        status = await StatusMessage.create(slack, command.channel_id, job_id)

        job = JobDescriptor(
            correlation_id=job_id,
            prompt=parsed.prompt,
            image_count=image_count,
            conversation_id=status.channel,
            message_ref=status.message_ref,
            requester_id=command.user_id,
        )

        try:
            queue: JobQueue = await self.clients.queue.get()
            await asyncio.to_thread(queue.publish, job)
        except Exception as e:
            logger.error(f"{job_id} publish failed: {e}")
            await status.mark_errored()
            return None
        return job

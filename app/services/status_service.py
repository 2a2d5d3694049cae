# services/status_service.py
"""
Status message state machine.

Every job owns exactly one Slack message. It is posted once in QUEUED and
then edited in place as the job moves on:

    QUEUED -> GENERATING -> LOADING -> DELIVERED
    (any of the first three) -> ERRORED

Each transition is one `chat.update` call. A failed edit is logged and
swallowed, the pipeline carries on. DELIVERED and ERRORED are terminal.
"""

import asyncio
from enum import Enum
from typing import Any, Dict, List, Optional

from core.config import settings
from core.errors import StatusTransitionError
from core.logger import logger
from integrations.slack_client import SlackClient, image_block, section_block
from utils.log_event import log_job_event


class JobStatus(str, Enum):
    QUEUED = "queued"
    GENERATING = "generating"
    LOADING = "loading"
    DELIVERED = "delivered"
    ERRORED = "errored"


_PROGRESSION = {
    JobStatus.QUEUED: 0,
    JobStatus.GENERATING: 1,
    JobStatus.LOADING: 2,
    JobStatus.DELIVERED: 3,
}

TERMINAL_STATES = {JobStatus.DELIVERED, JobStatus.ERRORED}

PROGRESS_TEXT = {
    JobStatus.QUEUED: "_Queueing..._",
    JobStatus.GENERATING: "_Generating..._",
    JobStatus.LOADING: "_Loading..._",
}


def render(state: JobStatus) -> List[Dict[str, Any]]:
    """Blocks for every state except DELIVERED, which carries the images."""
    if state == JobStatus.ERRORED:
        return [section_block(settings.ERROR_NOTICE)]
    return [section_block(PROGRESS_TEXT[state])]


def fallback_text(state: JobStatus) -> str:
    """Plain text Slack shows in notifications for a block message."""
    if state == JobStatus.ERRORED:
        return settings.ERROR_NOTICE
    return PROGRESS_TEXT.get(state, "")


def render_delivered(urls: List[str], prompt: str, job_id: str) -> List[Dict[str, Any]]:
    return [image_block(url, prompt, f"{job_id}_{i}") for i, url in enumerate(urls)]


class StatusMessage:
    """The single authority for one job's visible state."""

    def __init__(self, chat: SlackClient, job_id: str, channel: str, ts: str,
                 state: JobStatus = JobStatus.QUEUED):
        self.chat = chat
        self.job_id = job_id
        self.channel = channel
        self.ts = ts
        self.state = state

    @property
    def message_ref(self) -> str:
        return self.ts

    @classmethod
    async def create(cls, chat: SlackClient, channel: str, job_id: str) -> "StatusMessage":
        """
        Post the QUEUED placeholder. Unlike later edits, failure here raises:
        without a message there is nothing to report progress on.
        """
        channel, ts = await asyncio.to_thread(
            chat.post_message, channel, render(JobStatus.QUEUED), PROGRESS_TEXT[JobStatus.QUEUED]
        )
        log_job_event("job_queued", job_id, channel=channel, ts=ts)
        return cls(chat, job_id, channel, ts)

    async def advance(self, state: JobStatus, blocks: Optional[List[Dict[str, Any]]] = None) -> bool:
        """
        Move to `state` and perform its one edit.

        Returns True when the edit went through. Returns False when the
        message is already terminal or the edit failed.

        Raises:
            StatusTransitionError: on a backward or repeated transition
        """
        if self.state in TERMINAL_STATES:
            logger.info(f"{self.job_id} ignoring {state.value}, already {self.state.value}")
            return False
        if state != JobStatus.ERRORED and _PROGRESSION[state] <= _PROGRESSION[self.state]:
            raise StatusTransitionError(f"{self.job_id}: {self.state.value} -> {state.value}")

        previous, self.state = self.state, state
        blocks = blocks if blocks is not None else render(state)
        log_job_event(f"job_{state.value}", self.job_id, previous=previous.value)
        try:
            await asyncio.to_thread(self.chat.update_message, self.channel, self.ts, blocks,
                                    fallback_text(state))
        except Exception as e:
            log_job_event("status_edit_failed", self.job_id, state=state.value, error=str(e))
            return False
        return True

    async def mark_generating(self) -> bool:
        return await self.advance(JobStatus.GENERATING)

    async def mark_loading(self) -> bool:
        return await self.advance(JobStatus.LOADING)

    async def mark_delivered(self, urls: List[str], prompt: str) -> bool:
        return await self.advance(JobStatus.DELIVERED, render_delivered(urls, prompt, self.job_id))

    async def mark_errored(self) -> bool:
        return await self.advance(JobStatus.ERRORED)

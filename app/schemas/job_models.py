# schemas/job_models.py
import re
from dataclasses import dataclass
from typing import NamedTuple, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

_COUNT_PREFIX = re.compile(r"^x(\d+) (.*)$", re.DOTALL)


class ParsedCommand(NamedTuple):
    prompt: str
    image_count: int


def parse_command(text: str) -> ParsedCommand:
    """
    Split an optional `x<N> ` repeat prefix off a command body.

    The count is returned as typed; capping to the configured maximum is the
    caller's job. A prefix whose N is not a positive integer is not a prefix,
    so the whole text stays the prompt.
    """
    match = _COUNT_PREFIX.match(text)
    if match:
        count = int(match.group(1))
        if count > 0:
            return ParsedCommand(prompt=match.group(2), image_count=count)
    return ParsedCommand(prompt=text, image_count=1)


def new_correlation_id() -> str:
    return uuid4().hex


class JobDescriptor(BaseModel):
    """
    One image-generation request, as carried on the queue.
    Immutable once built; `correlation_id` names both log lines and objects.
    """

    model_config = ConfigDict(frozen=True)

    correlation_id: str = Field(..., min_length=1)
    prompt: str
    image_count: int = Field(default=1, ge=1)
    conversation_id: str = Field(..., min_length=1)
    message_ref: str = Field(..., min_length=1)
    requester_id: str = Field(..., min_length=1)

    def to_wire(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_wire(cls, body: Union[str, bytes]) -> "JobDescriptor":
        """Raises pydantic.ValidationError on a malformed payload."""
        return cls.model_validate_json(body)


@dataclass
class GeneratedArtifact:
    """Raw image bytes for one index of a job's output."""

    correlation_id: str
    index: int
    data: bytes

    @property
    def object_key(self) -> str:
        return f"{self.correlation_id}_{self.index}.png"

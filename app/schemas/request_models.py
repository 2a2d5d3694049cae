# schemas/request_models.py
from pydantic import BaseModel, Field
from typing import Dict, Optional
from urllib.parse import parse_qs


class SlashCommand(BaseModel):
    """
    A Slack slash command invocation.
    Slack posts these form-encoded; field names follow Slack's payload.
    """
    command: str
    text: str = ""
    channel_id: str
    user_id: str
    response_url: str = ""
    team_id: Optional[str] = None
    trigger_id: Optional[str] = None

    @property
    def display(self) -> str:
        """The command as the user typed it."""
        return f"{self.command} {self.text}".rstrip()

    @classmethod
    def from_form(cls, body: bytes) -> "SlashCommand":
        """
        Build from the raw form body. The body is parsed by hand because the
        signature check needs the exact bytes anyway.

        Raises ValidationError on missing fields and UnicodeDecodeError on a
        body that is not UTF-8.
        """
        fields = parse_qs(body.decode("utf-8"), keep_blank_values=True)
        return cls(**{key: values[0] for key, values in fields.items() if key in cls.model_fields})


class HealthResponse(BaseModel):
    status: str = Field(..., description="healthy while every client is ready, else degraded")
    message: str
    clients: Dict[str, str] = Field(default_factory=dict)

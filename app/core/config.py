# core/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from typing import Optional, List


class Settings(BaseSettings):
    """
    Centralized application configuration.
    Required values have no default, so a missing one fails at import time
    instead of on the first request.
    """

    # ------------------------------------------------------------
    # Project / Runtime
    # ------------------------------------------------------------
    PROJECT_NAME: str = "Slack Diffusion"
    DEBUG: bool = False

    # HTTP / API
    INTAKE_RATE_LIMIT: str = "30/minute"

    # ------------------------------------------------------------
    # AWS Core
    # ------------------------------------------------------------
    AWS_REGION: str = "us-east-1"
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    AWS_SESSION_TOKEN: Optional[str] = None

    # ------------------------------------------------------------
    # Messaging (SQS)
    # ------------------------------------------------------------
    SQS_QUEUE_URL: str = Field(..., description="Queue carrying serialized generation jobs")
    SQS_WAIT_TIME_SECONDS: int = 20
    SQS_MAX_MESSAGES: int = 10

    """
    Size of the in-process channel between the receive loop and the
    dispatcher. The receive loop blocks while it is full.
    """
    HANDOFF_QUEUE_SIZE: int = 1

    # ------------------------------------------------------------
    # S3 Storage
    # ------------------------------------------------------------
    STORAGE_BUCKET: str = Field(..., description="Bucket receiving generated images")
    STORAGE_PUBLIC_HOST: Optional[str] = Field(
        default=None,
        description="Host used in public image URLs (defaults to the regional S3 endpoint)"
    )

    @property
    def storage_public_host(self) -> str:
        return self.STORAGE_PUBLIC_HOST or f"s3.{self.AWS_REGION}.amazonaws.com"

    # ------------------------------------------------------------
    # Image generation (Stability)
    # ------------------------------------------------------------
    STABILITY_API_HOST: str = "https://api.stability.ai"
    STABILITY_API_KEY: str = Field(..., description="Bearer token for the generation backend")
    STABILITY_ENGINE_ID: str = "stable-diffusion-512-v2-0"
    STABILITY_CFG_SCALE: float = 7.0
    STABILITY_STEPS: int = 50
    STABILITY_CLIP_GUIDANCE_PRESET: str = "FAST_BLUE"

    IMAGE_WIDTH: int = 512
    IMAGE_HEIGHT: int = 512

    """
    Upper bound for the `x<N>` repeat prefix. Larger requests are capped.
    """
    MAX_IMAGE_COUNT: int = 4

    @field_validator("IMAGE_WIDTH", "IMAGE_HEIGHT", "MAX_IMAGE_COUNT", "HANDOFF_QUEUE_SIZE")
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be a positive integer")
        return v

    # ------------------------------------------------------------
    # Slack
    # ------------------------------------------------------------
    SLACK_API_BASE: str = "https://slack.com/api"
    SLACK_CLIENT_ID: str = Field(..., description="OAuth client id of the Slack app")
    SLACK_CLIENT_SECRET: str = Field(..., description="OAuth client secret of the Slack app")
    SLACK_SIGNING_SECRET: str = Field(..., description="Secret used to verify slash command requests")
    SLACK_SIGNATURE_MAX_AGE_SECONDS: int = 300
    SLACK_COMMAND: str = "/diffusion"
    SLACK_BOT_SCOPES: List[str] = ["commands"]
    SLACK_USER_SCOPES: List[str] = ["chat:write", "users:read"]
    SLACK_HTTP_TIMEOUT_SECONDS: int = 10

    ERROR_NOTICE: str = "Oh no! Something went wrong, please try again in a little while."

    # ------------------------------------------------------------
    # Redis Configuration (per-user Slack tokens)
    # ------------------------------------------------------------
    REDIS_HOST: str = Field(
        default="localhost",
        description="Redis server hostname"
    )
    REDIS_PORT: int = Field(
        default=6379,
        description="Redis server port"
    )
    REDIS_DB: int = Field(
        default=0,
        description="Redis database number (0-15)"
    )
    REDIS_PASSWORD: Optional[str] = Field(
        default=None,
        description="Redis password (optional)"
    )
    REDIS_SSL: bool = Field(
        default=False,
        description="Use TLS/SSL for Redis connection"
    )
    REDIS_SOCKET_TIMEOUT: int = 5
    REDIS_SOCKET_CONNECT_TIMEOUT: int = 5
    REDIS_MAX_CONNECTIONS: int = 20

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()

# core/auth.py
"""
Slack request signature verification.

Slack signs every slash command with the app's signing secret:
    X-Slack-Signature: v0=<hex hmac-sha256 of "v0:{timestamp}:{raw body}">
Requests older than SLACK_SIGNATURE_MAX_AGE_SECONDS are rejected as replays.
"""

import hashlib
import hmac
import time
from typing import Optional

from fastapi import HTTPException, Request, status

from core.config import settings
from core.logger import logger


def compute_signature(secret: str, timestamp: str, body: bytes) -> str:
    base = b"v0:" + timestamp.encode("utf-8") + b":" + body
    digest = hmac.new(secret.encode("utf-8"), base, hashlib.sha256).hexdigest()
    return f"v0={digest}"


def is_valid_signature(
    body: bytes,
    timestamp: Optional[str],
    signature: Optional[str],
    secret: str = None,
    now: float = None,
) -> bool:
    if not timestamp or not signature:
        return False
    try:
        sent_at = int(timestamp)
    except ValueError:
        return False

    now = time.time() if now is None else now
    if abs(now - sent_at) > settings.SLACK_SIGNATURE_MAX_AGE_SECONDS:
        return False

    expected = compute_signature(secret or settings.SLACK_SIGNING_SECRET, timestamp, body)
    return hmac.compare_digest(expected, signature)


async def verify_slack_request(request: Request) -> bytes:
    """
    FastAPI dependency: verify the signature and hand back the raw body.

    Raises:
        HTTPException: 401 if the signature is missing, stale or wrong
    """
    body = await request.body()
    timestamp = request.headers.get("X-Slack-Request-Timestamp")
    signature = request.headers.get("X-Slack-Signature")

    if not is_valid_signature(body, timestamp, signature):
        logger.warning(
            f"Rejected Slack request: bad signature "
            f"path={request.url.path} timestamp={timestamp}"
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid request signature",
        )
    return body

# routers/router.py
"""
FastAPI Router for the Slack slash command and OAuth redirect
"""

import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from core.auth import verify_slack_request
from core.config import settings
from core.errors import AuthorizationRequired, UnknownCommandError
from core.logger import logger
from core.rate_limiter import intake_limit, limiter
from integrations.slack_client import ChatPlatform
from schemas.request_models import HealthResponse, SlashCommand


# ============================================================================
# ROUTER CONFIGURATION
# ============================================================================

router = APIRouter(
    tags=["Slack"],
    responses={
        401: {"description": "Unauthorized - Invalid Slack signature"},
        429: {"description": "Too Many Requests"},
        500: {"description": "Internal Server Error"}
    }
)

AUTHORIZE_TEXT = (
    "Oh no! It looks like you're not yet authorized, "
    "please follow the link below and try again!\n"
)
AUTHORIZED_TEXT = "Authorized successfully! You can close this window now :)"


# ============================================================================
# HEALTH CHECK ENDPOINTS
# ============================================================================

@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Service Health Check",
    description="Reports whether each external client has finished construction"
)
async def check_health(request: Request) -> HealthResponse:
    clients = request.app.state.clients.readiness()
    healthy = all(state == "ready" for state in clients.values())
    return HealthResponse(
        status="healthy" if healthy else "degraded",
        message=f"{settings.PROJECT_NAME} is {'operational' if healthy else 'starting up'}",
        clients=clients,
    )


# ============================================================================
# SLASH COMMAND ENDPOINT
# ============================================================================

@router.post(
    "/slack/commands",
    response_class=PlainTextResponse,
    status_code=status.HTTP_200_OK,
    summary="Slack Slash Command",
    description="Queue an image generation request and reply with nothing on success"
)
@limiter.limit(intake_limit)
async def slash_command(
    request: Request,
    body: bytes = Depends(verify_slack_request)
) -> PlainTextResponse:
    """
    Slack shows a non-empty reply to the requester only, so every reply
    here is either the authorize prompt or the generic failure notice.
    Progress is reported through the status message instead.
    """
    try:
        command = SlashCommand.from_form(body)
    except (ValidationError, UnicodeDecodeError) as e:
        logger.warning(f"Malformed slash command payload: {e}")
        return PlainTextResponse(settings.ERROR_NOTICE)

    try:
        await request.app.state.intake.handle(command)

    except AuthorizationRequired:
        # Expected for first-time users; not a pipeline failure
        logger.info(f"Authorization required for user {command.user_id}")
        platform: ChatPlatform = await request.app.state.clients.chat.get()
        return PlainTextResponse(AUTHORIZE_TEXT + platform.authorize_url())

    except UnknownCommandError as e:
        logger.warning(str(e))
        return PlainTextResponse(settings.ERROR_NOTICE)

    except Exception:
        logger.exception(f"Intake failed for {command.display!r} from {command.user_id}")
        return PlainTextResponse(settings.ERROR_NOTICE)

    return PlainTextResponse("")


# ============================================================================
# OAUTH ENDPOINT
# ============================================================================

@router.get(
    "/slack/oauth/redirect",
    response_class=PlainTextResponse,
    status_code=status.HTTP_200_OK,
    summary="Slack OAuth Redirect",
    description="Exchange the OAuth code for a user token and store it"
)
async def oauth_redirect(request: Request, code: Optional[str] = None) -> PlainTextResponse:
    if not code:
        logger.warning("OAuth redirect without code")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing code")

    try:
        platform: ChatPlatform = await request.app.state.clients.chat.get()
        user_id, _ = await asyncio.to_thread(platform.exchange_code, code)
    except Exception as e:
        logger.error(f"OAuth exchange failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Authorization failed"
        )

    logger.info(f"User {user_id} authorized")
    return PlainTextResponse(AUTHORIZED_TEXT)

# app/integrations/slack_client.py
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlencode

import requests

from core.config import settings
from core.errors import AuthorizationRequired, SlackApiError
from core.logger import logger
from services.credential_service import CredentialStore


def section_block(markdown: str) -> Dict[str, Any]:
    return {"type": "section", "text": {"type": "mrkdwn", "text": markdown}}


def plain_section_block(text: str) -> Dict[str, Any]:
    return {"type": "section", "text": {"type": "plain_text", "text": text}}


def image_block(url: str, prompt: str, block_id: str) -> Dict[str, Any]:
    """
    Slack rejects empty alt text and titles, and either one over 2000
    characters. An empty prompt gets stock alt text and no title.
    """
    block = {
        "type": "image",
        "image_url": url,
        "alt_text": prompt[:2000] or "generated image",
        "block_id": block_id,
    }
    if prompt:
        block["title"] = {"type": "plain_text", "text": prompt[:2000]}
    return block


class SlackClient:
    """Slack Web API calls made on behalf of one user token."""

    def __init__(self, token: str, session: requests.Session, api_base: str = None):
        self._token = token
        self._session = session
        self._api_base = api_base or settings.SLACK_API_BASE

    def _call(self, method: str, payload: Dict[str, Any], *, as_json: bool = True) -> Dict[str, Any]:
        url = f"{self._api_base}/{method}"
        headers = {"Authorization": f"Bearer {self._token}"}
        if as_json:
            resp = self._session.post(url, json=payload, headers=headers,
                                      timeout=settings.SLACK_HTTP_TIMEOUT_SECONDS)
        else:
            resp = self._session.post(url, data=payload, headers=headers,
                                      timeout=settings.SLACK_HTTP_TIMEOUT_SECONDS)
        resp.raise_for_status()
        data = resp.json()
        if not data.get("ok"):
            raise SlackApiError(method, data.get("error", "unknown_error"))
        return data

    def post_message(self, channel: str, blocks: List[Dict[str, Any]], text: str = "") -> Tuple[str, str]:
        """Post a message; returns the (channel, ts) pair that identifies it."""
        data = self._call("chat.postMessage", {"channel": channel, "blocks": blocks, "text": text})
        return data["channel"], data["ts"]

    def update_message(self, channel: str, ts: str, blocks: List[Dict[str, Any]], text: str = "") -> None:
        """Replace the content of an existing message. Repeating it is harmless."""
        self._call("chat.update", {"channel": channel, "ts": ts, "blocks": blocks, "text": text})

    def get_user_name(self, user_id: str) -> str:
        """Display name for logs; never raises."""
        try:
            data = self._call("users.info", {"user": user_id}, as_json=False)
        except Exception as e:
            logger.warning(f"users.info failed for {user_id}: {e}")
            return "(error)"
        user = data.get("user", {})
        return f"{user.get('name', '')} ({user.get('real_name', '')})"


class ChatPlatform:
    """
    Process-wide chat platform client: one HTTP session plus the credential
    store holding every user's token. Hands out per-user `SlackClient`s.
    """

    def __init__(self, credentials: CredentialStore, session: Optional[requests.Session] = None):
        self.credentials = credentials
        self.session = session or requests.Session()

    def for_user(self, user_id: str) -> SlackClient:
        token = self.credentials.get_token(user_id)
        if token is None:
            raise AuthorizationRequired(user_id)
        return SlackClient(token, self.session)

    def authorize_url(self) -> str:
        query = urlencode({
            "client_id": settings.SLACK_CLIENT_ID,
            "scope": ",".join(settings.SLACK_BOT_SCOPES),
            "user_scope": ",".join(settings.SLACK_USER_SCOPES),
        })
        return f"https://slack.com/oauth/v2/authorize?{query}"

    def exchange_code(self, code: str) -> Tuple[str, str]:
        """
        Swap an OAuth redirect code for the authed user's token and store it.
        Returns (user_id, token).
        """
        resp = self.session.post(
            f"{settings.SLACK_API_BASE}/oauth.v2.access",
            data={
                "client_id": settings.SLACK_CLIENT_ID,
                "client_secret": settings.SLACK_CLIENT_SECRET,
                "code": code,
            },
            timeout=settings.SLACK_HTTP_TIMEOUT_SECONDS,
        )
        resp.raise_for_status()
        data = resp.json()
        if not data.get("ok"):
            raise SlackApiError("oauth.v2.access", data.get("error", "unknown_error"))
        authed = data.get("authed_user") or {}
        user_id, token = authed.get("id"), authed.get("access_token")
        if not user_id or not token:
            raise SlackApiError("oauth.v2.access", "missing_authed_user")
        self.credentials.put_token(user_id, token)
        return user_id, token

    def close(self) -> None:
        self.session.close()
        self.credentials.close()

# services/credential_service.py
"""
Per-user Slack token storage.

Storage Structure in Redis:
- Tokens: user_token:{user_id} → OAuth user access token (no TTL)
"""

from typing import Optional

from core.logger import logger


class CredentialStore:
    """
    Reads and writes user tokens in Redis.

    Takes the redis client (or anything exposing get/set) so tests can hand in
    a dict-backed fake.
    """

    def __init__(self, redis_client, owner=None):
        self.redis = redis_client
        # owner keeps the pool wrapper alive so close() can release it
        self._owner = owner

    @staticmethod
    def _key(user_id: str) -> str:
        return f"user_token:{user_id}"

    def get_token(self, user_id: str) -> Optional[str]:
        token = self.redis.get(self._key(user_id))
        return token or None

    def put_token(self, user_id: str, token: str) -> None:
        self.redis.set(self._key(user_id), token)
        logger.info(f"Stored Slack token for user {user_id}")

    def close(self) -> None:
        if self._owner is not None:
            self._owner.close()

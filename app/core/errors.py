# core/errors.py
"""
Exceptions shared across the intake and worker pipelines.
"""


class AuthorizationRequired(Exception):
    """The requester has no stored Slack token yet."""

    def __init__(self, user_id: str):
        super().__init__(f"no Slack token stored for user {user_id}")
        self.user_id = user_id


class UnknownCommandError(Exception):
    def __init__(self, command: str):
        super().__init__(f"unknown command: {command}")
        self.command = command


class SlackApiError(Exception):
    """Slack answered with ok=false."""

    def __init__(self, method: str, error: str):
        super().__init__(f"Slack {method} failed: {error}")
        self.method = method
        self.error = error


class GenerationError(Exception):
    """
    The generation backend failed or returned an incomplete image set.
    The message carries the backend diagnostic; it is logged, never shown to users.
    """


class StatusTransitionError(Exception):
    """A status message was asked to move backwards or stay in place."""

"""
Exception hierarchy for the client.

Categories match the retry policy in :mod:`interact_client.retry`: only a
recoverable session error is ever retried, and that case never surfaces as
an exception unless recovery is impossible.
"""

from __future__ import annotations


class InteractError(Exception):
    """Base class for every error raised by this package."""


class InteractApiError(InteractError):
    """The engine answered with a non-2xx HTTP status."""

    def __init__(self, status: int, status_text: str = "", body: object = None):
        self.status = status
        self.status_text = status_text
        self.body = body
        super().__init__(f"Interact API error: {status} {status_text}".rstrip())


class AdvisoryError(InteractError):
    """
    An error-level advisory message that is not a session problem.

    These are configuration-style failures (unknown interaction point, bad
    audience level, ...) and are raised before any recovery is attempted.
    """

    def __init__(self, messages: list):
        self.messages = list(messages)
        text = "; ".join(m.msg for m in self.messages if m.msg) or "unknown error"
        super().__init__(f"Interact reported an error: {text}")


class SessionRecoveryError(InteractError):
    """The session expired and no audience is known to start a new one."""


class UsageError(InteractError):
    """The client was asked to do something it cannot do locally."""

"""
Session recovery: replay a batch once when the engine reports a dead session.

State machine per call::

    normal ──(recoverable session error)──▶ recovering ──▶ normal
                                                │
                                                └──(no audience)──▶ failed

Only a recoverable session error (see :class:`parser.MessageCategory`) moves
the controller out of ``normal``.  Every other error-level message has already
been raised by the executor.  The retry budget (default 1) bounds how many
recovery rounds one logical call may take.
"""

from __future__ import annotations

import logging
from typing import Sequence

from .commands import Command, start_session_command
from .config import InteractConfig
from .errors import SessionRecoveryError
from .executor import BatchExecutor
from .models import Audience, BatchResponse
from .parser import has_session_error
from .session import SessionState

logger = logging.getLogger(__name__)


class RecoveryState:
    NORMAL = "normal"
    RECOVERING = "recovering"
    FAILED = "failed"


def build_recovery_commands(
    commands: Sequence[Command],
    audience: Audience,
    interactive_channel: str,
) -> list[Command]:
    """
    Build the replacement batch for an expired session.

    A forced startSession for ``audience`` comes first, followed by every
    original command that is not a startSession, in original order.

    Args:
        commands: The batch that hit the session error.
        audience: Audience to start the new session for.
        interactive_channel: Channel for the new session.

    Returns:
        The recovery batch.
    """
    recovery = [
        start_session_command(
            interactive_channel,
            audience,
            rely_on_existing_session=False,
        )
    ]
    recovery.extend(c for c in commands if not c.is_start_session)
    return recovery


def audience_of(commands: Sequence[Command]) -> Audience | None:
    """Return the audience of the first startSession in the batch, if any."""
    for command in commands:
        if command.is_start_session and command.audience is not None:
            return command.audience
    return None


def custom_session_id_of(commands: Sequence[Command]) -> str | None:
    """Return the caller-chosen session id of the first startSession carrying one."""
    for command in commands:
        if command.is_start_session and command.custom_session_id is not None:
            return command.custom_session_id
    return None


class RecoveryController:
    """Wraps :class:`BatchExecutor` with the session-recovery state machine."""

    def __init__(
        self,
        config: InteractConfig,
        session: SessionState,
        executor: BatchExecutor,
    ):
        self.config = config
        self.session = session
        self.executor = executor
        self.state = RecoveryState.NORMAL

    def _log(self, level: int, msg: str, *args) -> None:
        if self.config.enable_logging:
            logger.log(level, msg, *args)

    def execute(
        self,
        session_id: str | None,
        commands: Sequence[Command],
        audience: Audience | None = None,
        max_retries: int | None = None,
    ) -> BatchResponse:
        """
        Execute a batch, recovering from an expired session if needed.

        The recovery batch's result is returned as-is, even if it still
        reports errors, once the retry budget is spent.

        Args:
            session_id: Session id for the first attempt.
            commands: Ordered commands.
            audience: Audience for a replacement session; falls back to the
                      batch's startSession audience, then the remembered one.
            max_retries: Recovery rounds allowed; defaults to
                         ``config.max_retries``.

        Returns:
            The original batch result, or the recovery batch's result with
            ``recovered`` set.

        Raises:
            SessionRecoveryError: Recovery needed but no audience known.
            AdvisoryError, InteractApiError, UsageError: From the executor.
        """
        budget = self.config.max_retries if max_retries is None else max_retries
        self.state = RecoveryState.NORMAL

        result = self.executor.execute(session_id, commands)
        attempts = 0

        while has_session_error(result) and attempts < budget:
            attempts += 1
            # Resolved before the first clear(), which forgets the remembered audience
            audience = (
                audience
                or audience_of(commands)
                or self.session.remembered_audience
            )
            result = self._recover(commands, audience, attempts, budget)

        self.state = RecoveryState.NORMAL
        return result

    def _recover(
        self,
        commands: Sequence[Command],
        audience: Audience | None,
        attempt: int,
        budget: int,
    ) -> BatchResponse:
        self.state = RecoveryState.RECOVERING
        expired_session_id = self.session.session_id
        self._log(
            logging.WARNING,
            "Session %s expired, recovering with a new session (attempt %d/%d)",
            expired_session_id,
            attempt,
            budget,
        )
        self.session.clear()

        if audience is None:
            self.state = RecoveryState.FAILED
            raise SessionRecoveryError(
                "Cannot recover session: no audience configuration provided. "
                "Pass an audience or start a session with one first."
            )

        recovery_commands = build_recovery_commands(
            commands, audience, self.config.interactive_channel
        )
        self._log(
            logging.INFO,
            "Executing recovery batch: %s",
            [c.action for c in recovery_commands],
        )
        result = self.executor.execute(None, recovery_commands)
        result.recovered = True
        if has_session_error(result):
            return result

        custom_session_id = custom_session_id_of(commands)
        if custom_session_id is not None:
            self.session.set(custom_session_id, audience)
        elif result.responses and result.responses[0].session_id:
            self.session.set(result.responses[0].session_id, audience)

        self._log(
            logging.INFO,
            "Session recovered: %s -> %s",
            expired_session_id,
            self.session.session_id,
        )
        return result

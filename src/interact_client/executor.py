"""
Batch execution: one command sequence in, one positionally aligned result out.

Design notes:
- A startSession at the head of a batch is elided when the client already
  holds a valid session and the caller did not force a new one.  The engine
  never sees the elided command; the caller gets a synthetic response at the
  command's position instead.
- Elision is tracked as an explicit plan of tagged entries
  (``original_index``, real | synthetic).  Real responses are matched to the
  real entries in order, and the combined list is stable-sorted on
  ``original_index``, so response ``i`` always answers command ``i``.
- Error-level messages that are not session errors are raised here, before
  the recovery controller looks at the batch.  Configuration mistakes fail
  fast instead of being retried.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Sequence

from .commands import Action, Command
from .config import STATUS_ERROR, STATUS_SUCCESS, TOKEN_HEADER, InteractConfig
from .errors import AdvisoryError, UsageError
from .models import BatchResponse, Response
from .parser import MessageCategory, find_messages, has_session_error, parse_batch_response
from .session import SessionState
from .transport import HttpTransport, Transport, build_endpoint_url, build_request_headers

logger = logging.getLogger(__name__)

REAL = "real"
SYNTHETIC = "synthetic"


# ---------------------------------------------------------------------------
# Plan
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PlanEntry:
    original_index: int
    kind: str
    command: Command


@dataclass
class BatchPlan:
    entries: list[PlanEntry] = field(default_factory=list)

    @property
    def outgoing(self) -> list[Command]:
        """Commands that will actually be sent, in original order."""
        return [e.command for e in self.entries if e.kind == REAL]

    @property
    def elided(self) -> list[PlanEntry]:
        return [e for e in self.entries if e.kind == SYNTHETIC]


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------

class BatchExecutor:
    """
    Serializes a batch, sends it, and parses the positionally aligned reply.

    Session bookkeeping happens here as a side effect of every real
    response: the captured token, adopted session ids, the remembered
    audience, and the reset after a successful endSession.
    """

    def __init__(
        self,
        config: InteractConfig,
        session: SessionState,
        transport: Transport | None = None,
    ):
        self.config = config
        self.session = session
        self.transport = transport or HttpTransport(timeout=config.timeout)

    def _log(self, level: int, msg: str, *args) -> None:
        if self.config.enable_logging:
            logger.log(level, msg, *args)

    # ── Planning ──────────────────────────────────────────────────────────

    def plan(self, commands: Sequence[Command]) -> BatchPlan:
        """
        Decide which commands are sent and which are answered locally.

        Only the leading run of startSession commands is considered; a
        forced startSession in that run is still sent.

        Args:
            commands: The batch in caller order.

        Returns:
            A :class:`BatchPlan` with one entry per command.
        """
        can_elide = self.session.is_valid()
        leading = True
        entries: list[PlanEntry] = []

        for index, command in enumerate(commands):
            if not command.is_start_session:
                leading = False
            kind = REAL
            if leading and can_elide and not command.is_forced_start():
                kind = SYNTHETIC
            entries.append(PlanEntry(index, kind, command))

        return BatchPlan(entries)

    @staticmethod
    def build_request_body(session_id: str | None, commands: Sequence[Command]) -> dict:
        """
        Build the JSON request object.

        ``sessionId`` is omitted when ``session_id`` is None so the engine
        mints a fresh session.
        """
        body: dict = {"commands": [c.to_wire() for c in commands]}
        if session_id is not None:
            body["sessionId"] = session_id
        return body

    # ── Execution ─────────────────────────────────────────────────────────

    def execute(self, session_id: str | None, commands: Sequence[Command]) -> BatchResponse:
        """
        Execute ``commands`` as one batch.

        Args:
            session_id: Session id to send.  Ignored in favour of the tracked
                        id when any startSession was elided.  ``None`` lets
                        the engine mint a new session.
            commands: Ordered commands.

        Returns:
            Batch whose response ``i`` answers ``commands[i]``.

        Raises:
            UsageError: Empty batch, malformed response body, or fewer
                        responses than commands sent.
            AdvisoryError: An error-level message other than a session error.
            InteractApiError: Non-2xx HTTP status.
        """
        if not commands:
            raise UsageError("Cannot execute an empty batch")

        plan = self.plan(commands)
        current_session_id = self.session.session_id

        if plan.elided:
            effective_session_id = current_session_id
            self._log(
                logging.INFO,
                "Session %s still valid; skipping %d startSession command(s)",
                current_session_id,
                len(plan.elided),
            )
        else:
            effective_session_id = session_id

        if not plan.outgoing:
            return BatchResponse(
                batch_status_code=STATUS_SUCCESS,
                responses=[Response.synthetic_for(current_session_id) for _ in plan.entries],
            )

        body = self.build_request_body(effective_session_id, plan.outgoing)
        reply = self._send(body)
        batch = parse_batch_response(reply)

        fatal = find_messages(batch, MessageCategory.FATAL)
        if fatal:
            self._log(logging.ERROR, "Interact returned error(s): %s", [m.msg for m in fatal])
            raise AdvisoryError(fatal)

        if len(batch.responses) < len(plan.outgoing):
            raise UsageError(
                f"Batch response has {len(batch.responses)} response(s) for "
                f"{len(plan.outgoing)} command(s) sent"
            )

        merged = self._merge(plan, batch, current_session_id)
        self._track_session(plan, merged)
        return merged

    def _send(self, body: dict) -> object:
        payload = json.dumps(body)
        self._log(logging.INFO, "Interact request: %s", payload)

        response = self.transport.request(
            "POST",
            build_endpoint_url(self.config),
            build_request_headers(self.config, self.session.token_id),
            payload,
        )

        token_id = response.header(TOKEN_HEADER)
        if token_id:
            self.session.remember_token(token_id)

        self._log(logging.INFO, "Interact response: %s", response.body)
        return response.body

    def _merge(
        self,
        plan: BatchPlan,
        batch: BatchResponse,
        current_session_id: str | None,
    ) -> BatchResponse:
        real_entries = [e for e in plan.entries if e.kind == REAL]
        if len(batch.responses) > len(real_entries):
            logger.warning(
                "Interact answered %d command(s) with %d response(s)",
                len(real_entries),
                len(batch.responses),
            )

        tagged: list[tuple[int, Response]] = [
            (entry.original_index, Response.synthetic_for(current_session_id))
            for entry in plan.elided
        ]
        tagged.extend(
            (entry.original_index, response)
            for entry, response in zip(real_entries, batch.responses)
        )
        # Surplus responses keep server order after every known position
        overflow_start = len(plan.entries)
        tagged.extend(
            (overflow_start + i, response)
            for i, response in enumerate(batch.responses[len(real_entries):])
        )
        tagged.sort(key=lambda item: item[0])

        return BatchResponse(
            batch_status_code=batch.batch_status_code,
            responses=[response for _, response in tagged],
        )

    def _track_session(self, plan: BatchPlan, merged: BatchResponse) -> None:
        # A stale session id must not be re-adopted; recovery replaces it
        if has_session_error(merged):
            return

        ended = False
        for entry, response in zip(plan.entries, merged.responses):
            if entry.kind == SYNTHETIC:
                continue
            command = entry.command
            succeeded = response.status_code != STATUS_ERROR

            if command.action == Action.END_SESSION:
                ended = ended or succeeded
                continue

            if command.action == Action.SET_AUDIENCE and succeeded:
                session_id = response.session_id or self.session.session_id
                if session_id:
                    self.session.set(session_id, command.audience)
                continue

            if not response.session_id:
                continue
            if command.is_start_session:
                self.session.set(response.session_id, command.audience)
            else:
                self.session.set(response.session_id)

        if ended:
            self._log(logging.INFO, "Session %s ended", self.session.session_id)
            self.session.clear()
            self.session.forget_token()

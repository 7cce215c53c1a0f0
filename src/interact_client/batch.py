"""
Fluent batch builder.

Queue several commands and send them as one batch::

    result = (
        client.create_batch()
        .start_session(Audience.visitor("v1"))
        .post_event("page_view")
        .get_offers("HomepageOffer", 2)
        .execute()
    )

The builder only accumulates; elision, session tracking and recovery are
done by the executor and recovery controller it delegates to.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

from .commands import (
    Command,
    OfferRequest,
    end_session_command,
    get_offers_command,
    get_offers_for_multiple_ips_command,
    get_profile_command,
    get_version_command,
    post_event_command,
    set_audience_command,
    start_session_command,
)
from .models import Audience, BatchResponse, Parameter

if TYPE_CHECKING:
    from .client import InteractClient


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


# Distinguishes "no session id given" from an explicit None (= let the engine mint one)
UNSET = _Unset()


class BatchBuilder:
    """Accumulates commands in call order; reusable after :meth:`execute`."""

    def __init__(self, client: InteractClient):
        self.client = client
        self._commands: list[Command] = []

    @property
    def pending(self) -> tuple[Command, ...]:
        return tuple(self._commands)

    def clear(self) -> BatchBuilder:
        self._commands = []
        return self

    def add(self, command: Command) -> BatchBuilder:
        self._commands.append(command)
        return self

    # ── Commands ──────────────────────────────────────────────────────────

    def start_session(
        self,
        audience: Audience,
        session_id: str | None = None,
        parameters: Iterable[Parameter] | None = None,
        rely_on_existing_session: bool = True,
        debug: bool = False,
    ) -> BatchBuilder:
        """
        Queue a startSession.

        A ``session_id`` here is a caller-chosen id: it forces the command to
        reach the engine and, on a leading startSession, becomes the batch's
        session id.
        """
        return self.add(start_session_command(
            self.client.config.interactive_channel,
            audience,
            parameters=parameters,
            rely_on_existing_session=rely_on_existing_session,
            debug=debug,
            custom_session_id=session_id,
        ))

    def get_offers(
        self,
        ip: str,
        number_requested: int = 1,
        parameters: Iterable[Parameter] | None = None,
    ) -> BatchBuilder:
        return self.add(get_offers_command(ip, number_requested, parameters))

    def get_offers_for_multiple_ips(self, requests: Iterable[OfferRequest]) -> BatchBuilder:
        return self.add(get_offers_for_multiple_ips_command(requests))

    def post_event(
        self,
        event: str,
        parameters: Iterable[Parameter] | None = None,
    ) -> BatchBuilder:
        return self.add(post_event_command(event, parameters))

    def set_audience(
        self,
        audience: Audience,
        parameters: Iterable[Parameter] | None = None,
    ) -> BatchBuilder:
        return self.add(set_audience_command(audience, parameters))

    def end_session(self) -> BatchBuilder:
        return self.add(end_session_command())

    def get_profile(self) -> BatchBuilder:
        return self.add(get_profile_command())

    def get_version(self) -> BatchBuilder:
        return self.add(get_version_command())

    # ── Execution ─────────────────────────────────────────────────────────

    def resolve_session_id(self, session_id: str | None | _Unset = UNSET) -> str | None:
        """
        Pick the session id for :meth:`execute`.

        Precedence: a custom id on a leading startSession, then an explicit
        ``session_id`` (None included), then the client's tracked id.
        """
        if self._commands:
            head = self._commands[0]
            if head.is_start_session and head.custom_session_id is not None:
                return head.custom_session_id
        if session_id is not UNSET:
            return session_id
        return self.client.session_id

    def execute(self, session_id: str | None | _Unset = UNSET) -> BatchResponse:
        """
        Send the queued commands as one batch and reset the builder.

        The builder is emptied even when the call raises.

        Args:
            session_id: Explicit session id; see :meth:`resolve_session_id`.

        Returns:
            The batch result from the recovery controller.
        """
        commands = list(self._commands)
        effective_session_id = self.resolve_session_id(session_id)
        audience = next(
            (c.audience for c in commands if c.is_start_session and c.audience is not None),
            None,
        )
        try:
            return self.client.controller.execute(
                effective_session_id,
                commands,
                audience=audience or self.client.stored_audience,
            )
        finally:
            self._commands = []

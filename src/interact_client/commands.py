"""
Command model: the closed set of actions a batch can carry.

A batch is an ordered tuple of :class:`Command` values.  Order matters: the
engine executes commands in sequence and answers them positionally.  Each
action has one named factory below; callers never assemble wire dicts.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .config import DEFAULT_DUP_POLICY
from .models import Audience, Parameter


class Action:
    """Action names understood by the batch servlet."""

    START_SESSION = "startSession"
    GET_OFFERS = "getOffers"
    GET_OFFERS_MULTI = "getOffersForMultipleInteractionPoints"
    POST_EVENT = "postEvent"
    SET_AUDIENCE = "setAudience"
    END_SESSION = "endSession"
    GET_PROFILE = "getProfile"
    GET_VERSION = "getVersion"


@dataclass(frozen=True)
class OfferRequest:
    """One interaction point inside a multi-interaction-point offer request."""

    ip: str
    number_requested: int = 1
    dup_policy: int = DEFAULT_DUP_POLICY

    def to_wire(self) -> dict:
        return {
            "ip": self.ip,
            "numberRequested": self.number_requested,
            "dupPolicy": self.dup_policy,
        }


@dataclass(frozen=True)
class Command:
    """
    One queued action and its action-specific fields.

    ``custom_session_id`` is client-side only: it asks for a specific session
    id on a startSession and is never serialized into the command itself.
    """

    action: str
    ic: str | None = None
    audience: Audience | None = None
    parameters: tuple[Parameter, ...] | None = None
    rely_on_existing_session: bool | None = None
    debug: bool | None = None
    ip: str | None = None
    number_requested: int | None = None
    event: str | None = None
    offer_requests: tuple[OfferRequest, ...] | None = None
    custom_session_id: str | None = None

    @property
    def is_start_session(self) -> bool:
        return self.action == Action.START_SESSION

    def is_forced_start(self) -> bool:
        """True for a startSession that must reach the engine regardless of local state."""
        if not self.is_start_session:
            return False
        return self.custom_session_id is not None or self.rely_on_existing_session is False

    def to_wire(self) -> dict:
        """Serialize to the servlet's command shape, omitting unused fields."""
        wire: dict = {"action": self.action}
        if self.ic is not None:
            wire["ic"] = self.ic
        if self.audience is not None:
            wire["audienceID"] = self.audience.audience_ids()
            wire["audienceLevel"] = self.audience.level
        if self.parameters:
            wire["parameters"] = [p.to_wire() for p in self.parameters]
        if self.rely_on_existing_session is not None:
            wire["relyOnExistingSession"] = self.rely_on_existing_session
        if self.debug is not None:
            wire["debug"] = self.debug
        if self.ip is not None:
            wire["ip"] = self.ip
        if self.number_requested is not None:
            wire["numberRequested"] = self.number_requested
        if self.event is not None:
            wire["event"] = self.event
        if self.offer_requests is not None:
            wire["getOfferRequests"] = [r.to_wire() for r in self.offer_requests]
        return wire


def _params(parameters: Iterable[Parameter] | None) -> tuple[Parameter, ...] | None:
    if parameters is None:
        return None
    return tuple(parameters)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

def start_session_command(
    ic: str,
    audience: Audience,
    parameters: Iterable[Parameter] | None = None,
    rely_on_existing_session: bool = True,
    debug: bool = False,
    custom_session_id: str | None = None,
) -> Command:
    return Command(
        action=Action.START_SESSION,
        ic=ic,
        audience=audience,
        parameters=_params(parameters),
        rely_on_existing_session=rely_on_existing_session,
        debug=debug,
        custom_session_id=custom_session_id,
    )


def get_offers_command(
    ip: str,
    number_requested: int = 1,
    parameters: Iterable[Parameter] | None = None,
) -> Command:
    return Command(
        action=Action.GET_OFFERS,
        ip=ip,
        number_requested=number_requested,
        parameters=_params(parameters),
    )


def get_offers_for_multiple_ips_command(requests: Iterable[OfferRequest]) -> Command:
    return Command(action=Action.GET_OFFERS_MULTI, offer_requests=tuple(requests))


def post_event_command(
    event: str,
    parameters: Iterable[Parameter] | None = None,
) -> Command:
    return Command(action=Action.POST_EVENT, event=event, parameters=_params(parameters))


def set_audience_command(
    audience: Audience,
    parameters: Iterable[Parameter] | None = None,
) -> Command:
    return Command(
        action=Action.SET_AUDIENCE,
        audience=audience,
        parameters=_params(parameters),
    )


def end_session_command() -> Command:
    return Command(action=Action.END_SESSION)


def get_profile_command() -> Command:
    return Command(action=Action.GET_PROFILE)


def get_version_command() -> Command:
    return Command(action=Action.GET_VERSION)

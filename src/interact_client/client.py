"""
High-level client: the public operations on top of executor and recovery.

Typical use::

    client = InteractClient(InteractConfig(server_url="https://host/interact"))
    client.start_session(Audience.visitor("v1"))
    response = client.get_offers("HomepageOffer", 2)
    for offer in response.offers:
        ...

Single-command operations return the batch's last response.  That is the
requested command's response both for a normal call and after session
recovery, where the batch gains a leading startSession.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Iterable

from .batch import BatchBuilder
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
from .config import DEFAULT_SESSION_FILE, InteractConfig
from .errors import UsageError
from .executor import BatchExecutor
from .models import Audience, PageOffers, Parameter, Response
from .parser import has_session_error
from .retry import RecoveryController
from .session import JsonFileStore, SessionState, SessionStore, utcnow
from .transport import Transport

PAGE_VIEW_EVENT = "page_view"

NO_SESSION_MESSAGE = (
    "No session available. Start a session first with "
    "start_session(audience) or provide an audience."
)


class InteractClient:
    """
    Session-tracking client for the Interact batch servlet.

    One instance owns one session.  Calls are not synchronized: concurrent
    use of one instance may interleave session updates (last writer wins),
    so serialize calls that depend on each other.

    Args:
        config: Connection and session settings.
        transport: HTTP transport; defaults to a ``requests``-based one.
        store: Persistence slot for the session mirror, used when
               ``config.persist_session`` is set.  Defaults to a JSON file
               at :data:`config.DEFAULT_SESSION_FILE`.
        clock: Returns the current aware datetime; injectable for tests.
    """

    def __init__(
        self,
        config: InteractConfig,
        transport: Transport | None = None,
        store: SessionStore | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.config = config
        if config.persist_session and store is None:
            store = JsonFileStore(DEFAULT_SESSION_FILE)

        self.session = SessionState(
            expiry=config.session_expiry,
            store=store if config.persist_session else None,
            storage_key=config.storage_key,
            interactive_channel=config.interactive_channel,
            clock=clock,
        )
        self.executor = BatchExecutor(config, self.session, transport)
        self.controller = RecoveryController(config, self.session, self.executor)

    # ── Session helpers ───────────────────────────────────────────────────

    @property
    def session_id(self) -> str | None:
        return self.session.session_id

    @property
    def stored_audience(self) -> Audience | None:
        return self.session.remembered_audience

    def set_session(self, session_id: str | None, audience: Audience | None = None) -> None:
        self.session.set(session_id, audience)

    def clear_session(self) -> None:
        self.session.clear()

    def is_session_valid(self) -> bool:
        return self.session.is_valid()

    def create_batch(self) -> BatchBuilder:
        return BatchBuilder(self)

    def _require_session(self, session_id: str | None) -> str:
        if session_id:
            return session_id
        if self.session.is_valid():
            return self.session.session_id
        raise UsageError(NO_SESSION_MESSAGE)

    def _run(
        self,
        session_id: str | None,
        command: Command,
        audience: Audience | None = None,
    ) -> Response:
        batch = self.controller.execute(
            session_id,
            [command],
            audience=audience or self.stored_audience,
        )
        return batch.last()

    def _run_managed(
        self,
        session_id: str | None,
        command: Command,
        auto_manage_session: bool,
        audience: Audience | None,
    ) -> Response:
        """
        Run ``command`` on the given or tracked session.

        Without one, and with ``auto_manage_session`` set, a startSession for
        ``audience`` (or the remembered one) is prepended so both travel in a
        single batch.
        """
        if session_id or self.session.is_valid() or not auto_manage_session:
            return self._run(self._require_session(session_id), command, audience)

        target = audience or self.stored_audience
        if target is None:
            raise UsageError(NO_SESSION_MESSAGE)
        start = start_session_command(self.config.interactive_channel, target)
        return self.controller.execute(None, [start, command], audience=target).last()

    # ── Operations ────────────────────────────────────────────────────────

    def start_session(
        self,
        audience: Audience,
        session_id: str | None = None,
        parameters: Iterable[Parameter] | None = None,
        rely_on_existing_session: bool = True,
        debug: bool = False,
    ) -> Response:
        """
        Start (or reuse) a session for ``audience``.

        Without ``session_id`` and with ``rely_on_existing_session`` left
        True, a still-valid tracked session is reused and no request is
        made; the returned response is then synthetic.

        Args:
            audience: Visitor or customer identity for the session.
            session_id: Caller-chosen session id; forces a real request.
            parameters: Session parameters passed to the engine.
            rely_on_existing_session: ``False`` forces a new session.
            debug: Ask the engine for debug logging of this session.

        Returns:
            The startSession response.
        """
        command = start_session_command(
            self.config.interactive_channel,
            audience,
            parameters=parameters,
            rely_on_existing_session=rely_on_existing_session,
            debug=debug,
            custom_session_id=session_id,
        )
        return self._run(session_id, command, audience)

    def get_offers(
        self,
        ip: str,
        number_requested: int = 1,
        session_id: str | None = None,
        auto_manage_session: bool = True,
        audience: Audience | None = None,
        parameters: Iterable[Parameter] | None = None,
    ) -> Response:
        """
        Request up to ``number_requested`` offers for interaction point ``ip``.

        When no session is tracked and ``auto_manage_session`` is set, a
        startSession for ``audience`` (or the remembered one) is sent in the
        same batch.

        Raises:
            UsageError: No session and no audience to start one.
        """
        return self._run_managed(
            session_id,
            get_offers_command(ip, number_requested, parameters),
            auto_manage_session,
            audience,
        )

    def get_offers_for_multiple_ips(
        self,
        requests: Iterable[OfferRequest],
        session_id: str | None = None,
        auto_manage_session: bool = True,
        audience: Audience | None = None,
    ) -> Response:
        """Request offers for several interaction points in one command."""
        return self._run_managed(
            session_id,
            get_offers_for_multiple_ips_command(requests),
            auto_manage_session,
            audience,
        )

    def post_event(
        self,
        event: str,
        parameters: Iterable[Parameter] | None = None,
        session_id: str | None = None,
        auto_manage_session: bool = True,
        audience: Audience | None = None,
    ) -> Response:
        """
        Post a behavioural event.

        Delivery is at-most-once per attempt: after session recovery the
        event is sent again in the recovery batch.
        """
        return self._run_managed(
            session_id,
            post_event_command(event, parameters),
            auto_manage_session,
            audience,
        )

    def set_audience(
        self,
        audience: Audience,
        session_id: str | None = None,
        parameters: Iterable[Parameter] | None = None,
    ) -> Response:
        """Switch the session to ``audience``; it becomes the remembered audience."""
        effective_session_id = self._require_session(session_id)
        return self._run(
            effective_session_id,
            set_audience_command(audience, parameters),
            audience,
        )

    def get_profile(self, session_id: str | None = None) -> Response:
        effective_session_id = self._require_session(session_id)
        return self._run(effective_session_id, get_profile_command())

    def end_session(self, session_id: str | None = None) -> Response:
        """
        End the session on the engine and forget it locally.

        Never recovers: ending an already expired session only clears the
        local state.
        """
        effective_session_id = self._require_session(session_id)
        batch = self.executor.execute(effective_session_id, [end_session_command()])
        if has_session_error(batch):
            self.session.clear()
        return batch.last()

    def get_version(self) -> Response:
        """Return the engine version; sent without a session id."""
        return self.executor.execute(None, [get_version_command()]).last()

    def get_offers_for_page(
        self,
        ip: str,
        audience: Audience,
        number_requested: int = 1,
        track_page_view: bool = True,
    ) -> PageOffers:
        """
        Serve one page: start a session, optionally log a page view, get offers.

        All commands travel in a single batch.

        Returns:
            The offers of the first offer list returned, and the session id.
        """
        batch = self.create_batch().start_session(audience)
        if track_page_view:
            batch.post_event(PAGE_VIEW_EVENT)
        batch.get_offers(ip, number_requested)

        result = batch.execute(None)

        session_id = result.responses[0].session_id if result.responses else None
        offers_response = next((r for r in result.responses if r.offer_lists), None)
        offers = offers_response.offer_lists[0].offers if offers_response else []

        return PageOffers(
            offers=offers,
            session_id=session_id or self.session_id or "",
        )

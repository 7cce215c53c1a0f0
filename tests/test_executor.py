"""
Unit tests for src/interact_client/executor.py.

Covers startSession elision and synthetic responses (positional fidelity),
the effective session id rule, fail-fast advisory errors, token capture, and
session bookkeeping from real responses.
"""

from __future__ import annotations

import pytest

from interact_client.commands import (
    end_session_command,
    get_offers_command,
    post_event_command,
    set_audience_command,
    start_session_command,
)
from interact_client.config import InteractConfig
from interact_client.errors import AdvisoryError, UsageError
from interact_client.executor import REAL, SYNTHETIC, BatchExecutor
from interact_client.models import Audience
from interact_client.session import SessionState

from .conftest import (
    SERVER_URL,
    FakeTransport,
    make_batch,
    make_message,
    make_offer_list,
    make_response,
    session_error_response,
)

IC = "_RealTimePersonalization_"
VISITOR = Audience.visitor("v1")


def _executor(transport, clock, session_id=None, config=None):
    config = config or InteractConfig(server_url=SERVER_URL)
    session = SessionState(expiry=config.session_expiry, clock=clock)
    if session_id:
        session.set(session_id, VISITOR)
    return BatchExecutor(config, session, transport)


def _start(**kwargs):
    return start_session_command(IC, VISITOR, **kwargs)


# ---------------------------------------------------------------------------
# Class: planning
# ---------------------------------------------------------------------------

class TestPlan:

    def test_no_elision_without_session(self, transport, clock):
        plan = _executor(transport, clock).plan([_start(), get_offers_command("ip")])
        assert [e.kind for e in plan.entries] == [REAL, REAL]

    def test_leading_start_elided_with_valid_session(self, transport, clock):
        plan = _executor(transport, clock, "s1").plan([_start(), get_offers_command("ip")])
        assert [e.kind for e in plan.entries] == [SYNTHETIC, REAL]
        assert [c.action for c in plan.outgoing] == ["getOffers"]

    def test_forced_start_not_elided(self, transport, clock):
        executor = _executor(transport, clock, "s1")
        plan = executor.plan([_start(rely_on_existing_session=False)])
        assert [e.kind for e in plan.entries] == [REAL]
        plan = executor.plan([_start(custom_session_id="mine")])
        assert [e.kind for e in plan.entries] == [REAL]

    def test_only_leading_run_considered(self, transport, clock):
        plan = _executor(transport, clock, "s1").plan([
            _start(),
            _start(),
            post_event_command("e"),
            _start(),
        ])
        assert [e.kind for e in plan.entries] == [SYNTHETIC, SYNTHETIC, REAL, REAL]

    def test_expired_session_not_elided(self, transport, clock):
        executor = _executor(transport, clock, "s1")
        clock.advance(minutes=31)
        plan = executor.plan([_start()])
        assert [e.kind for e in plan.entries] == [REAL]


# ---------------------------------------------------------------------------
# Class: execution with elision
# ---------------------------------------------------------------------------

class TestElisionExecution:

    def test_single_start_on_valid_session_makes_no_call(self, transport, clock):
        batch = _executor(transport, clock, "s1").execute(None, [_start()])

        assert transport.calls == []
        assert batch.batch_status_code == 0
        assert len(batch.responses) == 1
        response = batch.responses[0]
        assert response.synthetic
        assert response.status_code == 0
        assert response.session_id == "s1"
        assert response.messages == []

    def test_positional_fidelity_with_elision(self, transport, clock):
        transport.queue(make_batch(
            make_response("s1"),
            make_response("s1", offer_lists=[make_offer_list("ip", ["A"])]),
        ))
        commands = [_start(), post_event_command("page_view"), get_offers_command("ip")]
        batch = _executor(transport, clock, "s1").execute(None, commands)

        assert transport.actions() == ["postEvent", "getOffers"]
        assert len(batch.responses) == len(commands)
        assert [r.synthetic for r in batch.responses] == [True, False, False]
        assert batch.responses[2].offer_lists[0].ip == "ip"

    def test_tracked_id_sent_when_elided(self, transport, clock):
        transport.queue(make_batch(make_response("s1")))
        _executor(transport, clock, "s1").execute(None, [_start(), get_offers_command("ip")])
        assert transport.bodies[0]["sessionId"] == "s1"

    def test_caller_id_sent_verbatim_without_elision(self, transport, clock):
        transport.queue(make_batch(make_response("other")))
        _executor(transport, clock, "s1").execute("other", [get_offers_command("ip")])
        assert transport.bodies[0]["sessionId"] == "other"

    def test_none_session_id_omitted(self, transport, clock):
        transport.queue(make_batch(make_response("new")))
        _executor(transport, clock).execute(None, [_start()])
        assert "sessionId" not in transport.bodies[0]

    def test_empty_batch_rejected(self, transport, clock):
        with pytest.raises(UsageError, match="empty batch"):
            _executor(transport, clock).execute(None, [])

    def test_short_reply_rejected(self, transport, clock):
        transport.queue(make_batch(make_response("s1")))
        executor = _executor(transport, clock, "s1")

        with pytest.raises(UsageError, match="1 response"):
            executor.execute(None, [_start(), post_event_command("a"), post_event_command("b")])
        assert executor.session.session_id == "s1"

    def test_empty_reply_rejected(self, transport, clock):
        transport.queue(make_batch())
        commands = [get_offers_command("HomepageOffer", 2), post_event_command("page_view")]

        with pytest.raises(UsageError, match="0 response"):
            _executor(transport, clock, "s1").execute("s1", commands)


# ---------------------------------------------------------------------------
# Class: request shape
# ---------------------------------------------------------------------------

class TestRequestShape:

    def test_posts_json_to_servlet(self, transport, clock):
        transport.queue(make_batch(make_response("s1")))
        _executor(transport, clock).execute(None, [_start()])

        call = transport.calls[0]
        assert call["method"] == "POST"
        assert call["url"] == SERVER_URL + "/servlet/RestServlet"
        assert call["headers"]["Content-Type"] == "application/json; charset=utf-8"
        assert call["body"]["commands"][0]["action"] == "startSession"

    def test_token_captured_and_replayed(self, clock):
        transport = FakeTransport(
            make_batch(make_response("s1")),
            make_batch(make_response("s1")),
            headers={"m_tokenId": "tok-9"},
        )
        config = InteractConfig(server_url=SERVER_URL, username="jane", password="pw")
        executor = _executor(transport, clock, config=config)

        executor.execute(None, [_start()])
        executor.execute("s1", [get_offers_command("ip")])

        assert transport.calls[0]["headers"]["m_user_name"] == "jane"
        assert transport.calls[1]["headers"]["m_tokenId"] == "tok-9"
        assert "m_user_name" not in transport.calls[1]["headers"]


# ---------------------------------------------------------------------------
# Class: fail-fast advisory errors
# ---------------------------------------------------------------------------

class TestFailFast:

    def test_unrelated_error_raises(self, transport, clock):
        transport.queue(make_batch(make_response(
            "s1", status=2, messages=[make_message("Invalid interaction point")],
        )))
        with pytest.raises(AdvisoryError, match="Invalid interaction point") as excinfo:
            _executor(transport, clock, "s1").execute("s1", [get_offers_command("bad")])
        assert excinfo.value.messages[0].msg_level == 2

    def test_session_error_not_raised(self, transport, clock):
        transport.queue(make_batch(session_error_response()))
        batch = _executor(transport, clock, "s1").execute("s1", [get_offers_command("ip")])
        assert batch.responses[0].status_code == 2

    def test_warning_does_not_raise(self, transport, clock):
        transport.queue(make_batch(make_response(
            "s1", status=1, messages=[make_message("Offer list truncated", level=1, code=5)],
        )))
        batch = _executor(transport, clock, "s1").execute("s1", [get_offers_command("ip")])
        assert batch.responses[0].status_code == 1


# ---------------------------------------------------------------------------
# Class: session bookkeeping
# ---------------------------------------------------------------------------

class TestSessionTracking:

    def test_start_session_adopts_id_and_audience(self, transport, clock):
        transport.queue(make_batch(make_response("new")))
        executor = _executor(transport, clock)
        executor.execute(None, [_start()])

        assert executor.session.session_id == "new"
        assert executor.session.remembered_audience == VISITOR
        assert executor.session.is_valid()

    def test_other_response_id_adopted(self, transport, clock):
        transport.queue(make_batch(make_response("s2")))
        executor = _executor(transport, clock, "s1")
        executor.execute("s1", [get_offers_command("ip")])
        assert executor.session.session_id == "s2"
        assert executor.session.remembered_audience == VISITOR

    def test_session_error_does_not_adopt_stale_id(self, transport, clock):
        transport.queue(make_batch(session_error_response("stale")))
        executor = _executor(transport, clock, "s1")
        executor.execute("s1", [get_offers_command("ip")])
        assert executor.session.session_id == "s1"

    def test_end_session_clears_state_and_token(self, clock):
        transport = FakeTransport(make_batch(make_response("s1")))
        executor = _executor(transport, clock, "s1")
        executor.session.remember_token("tok")

        executor.execute("s1", [end_session_command()])

        assert executor.session.session_id is None
        assert executor.session.token_id is None
        assert not executor.session.is_valid()

    def test_set_audience_remembers_new_audience(self, transport, clock):
        transport.queue(make_batch(make_response(None)))
        executor = _executor(transport, clock, "s1")
        executor.execute("s1", [set_audience_command(Audience.customer(7))])
        assert executor.session.session_id == "s1"
        assert executor.session.remembered_audience == Audience.customer(7)

"""
Shared pytest fixtures and wire-payload builders for client tests.

``FakeTransport`` stands in for the HTTP layer: it records every request body
and replays scripted servlet replies in order, so tests can assert exactly
how many round trips a call made and what each one carried.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest

from interact_client import InteractClient, InteractConfig
from interact_client.transport import TransportResponse

SERVER_URL = "https://interact.example.com/interact"

# Message the engine sends when a session id is unknown or timed out
INVALID_SESSION_MSG = "Request received an invalid session ID"


# ---------------------------------------------------------------------------
# Wire builders
# ---------------------------------------------------------------------------

def make_message(msg: str, level: int = 2, code: int = 1) -> dict:
    return {"msg": msg, "detailMsg": "", "msgLevel": level, "msgCode": code}


def make_response(
    session_id: str | None = "s1",
    status: int = 0,
    messages: list[dict] | None = None,
    offer_lists: list[dict] | None = None,
    **extra,
) -> dict:
    """Build a single per-command response dict."""
    response: dict = {"statusCode": status}
    if session_id is not None:
        response["sessionId"] = session_id
    if messages:
        response["messages"] = messages
    if offer_lists is not None:
        response["offerLists"] = offer_lists
    response.update(extra)
    return response


def make_offer_list(ip: str, names: list[str]) -> dict:
    return {
        "ip": ip,
        "defaultString": "",
        "offers": [
            {
                "n": name,
                "code": [f"CODE_{i}"],
                "treatmentCode": f"T{i}",
                "score": 100 - i,
                "desc": f"{name} description",
                "attributes": [{"n": "URL", "v": f"/offers/{i}", "t": "string"}],
            }
            for i, name in enumerate(names, start=1)
        ],
    }


def make_batch(*responses: dict, batch_status: int = 0) -> dict:
    """Build a batch reply body from per-command response dicts."""
    return {"batchStatusCode": batch_status, "responses": list(responses)}


def session_error_response(session_id: str | None = None) -> dict:
    return make_response(
        session_id=session_id,
        status=2,
        messages=[make_message(INVALID_SESSION_MSG)],
    )


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeTransport:
    """Scripted transport; each request pops the next queued reply."""

    def __init__(self, *replies: dict, headers: dict | None = None):
        self.replies = list(replies)
        self.reply_headers = headers or {}
        self.calls: list[dict] = []

    def queue(self, *replies: dict) -> FakeTransport:
        self.replies.extend(replies)
        return self

    def request(self, method, url, headers, body=None):
        self.calls.append({
            "method": method,
            "url": url,
            "headers": dict(headers),
            "body": json.loads(body) if body else None,
        })
        if not self.replies:
            raise AssertionError("FakeTransport received an unexpected request")
        return TransportResponse(status=200, headers=dict(self.reply_headers), body=self.replies.pop(0))

    # ── Inspection helpers ────────────────────────────────────────────────

    @property
    def bodies(self) -> list[dict]:
        return [c["body"] for c in self.calls]

    def actions(self, call_index: int = -1) -> list[str]:
        return [c["action"] for c in self.calls[call_index]["body"]["commands"]]


class FakeClock:
    """Manually advanced clock returning aware UTC datetimes."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def config():
    return InteractConfig(server_url=SERVER_URL)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def client(config, transport, clock):
    return InteractClient(config, transport=transport, clock=clock)

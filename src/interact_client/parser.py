"""
Wire-response parsing and advisory-message classification.

No I/O occurs here; all functions are pure transformations of decoded JSON
into :mod:`interact_client.models` values, to support easy unit testing.
"""

from __future__ import annotations

from .config import (
    RECOVERABLE_SESSION_PHRASES,
    SESSION_ERROR_MSG_CODE,
    STATUS_SUCCESS,
)
from .errors import UsageError
from .models import BatchResponse, Message, Offer, OfferList, Parameter, Response


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------

def parse_message(data: dict) -> Message:
    return Message(
        msg=data.get("msg") or "",
        detail_msg=data.get("detailMsg") or "",
        msg_level=int(data.get("msgLevel") or 0),
        msg_code=int(data.get("msgCode") or 0),
    )


def parse_offer(data: dict) -> Offer:
    codes = data.get("code") or []
    if isinstance(codes, str):
        codes = [codes]
    return Offer(
        name=data.get("n") or "",
        codes=list(codes),
        treatment_code=data.get("treatmentCode") or "",
        score=data.get("score"),
        description=data.get("desc") or "",
        attributes=[Parameter.from_wire(a) for a in data.get("attributes") or []],
    )


def parse_offer_list(data: dict) -> OfferList:
    # Older servlet builds name the field interactionPointName instead of ip
    ip = data.get("ip") or data.get("interactionPointName") or ""
    return OfferList(
        ip=ip,
        default_string=data.get("defaultString") or "",
        offers=[parse_offer(o) for o in data.get("offers") or []],
    )


def parse_response(data: dict) -> Response:
    """
    Convert one decoded per-command response into a :class:`Response`.

    Args:
        data: One element of the ``responses`` array.

    Returns:
        Parsed response; the original dict is kept on ``raw``.
    """
    status = data.get("statusCode")
    return Response(
        status_code=STATUS_SUCCESS if status is None else int(status),
        session_id=data.get("sessionId") or None,
        offer_lists=[parse_offer_list(o) for o in data.get("offerLists") or []],
        profile=[Parameter.from_wire(p) for p in data.get("profile") or []],
        version=data.get("version"),
        messages=[parse_message(m) for m in data.get("messages") or []],
        raw=data,
    )


def parse_batch_response(data: object) -> BatchResponse:
    """
    Convert a decoded batch body into a :class:`BatchResponse`.

    Args:
        data: Decoded JSON body returned by the servlet.

    Returns:
        Parsed batch with responses in server order.

    Raises:
        UsageError: If the body is not a JSON object with a ``responses`` list.
    """
    if not isinstance(data, dict):
        raise UsageError(
            f"Malformed batch response: expected a JSON object, got {type(data).__name__}"
        )
    responses = data.get("responses")
    if not isinstance(responses, list):
        raise UsageError(
            f"Malformed batch response: missing 'responses' list. "
            f"Top-level keys present: {list(data.keys())}"
        )
    status = data.get("batchStatusCode")
    return BatchResponse(
        batch_status_code=STATUS_SUCCESS if status is None else int(status),
        responses=[parse_response(r) for r in responses],
    )


# ---------------------------------------------------------------------------
# Advisory classification
# ---------------------------------------------------------------------------

class MessageCategory:
    """
    Category constants and classification logic for advisory messages.

    Categories drive the retry decision: a recoverable session error is
    handled by re-establishing the session; a fatal error is raised at once.
    """

    NONE = "none"
    RECOVERABLE_SESSION = "recoverable_session"
    FATAL = "fatal"

    @staticmethod
    def categorize(message: Message) -> str:
        """
        Classify one advisory message.

        Only error-level messages are ever fatal.  A session error needs the
        session message code and one of :data:`RECOVERABLE_SESSION_PHRASES`
        in its text (case-insensitive substring match).

        Args:
            message: Parsed advisory message.

        Returns:
            One of the category constants.
        """
        if not message.is_error:
            return MessageCategory.NONE

        text = message.msg.lower()
        if message.msg_code == SESSION_ERROR_MSG_CODE and any(
            phrase in text for phrase in RECOVERABLE_SESSION_PHRASES
        ):
            return MessageCategory.RECOVERABLE_SESSION

        return MessageCategory.FATAL


def find_messages(batch: BatchResponse, category: str) -> list[Message]:
    """Return every message in ``batch`` that falls into ``category``."""
    return [
        message
        for response in batch.responses
        for message in response.messages
        if MessageCategory.categorize(message) == category
    ]


def has_session_error(batch: BatchResponse) -> bool:
    return bool(find_messages(batch, MessageCategory.RECOVERABLE_SESSION))

"""
Value types exchanged with the engine: parameters, audiences, responses.

Request-side types (:class:`Parameter`, :class:`Audience`) are frozen so a
command cannot change after it has been queued.  Response-side types are
plain dataclasses built by :mod:`interact_client.parser`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .config import MSG_LEVEL_ERROR, STATUS_SUCCESS
from .errors import UsageError


class ParamType:
    """Type tags understood by the engine for name/value/type triples."""

    STRING = "string"
    NUMERIC = "numeric"
    DATETIME = "datetime"

    ALL: frozenset[str] = frozenset({STRING, NUMERIC, DATETIME})


class AudienceLevel:
    """Audience levels shipped with the default engine configuration."""

    VISITOR = "Visitor"
    CUSTOMER = "Customer"


# ---------------------------------------------------------------------------
# Request-side values
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Parameter:
    """
    A ``{name, value, type}`` triple.

    The type tag is checked against :attr:`ParamType.ALL`; whether ``value``
    actually has that shape is left to the engine.
    """

    name: str
    value: Any
    type: str = ParamType.STRING

    def __post_init__(self) -> None:
        if self.type not in ParamType.ALL:
            raise ValueError(
                f"Unknown parameter type '{self.type}' for '{self.name}'. "
                f"Expected one of: {sorted(ParamType.ALL)}"
            )

    @classmethod
    def string(cls, name: str, value: str) -> Parameter:
        return cls(name, value, ParamType.STRING)

    @classmethod
    def numeric(cls, name: str, value: int | float) -> Parameter:
        return cls(name, value, ParamType.NUMERIC)

    @classmethod
    def datetime(cls, name: str, value: str) -> Parameter:
        return cls(name, value, ParamType.DATETIME)

    def to_wire(self) -> dict:
        return {"n": self.name, "v": self.value, "t": self.type}

    @classmethod
    def from_wire(cls, data: dict) -> Parameter:
        """
        Parse an engine-side triple.

        Unknown or missing type tags are read as ``string`` so one odd
        attribute cannot fail the whole response.
        """
        tag = str(data.get("t") or "").lower()
        if tag not in ParamType.ALL:
            tag = ParamType.STRING
        return cls(data["n"], data.get("v"), tag)



@dataclass(frozen=True)
class Audience:
    """An audience level plus its single identifier parameter."""

    level: str
    audience_id: Parameter

    @classmethod
    def create(
        cls,
        level: str,
        id_name: str,
        id_value: Any,
        id_type: str = ParamType.STRING,
    ) -> Audience:
        return cls(level, Parameter(id_name, id_value, id_type))

    @classmethod
    def visitor(cls, visitor_id: str = "0") -> Audience:
        return cls(AudienceLevel.VISITOR, Parameter.string("VisitorID", visitor_id))

    @classmethod
    def customer(cls, customer_id: int) -> Audience:
        return cls(AudienceLevel.CUSTOMER, Parameter.numeric("CustomerID", customer_id))

    def audience_ids(self) -> list[dict]:
        """Wire form of the identifier: always a one-element list."""
        return [self.audience_id.to_wire()]

    def to_dict(self) -> dict:
        return {
            "audienceLevel": self.level,
            "audienceId": {
                "name": self.audience_id.name,
                "value": self.audience_id.value,
                "type": self.audience_id.type,
            },
        }

    @classmethod
    def from_dict(cls, data: dict) -> Audience:
        ident = data["audienceId"]
        return cls.create(
            data["audienceLevel"],
            ident["name"],
            ident["value"],
            ident.get("type") or ParamType.STRING,
        )


# ---------------------------------------------------------------------------
# Response-side values
# ---------------------------------------------------------------------------

@dataclass
class Message:
    """Advisory message attached to a response."""

    msg: str = ""
    detail_msg: str = ""
    msg_level: int = 0
    msg_code: int = 0

    @property
    def is_error(self) -> bool:
        return self.msg_level == MSG_LEVEL_ERROR


@dataclass
class Offer:
    name: str = ""
    codes: list[str] = field(default_factory=list)
    treatment_code: str = ""
    score: float | None = None
    description: str = ""
    attributes: list[Parameter] = field(default_factory=list)

    def attribute(self, name: str, default: Any = None) -> Any:
        """Return the value of the named offer attribute, or ``default``."""
        for attr in self.attributes:
            if attr.name == name:
                return attr.value
        return default


@dataclass
class OfferList:
    ip: str = ""
    default_string: str = ""
    offers: list[Offer] = field(default_factory=list)


@dataclass
class Response:
    """
    Result of one command.

    ``synthetic`` marks a stand-in fabricated locally for a startSession
    that was never sent because the tracked session was still valid.
    """

    status_code: int = STATUS_SUCCESS
    session_id: str | None = None
    offer_lists: list[OfferList] = field(default_factory=list)
    profile: list[Parameter] = field(default_factory=list)
    version: str | None = None
    messages: list[Message] = field(default_factory=list)
    synthetic: bool = False
    raw: dict = field(default_factory=dict, repr=False)

    @classmethod
    def synthetic_for(cls, session_id: str | None) -> Response:
        return cls(status_code=STATUS_SUCCESS, session_id=session_id, synthetic=True)

    @property
    def errors(self) -> list[Message]:
        return [m for m in self.messages if m.is_error]

    @property
    def offers(self) -> list[Offer]:
        """Offers of every offer list, flattened in response order."""
        return [offer for offer_list in self.offer_lists for offer in offer_list.offers]


@dataclass
class BatchResponse:
    """
    Ordered per-command results of one batch.

    Position ``i`` answers command ``i`` of the submitted batch.  When
    ``recovered`` is set the responses answer the recovery batch instead
    (a forced startSession followed by the original non-startSession
    commands).
    """

    batch_status_code: int = STATUS_SUCCESS
    responses: list[Response] = field(default_factory=list)
    recovered: bool = False

    def first(self) -> Response:
        if not self.responses:
            raise UsageError("No response in batch")
        return self.responses[0]

    def last(self) -> Response:
        if not self.responses:
            raise UsageError("No response in batch")
        return self.responses[-1]


@dataclass
class PageOffers:
    """Offers for one page render plus the session they were served under."""

    offers: list[Offer]
    session_id: str

"""
interact_client — session-tracking client for the Interact batch servlet.

Module layout
-------------
config.py     — InteractConfig, endpoint/header constants, response codes
errors.py     — InteractError hierarchy
models.py     — Parameter, Audience, Response, BatchResponse, offers
commands.py   — Command model and one factory per action
parser.py     — wire-response parsing, advisory-message classification
session.py    — SessionState plus persisted mirror stores
transport.py  — requests-based HTTP transport, header construction
executor.py   — batch execution, startSession elision, synthetic responses
retry.py      — expired-session recovery controller
batch.py      — fluent BatchBuilder
client.py     — InteractClient facade

Public interface
----------------
Create a client and start a session:
    client = InteractClient(InteractConfig(server_url=...))
    client.start_session(Audience.visitor("v1"))

Request offers and post events:
    client.get_offers("HomepageOffer", 2)
    client.post_event("page_view")

Send several commands as one batch:
    client.create_batch().start_session(audience).get_offers(ip, 2).execute()
"""

import logging

from .batch import UNSET, BatchBuilder
from .client import InteractClient
from .commands import Action, Command, OfferRequest
from .config import InteractConfig
from .errors import (
    AdvisoryError,
    InteractApiError,
    InteractError,
    SessionRecoveryError,
    UsageError,
)
from .models import (
    Audience,
    AudienceLevel,
    BatchResponse,
    Message,
    Offer,
    OfferList,
    PageOffers,
    Parameter,
    ParamType,
    Response,
)
from .session import JsonFileStore, MemoryStore, SessionState

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    # Client
    "InteractClient",
    "InteractConfig",
    "BatchBuilder",
    "UNSET",
    # Request values
    "Action",
    "Command",
    "OfferRequest",
    "Audience",
    "AudienceLevel",
    "Parameter",
    "ParamType",
    # Response values
    "BatchResponse",
    "Response",
    "Message",
    "Offer",
    "OfferList",
    "PageOffers",
    # Session persistence
    "SessionState",
    "MemoryStore",
    "JsonFileStore",
    # Errors
    "InteractError",
    "InteractApiError",
    "AdvisoryError",
    "SessionRecoveryError",
    "UsageError",
]

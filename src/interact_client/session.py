"""
Session state for one client, with an optional persisted mirror.

The mirror lets a new process pick up the session of a previous one.  It is
read once, when :class:`SessionState` is constructed, and rewritten on every
session update.  It is a lookup aid only: the in-memory state is
authoritative, and an entry older than the expiry window is ignored.

No locking is applied, neither in memory nor on the mirror.  Two clients that
share a store can overwrite each other's entry.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Protocol

from .config import DEFAULT_STORAGE_KEY
from .models import Audience

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, including the trailing ``Z`` form."""
    if isinstance(value, str) and value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


# ---------------------------------------------------------------------------
# Persistence slots
# ---------------------------------------------------------------------------

class SessionStore(Protocol):
    """Key/value slot holding JSON-serializable session records."""

    def get(self, key: str) -> dict | None: ...

    def set(self, key: str, value: dict) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    """Process-local store, mostly useful for sharing state between clients in tests."""

    def __init__(self) -> None:
        self._data: dict[str, dict] = {}

    def get(self, key: str) -> dict | None:
        return self._data.get(key)

    def set(self, key: str, value: dict) -> None:
        self._data[key] = dict(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore:
    """
    Store backed by one JSON object on disk, keyed by storage key.

    The whole file is rewritten on every change.  A missing file reads as
    empty; an unreadable one is logged and also treated as empty.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def _load(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable session file %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    def get(self, key: str) -> dict | None:
        value = self._load().get(key)
        return value if isinstance(value, dict) else None

    def set(self, key: str, value: dict) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def delete(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)


# ---------------------------------------------------------------------------
# Session state
# ---------------------------------------------------------------------------

class SessionState:
    """
    The tracked session id, its validity, and the audience it belongs to.

    Validity is computed on read; there is no background expiry.  The
    remembered audience survives plain id updates so an expired session can
    be re-established, and is only dropped by :meth:`clear`.

    The credential token captured from response headers lives here too.  It
    is independent of the session: :meth:`clear` keeps it.
    """

    def __init__(
        self,
        expiry: timedelta | None = None,
        store: SessionStore | None = None,
        storage_key: str = DEFAULT_STORAGE_KEY,
        interactive_channel: str | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.expiry = expiry
        self.store = store
        self.storage_key = storage_key
        self.interactive_channel = interactive_channel
        self._clock = clock

        self.session_id: str | None = None
        self.remembered_audience: Audience | None = None
        self.last_activity: datetime = clock()
        self.token_id: str | None = None
        self._valid = False

        if store is not None:
            self._restore()

    # ── Reads ─────────────────────────────────────────────────────────────

    def age(self) -> timedelta:
        return self._clock() - self.last_activity

    def is_expired(self) -> bool:
        return self.expiry is not None and self.age() >= self.expiry

    def is_valid(self) -> bool:
        return bool(self.session_id) and self._valid and not self.is_expired()

    # ── Writes ────────────────────────────────────────────────────────────

    def set(self, session_id: str | None, audience: Audience | None = None) -> None:
        """
        Track ``session_id`` and stamp the activity time.

        Args:
            session_id: New id; ``None`` leaves the state invalid.
            audience: Audience to remember for recovery; ``None`` keeps the
                      currently remembered one.
        """
        self.session_id = session_id
        self._valid = bool(session_id)
        self.last_activity = self._clock()
        if audience is not None:
            self.remembered_audience = audience
        self._persist()

    def clear(self) -> None:
        """Reset to the empty state and purge the persisted mirror."""
        self.session_id = None
        self.remembered_audience = None
        self.last_activity = self._clock()
        self._valid = False
        if self.store is not None:
            self.store.delete(self.storage_key)

    def remember_token(self, token_id: str) -> None:
        self.token_id = token_id

    def forget_token(self) -> None:
        self.token_id = None

    # ── Persisted mirror ──────────────────────────────────────────────────

    def to_record(self) -> dict:
        return {
            "sessionId": self.session_id,
            "audience": (
                self.remembered_audience.to_dict()
                if self.remembered_audience is not None
                else None
            ),
            "lastActivity": self.last_activity.isoformat(),
            "interactiveChannel": self.interactive_channel,
        }

    def _persist(self) -> None:
        if self.store is None:
            return
        if self.session_id:
            self.store.set(self.storage_key, self.to_record())
        else:
            self.store.delete(self.storage_key)

    def _restore(self) -> None:
        record = self.store.get(self.storage_key)
        if not record:
            return

        try:
            last_activity = parse_timestamp(record["lastActivity"])
            if last_activity.tzinfo is None:
                last_activity = last_activity.replace(tzinfo=timezone.utc)
            session_id = record.get("sessionId")
            audience_data = record.get("audience")
            audience = Audience.from_dict(audience_data) if audience_data else None
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Discarding malformed persisted session: %s", exc)
            self.store.delete(self.storage_key)
            return

        channel = record.get("interactiveChannel")
        if self.interactive_channel and channel and channel != self.interactive_channel:
            logger.info(
                "Persisted session belongs to channel '%s', not '%s'; ignoring it",
                channel,
                self.interactive_channel,
            )
            self.store.delete(self.storage_key)
            return

        if self.expiry is not None and self._clock() - last_activity >= self.expiry:
            logger.info("Persisted session %s is stale; ignoring it", session_id)
            self.store.delete(self.storage_key)
            return

        self.session_id = session_id
        self._valid = bool(session_id)
        self.last_activity = last_activity
        self.remembered_audience = audience

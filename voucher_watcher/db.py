"""JSON-file persistence layer for the voucher watcher.

Two independent documents are kept: the list of registered chats and the
singleton availability state.  Each save rewrites the whole document
atomically; each load falls back to a default when the file is missing or
unreadable.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, List, Optional

from .campaign import StoreAvailability
from .utils import utc_now_iso

logger = logging.getLogger(__name__)


class PersistenceReadError(Exception):
    """A stored document could not be read or decoded."""


class JsonStore:
    """Load/save a single JSON document, whole-file at a time."""

    def __init__(self, path: str | Path, default_factory: Callable[[], Any]) -> None:
        self.path = Path(path)
        self.default_factory = default_factory
        # Callers hold this across load-modify-save.
        self.lock = threading.RLock()

    def _read(self) -> Any:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return self.default_factory()
        except OSError as e:
            raise PersistenceReadError(f"cannot read {self.path}: {e}") from e
        try:
            value = json.loads(raw)
        except ValueError as e:
            raise PersistenceReadError(f"invalid JSON in {self.path}: {e}") from e

        default = self.default_factory()
        if not isinstance(value, type(default)):
            raise PersistenceReadError(
                f"{self.path} holds {type(value).__name__}, expected {type(default).__name__}"
            )
        return value

    def load(self) -> Any:
        with self.lock:
            try:
                return self._read()
            except PersistenceReadError as e:
                logger.warning("%s; using default", e)
                return self.default_factory()

    def save(self, value: Any) -> None:
        with self.lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=str(self.path.parent), prefix=self.path.name, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(value, fh, indent=2, ensure_ascii=False)
                os.replace(tmp, self.path)
            except BaseException:
                try:
                    os.unlink(tmp)
                except OSError:
                    pass
                raise


# ---- Subscribers ---------------------------------------------------------------

@dataclass
class Subscriber:
    id: Any
    display_name: str
    kind: str
    registered_at: str

    def to_dict(self) -> dict:
        return {
            "chat_id": self.id,
            "display_name": self.display_name,
            "kind": self.kind,
            "registered_at": self.registered_at,
        }

    @classmethod
    def from_dict(cls, row: dict) -> "Subscriber":
        return cls(
            id=row.get("chat_id"),
            display_name=str(row.get("display_name") or "unknown"),
            kind=str(row.get("kind") or ""),
            registered_at=str(row.get("registered_at") or ""),
        )


class SubscriberRegistry:
    """Registered chats. Add-if-absent only; nothing is ever removed."""

    def __init__(self, store: JsonStore) -> None:
        self.store = store

    @classmethod
    def at(cls, path: str | Path) -> "SubscriberRegistry":
        return cls(JsonStore(path, list))

    def list_subscribers(self) -> List[Subscriber]:
        rows = self.store.load()
        return [Subscriber.from_dict(r) for r in rows if isinstance(r, dict) and r.get("chat_id") is not None]

    def count(self) -> int:
        return len(self.list_subscribers())

    def register_if_absent(self, chat_id: Any, display_name: str, kind: str) -> bool:
        """Store a new chat. Returns False when the chat was already registered."""
        with self.store.lock:
            rows = self.store.load()
            if any(isinstance(r, dict) and r.get("chat_id") == chat_id for r in rows):
                return False
            sub = Subscriber(
                id=chat_id,
                display_name=display_name or "unknown",
                kind=kind or "",
                registered_at=utc_now_iso(),
            )
            rows.append(sub.to_dict())
            self.store.save(rows)
        logger.info("Registered chat %s (%s, %s)", chat_id, sub.display_name, sub.kind)
        return True


# ---- Availability state --------------------------------------------------------

@dataclass
class AvailabilityState:
    last_available: bool = False
    last_check_at: Optional[str] = None
    last_stores: Optional[List[StoreAvailability]] = field(default=None)

    def to_dict(self) -> dict:
        doc: dict = {"last_available": self.last_available}
        if self.last_check_at is not None:
            doc["last_check_at"] = self.last_check_at
        if self.last_stores is not None:
            doc["last_stores"] = [s.to_dict() for s in self.last_stores]
        return doc

    @classmethod
    def from_dict(cls, doc: dict) -> "AvailabilityState":
        stores = doc.get("last_stores")
        last_stores: Optional[List[StoreAvailability]] = None
        if isinstance(stores, list):
            last_stores = [
                StoreAvailability(name=str(s.get("name", "")), available=s.get("available") is True)
                for s in stores
                if isinstance(s, dict)
            ]
        check = doc.get("last_check_at")
        return cls(
            last_available=doc.get("last_available") is True,
            last_check_at=str(check) if check is not None else None,
            last_stores=last_stores,
        )


class StateStore:
    """The singleton availability record."""

    def __init__(self, store: JsonStore) -> None:
        self.store = store

    @classmethod
    def at(cls, path: str | Path) -> "StateStore":
        return cls(JsonStore(path, lambda: {"last_available": False}))

    @property
    def lock(self) -> threading.RLock:
        return self.store.lock

    def load(self) -> AvailabilityState:
        return AvailabilityState.from_dict(self.store.load())

    def save(self, state: AvailabilityState) -> None:
        self.store.save(state.to_dict())


__all__ = [
    "JsonStore",
    "PersistenceReadError",
    "Subscriber",
    "SubscriberRegistry",
    "AvailabilityState",
    "StateStore",
]

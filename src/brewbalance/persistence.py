"""SQLModel backed key-value storage for settings and entries."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Field, Session, SQLModel, create_engine

from . import dates
from .codec import SnapshotCodec
from .config import ENTRIES_KEY, SETTINGS_KEY, database_url
from .exceptions import PersistenceError
from .models import Entry, Settings


class StoredDocument(SQLModel, table=True):
    key: str = Field(primary_key=True)
    payload: str
    updated_at: datetime = Field(default_factory=dates.utc_now)


class DocumentStore:
    """Round-trip settings and entries as JSON documents keyed by name."""

    def __init__(self, url: str | None = None, *, codec: SnapshotCodec | None = None) -> None:
        self.url = url or database_url()
        self.codec = codec or SnapshotCodec()
        self.engine = create_engine(self.url, echo=False, connect_args={"check_same_thread": False})
        try:
            SQLModel.metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not initialise storage at {self.url}.") from exc

    # ------------------------------------------------------------------
    # Raw documents
    # ------------------------------------------------------------------
    def read(self, key: str) -> Optional[str]:
        try:
            with Session(self.engine) as session:
                row = session.get(StoredDocument, key)
                return row.payload if row else None
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not read '{key}'.") from exc

    def write(self, key: str, payload: str) -> None:
        try:
            with Session(self.engine) as session:
                row = session.get(StoredDocument, key)
                if row:
                    row.payload = payload
                    row.updated_at = dates.utc_now()
                    session.add(row)
                else:
                    session.add(StoredDocument(key=key, payload=payload))
                session.commit()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not write '{key}'.") from exc

    def delete(self, key: str) -> None:
        try:
            with Session(self.engine) as session:
                row = session.get(StoredDocument, key)
                if row:
                    session.delete(row)
                    session.commit()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not delete '{key}'.") from exc

    # ------------------------------------------------------------------
    # Typed documents
    # ------------------------------------------------------------------
    def load_settings(self, *, defaults: Settings | None = None) -> Optional[Settings]:
        raw = self.read(SETTINGS_KEY)
        if raw is None:
            return None
        try:
            payload = self.codec.from_json(raw)
            if not isinstance(payload, dict):
                raise ValueError("stored settings are not an object")
            return self.codec.settings_from_dict(payload, defaults=defaults)
        except (ValueError, TypeError, KeyError) as exc:
            raise PersistenceError("Stored settings could not be decoded.") from exc

    def save_settings(self, settings: Settings) -> None:
        self.write(SETTINGS_KEY, self.codec.to_json(self.codec.settings_to_dict(settings)))

    def load_entries(self) -> List[Entry]:
        raw = self.read(ENTRIES_KEY)
        if raw is None:
            return []
        try:
            payload = self.codec.from_json(raw)
            if not isinstance(payload, list):
                raise ValueError("stored entries are not a list")
            return self.codec.entries_from_list(payload)
        except (ValueError, TypeError, KeyError) as exc:
            raise PersistenceError("Stored entries could not be decoded.") from exc

    def save_entries(self, entries: Sequence[Entry]) -> None:
        self.write(ENTRIES_KEY, self.codec.to_json(self.codec.entries_to_list(entries)))

    def clear(self) -> None:
        self.delete(SETTINGS_KEY)
        self.delete(ENTRIES_KEY)


__all__ = ["DocumentStore", "StoredDocument"]

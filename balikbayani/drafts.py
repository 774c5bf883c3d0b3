# balikbayani/drafts.py
from __future__ import annotations
import json
import logging
import sqlite3
from typing import Any, Protocol
from collections.abc import MutableMapping
from dataclasses import dataclass, field
from pathlib import Path

from .config import DRAFT_DB_PATH
from .utils import STEP_KEY, FORM_STATE_KEY, DOC_META_KEY

logger = logging.getLogger(__name__)

DRAFT_STORE_ERRORS: tuple[type[Exception], ...] = (sqlite3.Error, OSError, TypeError, ValueError)

# ===================================================================
# 1. STORES
# ===================================================================

class DraftStore(Protocol):
    def read(self, key: str) -> str | None: ...
    def write(self, key: str, raw: str) -> None: ...
    def delete(self, key: str) -> None: ...


class MappingDraftStore:
    """Keeps drafts in a mutable mapping. In the app that is `app.storage.user`, one per browser."""

    def __init__(self, storage: MutableMapping[str, Any]) -> None:
        self._storage = storage

    def read(self, key: str) -> str | None:
        raw = self._storage.get(key)
        return raw if isinstance(raw, str) else None

    def write(self, key: str, raw: str) -> None:
        self._storage[key] = raw

    def delete(self, key: str) -> None:
        self._storage.pop(key, None)


class SqliteDraftStore:
    """Server-side drafts, one row per (owner, draft key)."""

    def __init__(self, owner: str, db_path: Path = DRAFT_DB_PATH) -> None:
        self.owner = owner
        self.db_path = db_path

    def get_db_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def read(self, key: str) -> str | None:
        with self.get_db_connection() as conn:
            row = conn.execute(
                "SELECT payload FROM drafts WHERE owner = ? AND draft_key = ?", (self.owner, key)
            ).fetchone()
        return row['payload'] if row else None

    def write(self, key: str, raw: str) -> None:
        with self.get_db_connection() as conn:
            conn.execute("""
                INSERT INTO drafts (owner, draft_key, payload, updated_at)
                VALUES (?, ?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(owner, draft_key) DO UPDATE SET
                    payload = excluded.payload, updated_at = CURRENT_TIMESTAMP
            """, (self.owner, key, raw))
            conn.commit()

    def delete(self, key: str) -> None:
        with self.get_db_connection() as conn:
            conn.execute("DELETE FROM drafts WHERE owner = ? AND draft_key = ?", (self.owner, key))
            conn.commit()


def setup_database(db_path: Path = DRAFT_DB_PATH) -> None:
    logger.info(f"Setting up draft database at: {db_path}")
    try:
        if not db_path.parent.exists():
            db_path.parent.mkdir(parents=True, exist_ok=True)
        with sqlite3.connect(db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS drafts (
                    owner TEXT NOT NULL,
                    draft_key TEXT NOT NULL,
                    payload TEXT NOT NULL,
                    updated_at TEXT,
                    PRIMARY KEY (owner, draft_key)
                );
            """)
            conn.commit()
        logger.info("Draft database setup successful.")
    except sqlite3.Error as e:
        logger.error(f"Draft database setup failed: {e}"); raise

# ===================================================================
# 2. PAYLOAD & PERSISTER
# ===================================================================

@dataclass
class DraftPayload:
    form_state: dict[str, Any] = field(default_factory=dict)
    doc_meta: dict[str, Any] = field(default_factory=dict)
    step: str | None = None

    def to_json(self) -> str:
        return json.dumps({FORM_STATE_KEY: self.form_state, DOC_META_KEY: self.doc_meta, STEP_KEY: self.step})

    @classmethod
    def from_json(cls, raw: str) -> DraftPayload:
        """Raises ValueError on anything that is not a draft object."""
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("Draft is not a JSON object")
        form_state = data.get(FORM_STATE_KEY)
        doc_meta = data.get(DOC_META_KEY)
        step = data.get(STEP_KEY)
        return cls(
            form_state=form_state if isinstance(form_state, dict) else {},
            doc_meta=doc_meta if isinstance(doc_meta, dict) else {},
            step=step if isinstance(step, str) else None,
        )


class DraftPersister:
    """
    Best-effort draft saving for one form.

    Nothing is written before `mount()`, and nothing at all when `enabled` is False
    (editing an existing application). Store failures are logged, never raised.
    """

    def __init__(self, store: DraftStore, key: str, *, enabled: bool = True) -> None:
        self.store = store
        self.key = key
        self.enabled = enabled
        self.mounted = False

    def mount(self) -> None:
        self.mounted = True

    def load(self) -> DraftPayload | None:
        if not self.enabled:
            return None
        try:
            raw = self.store.read(self.key)
            if raw is None:
                return None
            return DraftPayload.from_json(raw)
        except DRAFT_STORE_ERRORS as e:
            logger.warning(f"Ignoring unreadable draft '{self.key}': {e}")
            return None

    def save(self, payload: DraftPayload) -> bool:
        if not self.enabled or not self.mounted:
            return False
        try:
            self.store.write(self.key, payload.to_json())
            return True
        except DRAFT_STORE_ERRORS as e:
            logger.warning(f"Could not save draft '{self.key}': {e}")
            return False

    def clear(self) -> None:
        try:
            self.store.delete(self.key)
            logger.info(f"Cleared draft '{self.key}'.")
        except DRAFT_STORE_ERRORS as e:
            logger.error(f"Could not clear draft '{self.key}': {e}")

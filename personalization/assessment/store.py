"""
Assessment session persistence.

Stores hand out copies: a session read from a store can be modified
freely and only becomes visible to other callers once saved again.
JSON sessions are stored one file per session: {session_id}.json
"""

from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from loguru import logger

from personalization.core.errors import DataAccessError
from personalization.models import AssessmentSession


class SessionStore(ABC):
    @abstractmethod
    async def get(self, session_id: str) -> Optional[AssessmentSession]:
        """Load a session, or None when it does not exist."""

    @abstractmethod
    async def save(self, session: AssessmentSession) -> None:
        """Persist the full session state (replace-on-write)."""


class InMemorySessionStore(SessionStore):
    def __init__(self) -> None:
        self._sessions: dict[str, dict] = {}

    async def get(self, session_id: str) -> Optional[AssessmentSession]:
        data = self._sessions.get(session_id)
        return AssessmentSession.from_dict(data) if data is not None else None

    async def save(self, session: AssessmentSession) -> None:
        self._sessions[session.session_id] = session.to_dict()

    def __len__(self) -> int:
        return len(self._sessions)


class JsonSessionStore(SessionStore):
    """
    Sessions as JSON files in a directory.

    Writes go to a temporary file first and are renamed into place, so
    a crash mid-write leaves the previous state intact.
    """

    def __init__(self, session_dir: Path):
        self.session_dir = Path(session_dir)
        self.session_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, session_id: str) -> Path:
        safe = "".join(c if c.isalnum() or c in "-_." else "_" for c in session_id)
        return self.session_dir / f"{safe}.json"

    def _load_sync(self, session_id: str) -> Optional[AssessmentSession]:
        filepath = self._path(session_id)
        if not filepath.exists():
            return None
        try:
            with open(filepath, "r", encoding="utf-8") as f:
                data = json.load(f)
            return AssessmentSession.from_dict(data)
        except OSError as e:
            raise DataAccessError(f"cannot read session {session_id}: {e}", source="sessions") from e
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Corrupted session file {filepath}: {e}")
            raise DataAccessError(f"corrupted session {session_id}", source="sessions") from e

    def _save_sync(self, session: AssessmentSession) -> Path:
        filepath = self._path(session.session_id)
        tmp = filepath.with_suffix(".json.tmp")
        try:
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(session.to_dict(), f, indent=2)
            tmp.replace(filepath)
        except OSError as e:
            raise DataAccessError(f"cannot write session {session.session_id}: {e}", source="sessions") from e
        return filepath

    async def get(self, session_id: str) -> Optional[AssessmentSession]:
        return await asyncio.to_thread(self._load_sync, session_id)

    async def save(self, session: AssessmentSession) -> None:
        await asyncio.to_thread(self._save_sync, session)

    def list_session_ids(self) -> list[str]:
        return sorted(p.stem for p in self.session_dir.glob("*.json"))

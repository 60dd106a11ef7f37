"""
File-backed persistence for chat sessions.

Each session lives in ``<base_dir>/<session_id>.json``. Saves go through a
temporary file and ``os.replace`` so a concurrent reader sees either the
previous record or the new one, never a partial write. The store does no
locking of its own: two writers to the same id race and the last save wins.
"""

import asyncio
import os
import re
import tempfile
from pathlib import Path
from typing import List, Optional, Union

from pydantic import ValidationError

from errors import InvalidInputError, SessionDecodeError, SessionNotFoundError, SessionPersistenceError
from logger import get_logger
from models import Session

logger = get_logger(__name__)

SESSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,128}$")
RECORD_SUFFIX = ".json"


class FileSessionStore:
    """Durable get/save/delete of Session records addressed by id."""

    def __init__(self, base_dir: Union[str, Path] = "sessions"):
        self.base_dir = Path(base_dir)

    def _record_path(self, session_id: str) -> Path:
        if not isinstance(session_id, str) or not SESSION_ID_PATTERN.match(session_id):
            raise InvalidInputError(f"Invalid session id: {session_id!r}")
        return self.base_dir / f"{session_id}{RECORD_SUFFIX}"

    async def get(self, session_id: str) -> Optional[Session]:
        """
        Load a session.

        Returns:
            The stored Session, or None when no record exists.

        Raises:
            SessionDecodeError: The record exists but is not a valid session.
            SessionPersistenceError: The record could not be read.
        """
        path = self._record_path(session_id)
        return await asyncio.to_thread(self._read, session_id, path)

    def _read(self, session_id: str, path: Path) -> Optional[Session]:
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except UnicodeDecodeError as e:
            logger.error("Session record is not valid UTF-8", session_id=session_id)
            raise SessionDecodeError(session_id, str(e)) from e
        except OSError as e:
            logger.error(f"Failed to read session record: {str(e)}", session_id=session_id)
            raise SessionPersistenceError(f"Failed to read session {session_id}", str(e)) from e

        try:
            session = Session.model_validate_json(raw)
        except ValidationError as e:
            logger.error("Session record could not be decoded", session_id=session_id, errors=e.error_count())
            raise SessionDecodeError(session_id, str(e)) from e

        if session.id != session_id:
            raise SessionDecodeError(session_id, f"record holds id {session.id!r}")
        return session

    async def save(self, session: Session) -> None:
        """
        Write the full session record, replacing any previous one.

        Raises:
            SessionPersistenceError: The record could not be written. Any
                previous record is left untouched.
        """
        path = self._record_path(session.id)
        payload = session.model_dump_json()
        await asyncio.to_thread(self._write, session.id, path, payload)
        logger.debug("Session saved", session_id=session.id, turns=len(session.history))

    def _write(self, session_id: str, path: Path, payload: str) -> None:
        tmp_name = None
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.base_dir,
                prefix=f".{session_id}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(payload)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as e:
            logger.error(f"Failed to write session record: {str(e)}", session_id=session_id)
            raise SessionPersistenceError(f"Failed to save session {session_id}", str(e)) from e
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass

    async def delete(self, session_id: str) -> None:
        """
        Remove a session record.

        Raises:
            SessionNotFoundError: No record exists for the id.
            SessionPersistenceError: The record could not be removed.
        """
        path = self._record_path(session_id)
        await asyncio.to_thread(self._unlink, session_id, path)

    def _unlink(self, session_id: str, path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError as e:
            raise SessionNotFoundError(session_id) from e
        except OSError as e:
            logger.error(f"Failed to delete session record: {str(e)}", session_id=session_id)
            raise SessionPersistenceError(f"Failed to delete session {session_id}", str(e)) from e

    async def list_ids(self) -> List[str]:
        """Ids of all persisted sessions, sorted."""
        return await asyncio.to_thread(self._list_ids)

    def _list_ids(self) -> List[str]:
        if not self.base_dir.is_dir():
            return []
        return sorted(
            p.name[:-len(RECORD_SUFFIX)]
            for p in self.base_dir.iterdir()
            if p.suffix == RECORD_SUFFIX and not p.name.startswith(".")
        )

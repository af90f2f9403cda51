"""
Guest persistence.

`LocalStorage` is a small string key/value store kept in one JSON file, the
desktop counterpart of a browser's localStorage. Guests keep exactly one
session in it under a fixed key; every save rewrites the whole session.
"""
import json
import logging
import os
from pathlib import Path
from typing import Dict, Optional

from pydantic import ValidationError

from coach.core import config
from coach.schemas.session import InterviewSession

logger = logging.getLogger(__name__)

GUEST_SESSION_KEY = "guestInterviewSession"
SESSION_TO_SAVE_KEY = "sessionToSaveAfterLogin"


class LocalStorage:
    """String key/value pairs persisted to a JSON file."""

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path or config.GUEST_STORAGE_PATH)

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as fh:
            try:
                data = json.load(fh)
            except ValueError as e:
                # Unreadable contents are dropped; the next write replaces them
                logger.warning(f"Ignoring corrupt local storage file {self.path}: {e}")
                return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as fh:
            json.dump(data, fh)
        os.replace(tmp_path, self.path)

    def get_item(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set_item(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove_item(self, key: str) -> None:
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)


def save_guest_session(storage: LocalStorage, session: InterviewSession) -> InterviewSession:
    """
    Save the guest's session, replacing whatever was stored before.

    A failed write is logged and the session is still returned so the
    practice run can continue.
    """
    try:
        storage.set_item(GUEST_SESSION_KEY, json.dumps(session.to_document()))
    except (OSError, ValueError) as e:
        logger.error(f"Could not save session to local storage: {e}")
    return session


def get_guest_session(storage: LocalStorage) -> Optional[InterviewSession]:
    """The guest's session, or None if there is none or it cannot be read."""
    try:
        raw = storage.get_item(GUEST_SESSION_KEY)
        if raw:
            return InterviewSession.model_validate_json(raw)
    except (OSError, ValueError, ValidationError) as e:
        logger.error(f"Could not retrieve session from local storage: {e}")
    return None


def clear_guest_session(storage: LocalStorage) -> None:
    try:
        storage.remove_item(GUEST_SESSION_KEY)
    except (OSError, ValueError) as e:
        logger.error(f"Could not clear session from local storage: {e}")


def stash_session_for_import(storage: LocalStorage, session: InterviewSession) -> None:
    """Remember a finished guest session so it can be imported after sign-in."""
    try:
        storage.set_item(SESSION_TO_SAVE_KEY, json.dumps(session.to_document()))
    except (OSError, ValueError) as e:
        logger.error(f"Could not stash session for import: {e}")


def take_session_to_import(storage: LocalStorage) -> Optional[InterviewSession]:
    """Pop the stashed session; it is removed first so an import is attempted once."""
    try:
        raw = storage.get_item(SESSION_TO_SAVE_KEY)
        if not raw:
            return None
        storage.remove_item(SESSION_TO_SAVE_KEY)
        return InterviewSession.model_validate_json(raw)
    except (OSError, ValueError, ValidationError) as e:
        logger.error(f"Could not read stashed session: {e}")
        return None

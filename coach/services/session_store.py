"""
Per-user interview session store.

Sessions are kept as documents keyed by (user id, session id). Database
errors are rolled back and re-raised unchanged so the API layer can tell
configuration problems (missing tables, bad credentials) from the rest.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from coach.core.errors import UnauthorizedError
from coach.db.models.interview_session import InterviewSessionDocument

logger = logging.getLogger(__name__)


def _parse_created_at(value: Optional[str]) -> datetime:
    """Parse an ISO-8601 createdAt value into an aware UTC datetime."""
    if not value:
        return datetime.now(timezone.utc)
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


class SessionStore:
    """Create/read/list/update access to one user's session documents."""

    def __init__(self, db: Session):
        self.db = db

    def _require_user(self, user_id: Optional[str]) -> str:
        if not user_id:
            raise UnauthorizedError("User ID is required to access user-specific data.")
        return user_id

    def _find(self, user_id: str, session_id: str) -> Optional[InterviewSessionDocument]:
        return (
            self.db.query(InterviewSessionDocument)
            .filter(
                InterviewSessionDocument.user_id == user_id,
                InterviewSessionDocument.id == session_id,
            )
            .first()
        )

    def _write(self, row: InterviewSessionDocument) -> None:
        try:
            self.db.add(row)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def create(self, user_id: Optional[str], data: Dict[str, Any]) -> Dict[str, Any]:
        """Store a new session under a generated id and return the stored record."""
        user_id = self._require_user(user_id)
        session_id = str(uuid.uuid4())
        document = {**data, "id": session_id, "userId": user_id}

        self._write(InterviewSessionDocument(
            user_id=user_id,
            id=session_id,
            document=document,
            created_at=_parse_created_at(document.get("createdAt")),
        ))

        logger.info(f"Session created: session_id={session_id}, user_id={user_id}")
        return document

    def get(self, user_id: Optional[str], session_id: str) -> Optional[Dict[str, Any]]:
        user_id = self._require_user(user_id)
        row = self._find(user_id, session_id)
        if row is None:
            return None
        return dict(row.document)

    def list(self, user_id: Optional[str]) -> List[Dict[str, Any]]:
        """All of the user's sessions, newest first."""
        user_id = self._require_user(user_id)
        rows = (
            self.db.query(InterviewSessionDocument)
            .filter(InterviewSessionDocument.user_id == user_id)
            .order_by(InterviewSessionDocument.created_at.desc())
            .all()
        )
        logger.debug(f"Sessions listed: user_id={user_id}, total={len(rows)}")
        return [dict(row.document) for row in rows]

    def update(self, user_id: Optional[str], session_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Merge top-level fields into a stored session and return the result."""
        user_id = self._require_user(user_id)
        row = self._find(user_id, session_id)
        if row is None:
            return None

        # A new dict is assigned so the JSON column is flagged as modified
        row.document = {**row.document, **changes, "id": session_id, "userId": user_id}
        self._write(row)

        logger.info(f"Session updated: session_id={session_id}, user_id={user_id}, fields={sorted(changes)}")
        return dict(row.document)

    def import_session(self, user_id: Optional[str], data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Adopt a client-created session, keeping its id.

        Ownership is overwritten with the authenticated user; an existing
        document with the same id is replaced.
        """
        user_id = self._require_user(user_id)
        session_id = data["id"]
        document = {**data, "userId": user_id}

        row = self._find(user_id, session_id)
        if row is None:
            row = InterviewSessionDocument(user_id=user_id, id=session_id)
        row.document = document
        row.created_at = _parse_created_at(document.get("createdAt"))
        self._write(row)

        logger.info(f"Session imported: session_id={session_id}, user_id={user_id}")
        return document

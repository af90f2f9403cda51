"""
Session storage for the client.

A session is driven through one `SessionStorage`, chosen once when the
session is opened: guests get `GuestSessionStorage` (local storage plus
direct model calls), signed-in users get `ApiSessionStorage` (every
mutation is a round trip to the API).
"""
import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import httpx

from coach.client.local_storage import LocalStorage, get_guest_session, save_guest_session
from coach.core import config
from coach.core.errors import (
    AuthenticationError,
    CoachError,
    NetworkError,
    ServerError,
    SessionNotFoundError,
    SessionStateError,
)
from coach.schemas.session import InterviewSession, SessionCreate, TranscriptEntry
from coach.services import session_rules
from coach.services.interview_ai import InterviewAI

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Awaitable[Optional[str]]]


class SessionStorage(ABC):
    """Everything a session controller needs from persistence."""

    @abstractmethod
    async def create_session(self, details: SessionCreate) -> InterviewSession:
        ...

    @abstractmethod
    async def get_session(self, session_id: str) -> InterviewSession:
        """Return the session or raise SessionNotFoundError."""

    @abstractmethod
    async def list_sessions(self) -> List[InterviewSession]:
        ...

    @abstractmethod
    async def advance(self, session_id: str, new_index: int) -> InterviewSession:
        ...

    @abstractmethod
    async def submit_answer(self, session_id: str, question_index: int, answer: str) -> InterviewSession:
        ...

    @abstractmethod
    async def append_transcript(self, session_id: str, transcript: Sequence[TranscriptEntry]) -> InterviewSession:
        ...

    @abstractmethod
    async def finish_session(
        self,
        session_id: str,
        transcript: Optional[Sequence[TranscriptEntry]] = None,
    ) -> InterviewSession:
        ...


class GuestSessionStorage(SessionStorage):
    """
    Single-session storage for guests.

    Model calls go straight to the model client; each mutation rewrites the
    whole session in local storage (last write wins).
    """

    def __init__(self, local: LocalStorage, ai: InterviewAI):
        self.local = local
        self.ai = ai

    def _apply(self, session: InterviewSession, changes: Dict[str, Any]) -> InterviewSession:
        updated = InterviewSession.model_validate({**session.to_document(), **changes})
        return save_guest_session(self.local, updated)

    async def create_session(self, details: SessionCreate) -> InterviewSession:
        questions = None
        if details.mode == "classic":
            questions = await asyncio.to_thread(
                self.ai.generate_questions, details.jobDescription, details.persona, details.resumeText
            )
        session = session_rules.new_session(details, questions, session_id=str(uuid.uuid4()))
        logger.info(f"Guest session created: session_id={session.id}, mode={session.mode}")
        return save_guest_session(self.local, session)

    async def get_session(self, session_id: str) -> InterviewSession:
        session = get_guest_session(self.local)
        if session is None or session.id != session_id:
            raise SessionNotFoundError("Guest session not found.")
        return session

    async def list_sessions(self) -> List[InterviewSession]:
        session = get_guest_session(self.local)
        return [session] if session else []

    async def advance(self, session_id: str, new_index: int) -> InterviewSession:
        session = await self.get_session(session_id)
        session_rules.check_index_move(session, new_index)
        return self._apply(session, {"currentQuestionIndex": new_index})

    async def submit_answer(self, session_id: str, question_index: int, answer: str) -> InterviewSession:
        session = await self.get_session(session_id)
        question = session_rules.check_answerable(session, question_index)
        feedback = await asyncio.to_thread(self.ai.evaluate_answer, question.question, question.category, answer)
        return self._apply(session, session_rules.answer_changes(session, question_index, answer, feedback))

    async def append_transcript(self, session_id: str, transcript: Sequence[TranscriptEntry]) -> InterviewSession:
        session = await self.get_session(session_id)
        session_rules.check_transcript_update(session, transcript)
        return self._apply(session, {"transcript": [entry.model_dump() for entry in transcript]})

    async def finish_session(
        self,
        session_id: str,
        transcript: Optional[Sequence[TranscriptEntry]] = None,
    ) -> InterviewSession:
        session = await self.get_session(session_id)
        session_rules.ensure_in_progress(session)
        if session.mode == "classic":
            changes = session_rules.classic_completion(session)
        else:
            if transcript is None:
                transcript = session.transcript or []
            else:
                session_rules.check_transcript_update(session, transcript)
            review = await asyncio.to_thread(self.ai.review_live_session, transcript, session.jobTitle)
            changes = session_rules.live_completion(session, transcript, review)
        return self._apply(session, changes)


class ApiSessionStorage(SessionStorage):
    """Storage backed by the HTTP API, authenticated with the signed-in user's token."""

    def __init__(
        self,
        get_token: TokenProvider,
        client: httpx.AsyncClient,
        base_url: Optional[str] = None,
    ):
        self.get_token = get_token
        self.client = client
        self.base_url = (base_url or config.API_BASE_URL).rstrip("/")

    async def _headers(self) -> Dict[str, str]:
        token = await self.get_token()
        if not token:
            raise AuthenticationError("You are not signed in. Please sign in to continue.")
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {token}",
        }

    @staticmethod
    def _error_detail(response: httpx.Response) -> Optional[str]:
        try:
            detail = response.json().get("detail")
        except (ValueError, AttributeError):
            return None
        if detail is None:
            return None
        return detail if isinstance(detail, str) else str(detail)

    def _handle_response(self, response: httpx.Response) -> Any:
        if response.is_success:
            return response.json()

        detail = self._error_detail(response)
        if response.status_code in (401, 403):
            raise AuthenticationError("Authentication failed. Your session may have expired. Please sign in again.")
        if response.status_code == 404:
            raise SessionNotFoundError(detail or "Session not found.")
        if response.status_code == 409:
            raise SessionStateError(detail or "The session cannot be changed in its current state.")
        if response.status_code >= 500:
            raise ServerError(
                detail or "A server error occurred. Please try again later.",
                status_code=response.status_code,
            )
        raise CoachError(detail or f"An unexpected error occurred. (Status: {response.status_code})")

    async def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        headers = await self._headers()
        try:
            response = await self.client.request(method, f"{self.base_url}{path}", json=payload, headers=headers)
        except httpx.TransportError as e:
            logger.error(f"Network error calling {method} {path}: {e}")
            raise NetworkError(
                "Network Error: Could not connect to the backend. Please ensure the backend server is running "
                "and there are no network issues (like a VPN or proxy) blocking the connection."
            ) from e
        return self._handle_response(response)

    async def create_session(self, details: SessionCreate) -> InterviewSession:
        data = await self._request("POST", "/sessions", details.model_dump())
        return InterviewSession.model_validate(data)

    async def get_session(self, session_id: str) -> InterviewSession:
        data = await self._request("GET", f"/sessions/{session_id}")
        return InterviewSession.model_validate(data)

    async def list_sessions(self) -> List[InterviewSession]:
        data = await self._request("GET", "/sessions")
        return [InterviewSession.model_validate(item) for item in data]

    async def advance(self, session_id: str, new_index: int) -> InterviewSession:
        data = await self._request("PUT", f"/sessions/{session_id}", {"currentQuestionIndex": new_index})
        return InterviewSession.model_validate(data)

    async def submit_answer(self, session_id: str, question_index: int, answer: str) -> InterviewSession:
        data = await self._request(
            "POST",
            f"/sessions/{session_id}/answer",
            {"questionIndex": question_index, "answer": answer},
        )
        return InterviewSession.model_validate(data)

    async def append_transcript(self, session_id: str, transcript: Sequence[TranscriptEntry]) -> InterviewSession:
        data = await self._request(
            "PUT",
            f"/sessions/{session_id}",
            {"transcript": [entry.model_dump() for entry in transcript]},
        )
        return InterviewSession.model_validate(data)

    async def finish_session(
        self,
        session_id: str,
        transcript: Optional[Sequence[TranscriptEntry]] = None,
    ) -> InterviewSession:
        payload = {}
        if transcript is not None:
            payload["transcript"] = [entry.model_dump() for entry in transcript]
        data = await self._request("POST", f"/sessions/{session_id}/finish", payload)
        return InterviewSession.model_validate(data)

    async def import_session(self, session: InterviewSession) -> InterviewSession:
        data = await self._request("POST", "/sessions/import", {"session": session.to_document()})
        return InterviewSession.model_validate(data)


@dataclass
class ClientIdentity:
    """A signed-in user as seen by the client."""
    uid: str
    get_token: TokenProvider


def select_storage(
    local: LocalStorage,
    identity: Optional[ClientIdentity] = None,
    client: Optional[httpx.AsyncClient] = None,
    ai: Optional[InterviewAI] = None,
) -> SessionStorage:
    """API storage for a signed-in identity, guest storage otherwise."""
    if identity is not None:
        if client is None:
            raise ValueError("An HTTP client is required for signed-in storage.")
        return ApiSessionStorage(identity.get_token, client)
    return GuestSessionStorage(local, ai or InterviewAI())

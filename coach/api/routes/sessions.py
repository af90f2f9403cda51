"""
Interview session endpoints.

Provides CRUD operations for the authenticated user's sessions plus the
answer, finish and import operations.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from coach.api.errors import translate_error
from coach.core.auth_dependency import AuthenticatedUser, get_current_user
from coach.db.session import get_db
from coach.schemas.session import (
    AnswerSubmit,
    FinishRequest,
    ImportRequest,
    InterviewSession,
    SessionCreate,
    SessionUpdate,
)
from coach.services import session_rules
from coach.services.interview_ai import InterviewAI, get_interview_ai
from coach.services.session_store import SessionStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["Sessions"])

NOT_FOUND_MESSAGE = "Session not found or you do not have permission to view it."


def get_session_store(db: Session = Depends(get_db)) -> SessionStore:
    """Session store bound to the request's database session."""
    return SessionStore(db)


def load_session(store: SessionStore, user: AuthenticatedUser, session_id: str) -> InterviewSession:
    """Fetch one of the user's sessions or raise 404."""
    document = store.get(user.uid, session_id)
    if document is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND_MESSAGE)
    return InterviewSession.model_validate(document)


@router.get("", response_model=List[InterviewSession], response_model_exclude_none=True)
def list_sessions(
    user: AuthenticatedUser = Depends(get_current_user),
    store: SessionStore = Depends(get_session_store),
):
    """List the authenticated user's sessions, newest first."""
    try:
        return store.list(user.uid)
    except Exception as e:
        raise translate_error(e, "Error fetching sessions", "Failed to fetch interview sessions.")


@router.get("/{session_id}", response_model=InterviewSession, response_model_exclude_none=True)
def get_session(
    session_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    store: SessionStore = Depends(get_session_store),
):
    try:
        return load_session(store, user, session_id)
    except Exception as e:
        raise translate_error(e, f"Error fetching session {session_id}", "Failed to fetch interview session.")


@router.post("", status_code=status.HTTP_201_CREATED, response_model=InterviewSession, response_model_exclude_none=True)
def create_session(
    details: SessionCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    store: SessionStore = Depends(get_session_store),
    ai: InterviewAI = Depends(get_interview_ai),
):
    """
    Start a new session.

    Classic sessions are created with their generated questions; live
    sessions start with an empty transcript.
    """
    try:
        questions = None
        if details.mode == "classic":
            questions = ai.generate_questions(details.jobDescription, details.persona, details.resumeText)

        session = session_rules.new_session(details, questions)
        return store.create(user.uid, session.to_document())
    except Exception as e:
        raise translate_error(e, "Error creating session", "Failed to create interview session.")


@router.post("/import", status_code=status.HTTP_201_CREATED, response_model=InterviewSession, response_model_exclude_none=True)
def import_session(
    payload: ImportRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    store: SessionStore = Depends(get_session_store),
):
    """
    Adopt a completed guest session.

    The client-generated id is kept so links made before sign-in still work.
    """
    session = payload.session
    if not session.id or session.status != "completed":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid session data provided for import.",
        )
    try:
        return store.import_session(user.uid, session.to_document())
    except Exception as e:
        raise translate_error(e, "Error importing session", "Failed to import session.")


@router.put("/{session_id}", response_model=InterviewSession, response_model_exclude_none=True)
def update_session(
    session_id: str,
    update: SessionUpdate,
    user: AuthenticatedUser = Depends(get_current_user),
    store: SessionStore = Depends(get_session_store),
):
    """Move to another question (forward only) or save a grown live transcript."""
    try:
        session = load_session(store, user, session_id)

        changes = {}
        if update.currentQuestionIndex is not None:
            session_rules.check_index_move(session, update.currentQuestionIndex)
            changes["currentQuestionIndex"] = update.currentQuestionIndex
        if update.transcript is not None:
            session_rules.check_transcript_update(session, update.transcript)
            changes["transcript"] = [entry.model_dump() for entry in update.transcript]

        if not changes:
            return session
        return store.update(user.uid, session_id, changes)
    except Exception as e:
        raise translate_error(e, f"Error updating session {session_id}", "Failed to update session.")


@router.post("/{session_id}/answer", response_model=InterviewSession, response_model_exclude_none=True)
def submit_answer(
    session_id: str,
    submission: AnswerSubmit,
    user: AuthenticatedUser = Depends(get_current_user),
    store: SessionStore = Depends(get_session_store),
    ai: InterviewAI = Depends(get_interview_ai),
):
    """
    Evaluate the answer to the current question and save it with its feedback.

    The session moves on to the next question, or completes when this was
    the last one.
    """
    try:
        session = load_session(store, user, session_id)
        question = session_rules.check_answerable(session, submission.questionIndex)

        feedback = ai.evaluate_answer(question.question, question.category, submission.answer)

        changes = session_rules.answer_changes(session, submission.questionIndex, submission.answer, feedback)
        return store.update(user.uid, session_id, changes)
    except Exception as e:
        raise translate_error(e, f"Error submitting answer for session {session_id}", "Failed to submit answer.")


@router.post("/{session_id}/finish", response_model=InterviewSession, response_model_exclude_none=True)
def finish_session(
    session_id: str,
    payload: FinishRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    store: SessionStore = Depends(get_session_store),
    ai: InterviewAI = Depends(get_interview_ai),
):
    """
    Complete a session.

    Classic sessions get their average score; live sessions get a review of
    the submitted transcript (or the stored one when none is sent).
    """
    try:
        session = load_session(store, user, session_id)
        session_rules.ensure_in_progress(session)

        if session.mode == "classic":
            changes = session_rules.classic_completion(session)
        else:
            transcript = payload.transcript
            if transcript is None:
                transcript = session.transcript or []
            else:
                session_rules.check_transcript_update(session, transcript)
            review = ai.review_live_session(transcript, session.jobTitle)
            changes = session_rules.live_completion(session, transcript, review)

        return store.update(user.uid, session_id, changes)
    except Exception as e:
        raise translate_error(e, f"Error finishing session {session_id}", "Failed to finalize session.")

"""
Lifecycle rules for interview sessions.

Pure functions shared by the API routes and the guest storage so that both
paths enforce the same transitions:

- status moves from in-progress to completed exactly once
- classic sessions gain averageScore at completion, live sessions gain
  liveSessionFeedback, never both
- currentQuestionIndex only moves forward and stays within the question list
- transcripts only grow
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from coach.core.errors import SessionStateError
from coach.schemas.session import (
    Feedback,
    InterviewSession,
    LiveSessionFeedback,
    Question,
    SessionCreate,
    TranscriptEntry,
)

logger = logging.getLogger(__name__)

QUESTIONS_PER_SESSION = 10


def now_iso() -> str:
    """UTC timestamp in the millisecond ISO-8601 form used for createdAt."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def new_session(
    details: SessionCreate,
    questions: Optional[List[Question]] = None,
    session_id: str = "",
) -> InterviewSession:
    """
    Build a fresh in-progress session from the creation form.

    Server-side sessions leave the id empty; the store assigns one.
    """
    session = InterviewSession(
        id=session_id,
        jobTitle=details.jobTitle,
        company=details.company,
        jobDescription=details.jobDescription,
        persona=details.persona,
        resumeText=details.resumeText or "",
        mode=details.mode,
        createdAt=now_iso(),
        status="in-progress",
        currentQuestionIndex=0,
        questions=[],
    )
    if details.mode == "classic":
        session.questions = list(questions or [])
    else:
        session.transcript = []
    return session


def ensure_in_progress(session: InterviewSession) -> None:
    if session.status == "completed":
        raise SessionStateError("This session has already been completed.")


def ensure_mode(session: InterviewSession, mode: str) -> None:
    if session.mode != mode:
        raise SessionStateError(f"This operation is only available for {mode} sessions.")


def check_index_move(session: InterviewSession, new_index: int) -> None:
    """Validate navigation to another question of a classic session."""
    ensure_in_progress(session)
    ensure_mode(session, "classic")
    if not 0 <= new_index < len(session.questions):
        raise ValueError("Question not found at that index.")
    if new_index < session.currentQuestionIndex:
        raise SessionStateError("Answered questions cannot be revisited.")


def check_answerable(session: InterviewSession, question_index: int) -> Question:
    """Return the question to evaluate, or raise if it cannot be answered now."""
    ensure_in_progress(session)
    ensure_mode(session, "classic")
    if not 0 <= question_index < len(session.questions):
        raise ValueError("Question not found at that index.")
    question = session.questions[question_index]
    if question.feedback is not None:
        raise SessionStateError("This question has already been answered.")
    if question_index != session.currentQuestionIndex:
        raise SessionStateError("Only the current question can be answered.")
    return question


def average_score(questions: Sequence[Question]) -> float:
    """Mean overall_score over answered questions; 0 when none were answered."""
    scores = [q.feedback.overall_score for q in questions if q.feedback is not None]
    if not scores:
        return 0.0
    return sum(scores) / len(scores)


def answer_changes(
    session: InterviewSession,
    question_index: int,
    answer: str,
    feedback: Feedback,
) -> Dict[str, Any]:
    """
    Fields to persist after an answer was evaluated.

    The index advances by one; answering the final question completes the
    session instead.
    """
    questions = [q.model_copy() for q in session.questions]
    questions[question_index] = questions[question_index].model_copy(
        update={"userAnswer": answer, "feedback": feedback}
    )
    changes: Dict[str, Any] = {
        "questions": [q.model_dump(exclude_none=True) for q in questions],
    }
    if question_index < len(questions) - 1:
        changes["currentQuestionIndex"] = question_index + 1
    else:
        changes["status"] = "completed"
        changes["averageScore"] = average_score(questions)
    return changes


def classic_completion(session: InterviewSession) -> Dict[str, Any]:
    ensure_in_progress(session)
    ensure_mode(session, "classic")
    return {"status": "completed", "averageScore": average_score(session.questions)}


def live_completion(
    session: InterviewSession,
    transcript: Sequence[TranscriptEntry],
    review: LiveSessionFeedback,
) -> Dict[str, Any]:
    ensure_in_progress(session)
    ensure_mode(session, "live")
    return {
        "status": "completed",
        "transcript": [entry.model_dump() for entry in transcript],
        "liveSessionFeedback": review.model_dump(),
    }


def append_chunk(entries: List[TranscriptEntry], speaker: str, text: str) -> List[TranscriptEntry]:
    """
    Add a transcription chunk to a transcript in place.

    Consecutive chunks from the same speaker are concatenated onto the last
    entry; a change of speaker opens a new entry unless the chunk is blank.
    """
    if entries and entries[-1].speaker == speaker:
        entries[-1] = TranscriptEntry(speaker=speaker, text=entries[-1].text + text)
    elif text.strip():
        entries.append(TranscriptEntry(speaker=speaker, text=text))
    return entries


def is_transcript_extension(
    current: Sequence[TranscriptEntry],
    proposed: Sequence[TranscriptEntry],
) -> bool:
    """True when `proposed` only appends to `current` (the last entry may have grown)."""
    if len(proposed) < len(current):
        return False
    for index, entry in enumerate(current):
        candidate = proposed[index]
        if candidate.speaker != entry.speaker:
            return False
        if index == len(current) - 1:
            if not candidate.text.startswith(entry.text):
                return False
        elif candidate.text != entry.text:
            return False
    return True


def check_transcript_update(session: InterviewSession, transcript: Sequence[TranscriptEntry]) -> None:
    ensure_in_progress(session)
    ensure_mode(session, "live")
    if not is_transcript_extension(session.transcript or [], transcript):
        raise SessionStateError("Transcript entries can only be appended.")

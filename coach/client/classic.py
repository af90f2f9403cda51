"""
Classic (question-by-question) session controller.

State machine:

    idle -> question_active -> answer_submitted -> feedback_shown
         -> question_active (next question) ... -> completed

Each active question runs a countdown of its suggested answer time. Running
out of time does not block the answer; the candidate may extend by a minute.
"""
import enum
import logging
import time
from typing import Callable, Optional, Tuple

from coach.client.storage import SessionStorage
from coach.core.errors import SessionStateError
from coach.schemas.session import Feedback, InterviewSession, Question

logger = logging.getLogger(__name__)

EXTEND_SECONDS = 60


class ClassicState(str, enum.Enum):
    IDLE = "idle"
    QUESTION_ACTIVE = "question_active"
    ANSWER_SUBMITTED = "answer_submitted"
    FEEDBACK_SHOWN = "feedback_shown"
    COMPLETED = "completed"


class AnswerTimer:
    """Countdown for one question; a zero suggested time never runs out."""

    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._deadline = clock() + seconds if seconds > 0 else None

    @property
    def remaining(self) -> float:
        if self._deadline is None:
            return 0.0
        return max(0.0, self._deadline - self.clock())

    @property
    def is_time_up(self) -> bool:
        return self._deadline is not None and self.clock() >= self._deadline

    def extend(self, seconds: float = EXTEND_SECONDS) -> None:
        if self._deadline is not None:
            self._deadline = max(self._deadline, self.clock()) + seconds


def format_time(seconds: float) -> str:
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes:02d}:{secs:02d}"


class ClassicSessionController:
    """Drives one classic session through its storage."""

    def __init__(self, storage: SessionStorage, session_id: str, clock: Callable[[], float] = time.monotonic):
        self.storage = storage
        self.session_id = session_id
        self.clock = clock
        self.timer: Optional[AnswerTimer] = None
        self.session: Optional[InterviewSession] = None
        self.state = ClassicState.IDLE
        # Index of the question whose feedback is on screen
        self.shown_index: Optional[int] = None

    async def start(self) -> InterviewSession:
        """Load the session and show the current question (or the summary if it is done)."""
        self.session = await self.storage.get_session(self.session_id)
        if self.session.mode != "classic":
            raise SessionStateError("This is not a classic session.")
        self.state = ClassicState.COMPLETED if self.session.status == "completed" else ClassicState.QUESTION_ACTIVE
        self._start_timer()
        return self.session

    def _start_timer(self) -> None:
        question = self.current_question if self.state == ClassicState.QUESTION_ACTIVE else None
        self.timer = AnswerTimer(question.expected_answer_duration_minutes * 60, self.clock) if question else None

    def extend_time(self, seconds: float = EXTEND_SECONDS) -> float:
        """Give the active question more time; returns the seconds left."""
        if self.state != ClassicState.QUESTION_ACTIVE or self.timer is None:
            raise SessionStateError("There is no running countdown to extend.")
        self.timer.extend(seconds)
        return self.timer.remaining

    def _require_session(self) -> InterviewSession:
        if self.session is None:
            raise SessionStateError("The session has not been started.")
        return self.session

    @property
    def current_question(self) -> Optional[Question]:
        session = self._require_session()
        index = self.shown_index if self.shown_index is not None else session.currentQuestionIndex
        if 0 <= index < len(session.questions):
            return session.questions[index]
        return None

    @property
    def progress(self) -> Tuple[int, int]:
        """(answered, total) questions."""
        session = self._require_session()
        answered = sum(1 for q in session.questions if q.feedback is not None)
        return answered, len(session.questions)

    @property
    def is_last_question(self) -> bool:
        session = self._require_session()
        index = self.shown_index if self.shown_index is not None else session.currentQuestionIndex
        return index >= len(session.questions) - 1

    async def submit_answer(self, answer: str) -> Feedback:
        """
        Send the answer for evaluation and show its feedback.

        On failure the question stays active so the answer can be resent.
        """
        session = self._require_session()
        if self.state != ClassicState.QUESTION_ACTIVE:
            raise SessionStateError("There is no question waiting for an answer.")
        if not answer or not answer.strip():
            raise ValueError("Answer cannot be empty.")

        index = session.currentQuestionIndex
        self.state = ClassicState.ANSWER_SUBMITTED
        try:
            self.session = await self.storage.submit_answer(self.session_id, index, answer)
        except Exception:
            self.state = ClassicState.QUESTION_ACTIVE
            raise

        self.shown_index = index
        self.state = ClassicState.FEEDBACK_SHOWN
        self.timer = None
        feedback = self.session.questions[index].feedback
        logger.info(f"Answer evaluated: session_id={self.session_id}, question={index}, score={feedback.overall_score}")
        return feedback

    async def next_question(self) -> Optional[Question]:
        """Leave the feedback screen; returns None once the last question has been answered."""
        session = self._require_session()
        if self.state != ClassicState.FEEDBACK_SHOWN:
            raise SessionStateError("Feedback must be shown before moving on.")

        self.shown_index = None
        if session.status == "completed":
            self.state = ClassicState.COMPLETED
            return None
        self.state = ClassicState.QUESTION_ACTIVE
        self._start_timer()
        return self.current_question

    async def finish(self) -> InterviewSession:
        """End the session early (or confirm completion) and return the final record."""
        session = self._require_session()
        if session.status != "completed":
            self.session = await self.storage.finish_session(self.session_id)
        self.shown_index = None
        self.timer = None
        self.state = ClassicState.COMPLETED
        return self.session

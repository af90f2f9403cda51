"""
Pydantic schemas for interview sessions.

Session fields use the camelCase names of the wire format; the objects
produced by the model (questions, feedback, reviews) keep their snake_case
names.
"""
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

QuestionCategory = Literal["Technical", "Behavioral", "Situational", "Company"]
QuestionDifficulty = Literal["Easy", "Medium", "Hard"]
SessionStatus = Literal["in-progress", "completed"]
SessionMode = Literal["classic", "live"]
Speaker = Literal["user", "ai"]

MIN_SCORE = 1.0
MAX_SCORE = 10.0


class Feedback(BaseModel):
    """Evaluation of a single answer."""
    overall_score: float = Field(..., description="Score from 1 to 10")
    strengths: List[str] = Field(default_factory=list)
    areas_for_improvement: List[str] = Field(default_factory=list)
    suggested_answer_structure: str = Field("", description="How a stronger answer would be laid out")
    key_points_missed: List[str] = Field(default_factory=list)

    @field_validator("overall_score", mode="before")
    @classmethod
    def clamp_score(cls, value: Any) -> float:
        return max(MIN_SCORE, min(MAX_SCORE, float(value)))


class Question(BaseModel):
    question: str
    category: QuestionCategory
    difficulty: QuestionDifficulty
    expected_answer_duration_minutes: float = Field(..., ge=0)
    userAnswer: Optional[str] = None
    feedback: Optional[Feedback] = None


class TranscriptEntry(BaseModel):
    speaker: Speaker
    text: str


class LiveSessionFeedback(BaseModel):
    """Holistic review of a live session."""
    overall_summary: str
    strengths: List[str] = Field(default_factory=list)
    areas_for_improvement: List[str] = Field(default_factory=list)
    non_verbal_feedback: List[str] = Field(default_factory=list)


class InterviewSession(BaseModel):
    """A single interview practice attempt, classic or live."""
    model_config = ConfigDict(extra="ignore")

    id: str = ""
    userId: Optional[str] = None
    jobTitle: str
    company: str = ""
    jobDescription: str
    createdAt: str
    status: SessionStatus = "in-progress"
    mode: SessionMode
    persona: str
    resumeText: str = ""
    questions: List[Question] = Field(default_factory=list)
    currentQuestionIndex: int = Field(0, ge=0)
    averageScore: Optional[float] = None
    transcript: Optional[List[TranscriptEntry]] = None
    liveSessionFeedback: Optional[LiveSessionFeedback] = None

    def to_document(self) -> dict:
        """Serialize for storage, omitting unset optional fields."""
        return self.model_dump(exclude_none=True)


# ============================================
# Request payloads
# ============================================

class SessionCreate(BaseModel):
    """Details collected when starting a new session."""
    jobTitle: str = Field(..., min_length=1)
    company: str = ""
    jobDescription: str = Field(..., min_length=1)
    persona: str = Field(..., min_length=1)
    resumeText: Optional[str] = ""
    mode: SessionMode


class SessionUpdate(BaseModel):
    """Mutable session fields. Anything else (mode, status, ids) is rejected."""
    model_config = ConfigDict(extra="forbid")

    currentQuestionIndex: Optional[int] = Field(None, ge=0)
    transcript: Optional[List[TranscriptEntry]] = None


class AnswerSubmit(BaseModel):
    questionIndex: int = Field(..., ge=0)
    answer: str = Field(..., min_length=1)

    @field_validator("answer")
    @classmethod
    def answer_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Answer cannot be empty.")
        return value


class FinishRequest(BaseModel):
    transcript: Optional[List[TranscriptEntry]] = None


class ImportRequest(BaseModel):
    """A guest session handed over for adoption; a bare session body is accepted too."""
    session: InterviewSession

    @model_validator(mode="before")
    @classmethod
    def wrap_bare_session(cls, data: Any) -> Any:
        if isinstance(data, dict) and "session" not in data:
            return {"session": data}
        return data

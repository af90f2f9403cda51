"""
Interview model client.

Builds the prompts for question generation, answer evaluation and live
session review, calls the model with a fixed output schema and validates
the JSON it returns. A failed call or an unparseable answer is reported
once as a GenerationError; nothing is retried.
"""
import json
import logging
import re
from functools import lru_cache
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from coach.core.errors import GenerationError
from coach.llm import prompts
from coach.llm.provider import LLMProvider
from coach.llm.router import get_model_for_feature
from coach.schemas.session import Feedback, LiveSessionFeedback, Question, TranscriptEntry
from coach.services.session_rules import QUESTIONS_PER_SESSION

logger = logging.getLogger(__name__)

QUESTIONS_FAILED = "Failed to generate interview questions. Please check the job description and try again."
EVALUATION_FAILED = "Failed to evaluate the answer. Please try again later."
REVIEW_FAILED = "Failed to generate the interview review. Please try again later."


def _parse_json_response(text: str) -> Any:
    """Parse JSON from a model response, tolerating a markdown code fence."""
    text = (text or "").strip()
    fenced = re.search(r"```(?:json)?\s*(.*?)\s*```", text, re.DOTALL)
    if fenced:
        text = fenced.group(1)
    return json.loads(text)


class InterviewAI:
    """Question generation, answer evaluation and live review on top of an LLM provider."""

    def __init__(self, provider: Optional[LLMProvider] = None):
        self.provider = provider
        if not self.provider:
            # Imported lazily so the OpenAI SDK is only required when it is used
            from coach.llm.openai_provider import OpenAIProvider
            try:
                self.provider = OpenAIProvider()
            except ValueError:
                logger.warning("OpenAI provider not available - model features disabled")
                self.provider = None

    def _generate(self, feature: str, prompt: str, schema: Dict[str, Any], failure_message: str) -> Any:
        if self.provider is None:
            logger.error(f"{feature}: no model provider configured")
            raise GenerationError(failure_message)

        messages = [
            {"role": "system", "content": prompts.SYSTEM_MESSAGE},
            {"role": "user", "content": prompt},
        ]
        try:
            response = self.provider.chat(
                messages,
                model=get_model_for_feature(feature),
                temperature=0.7,
                response_schema=schema,
            )
        except Exception as e:
            logger.error(f"{feature}: model call failed: {e}", exc_info=True)
            raise GenerationError(failure_message) from e

        try:
            return _parse_json_response(response.content)
        except json.JSONDecodeError as e:
            logger.error(f"{feature}: unparseable model output: {response.content[:200]!r}")
            raise GenerationError(failure_message) from e

    def generate_questions(
        self,
        job_description: str,
        persona: str,
        resume_text: Optional[str] = None,
    ) -> List[Question]:
        """Generate the questions for a classic session."""
        data = self._generate(
            "question_generation",
            prompts.question_generation_prompt(job_description, persona, resume_text),
            prompts.QUESTION_LIST_SCHEMA,
            QUESTIONS_FAILED,
        )
        raw_questions = data.get("questions") if isinstance(data, dict) else data
        if not isinstance(raw_questions, list):
            logger.error(f"question_generation: expected a list of questions, got {type(raw_questions).__name__}")
            raise GenerationError(QUESTIONS_FAILED)

        try:
            questions = [Question.model_validate(item) for item in raw_questions]
        except ValidationError as e:
            logger.error(f"question_generation: invalid question in model output: {e}")
            raise GenerationError(QUESTIONS_FAILED) from e

        if len(questions) < QUESTIONS_PER_SESSION:
            logger.error(f"question_generation: only {len(questions)} questions returned")
            raise GenerationError(QUESTIONS_FAILED)

        return questions[:QUESTIONS_PER_SESSION]

    def evaluate_answer(self, question: str, question_type: str, user_answer: str) -> Feedback:
        data = self._generate(
            "answer_evaluation",
            prompts.answer_evaluation_prompt(question, question_type, user_answer),
            prompts.FEEDBACK_SCHEMA,
            EVALUATION_FAILED,
        )
        try:
            return Feedback.model_validate(data)
        except (ValidationError, TypeError, ValueError) as e:
            logger.error(f"answer_evaluation: invalid feedback in model output: {e}")
            raise GenerationError(EVALUATION_FAILED) from e

    def review_live_session(self, transcript: Sequence[TranscriptEntry], job_title: str) -> LiveSessionFeedback:
        """Holistic review of a live session; an empty transcript is not sent to the model."""
        if not transcript:
            return LiveSessionFeedback(
                overall_summary=prompts.EMPTY_SESSION_SUMMARY,
                strengths=[],
                areas_for_improvement=[],
                non_verbal_feedback=[],
            )

        data = self._generate(
            "live_review",
            prompts.live_session_review_prompt(transcript, job_title),
            prompts.LIVE_FEEDBACK_SCHEMA,
            REVIEW_FAILED,
        )
        try:
            return LiveSessionFeedback.model_validate(data)
        except ValidationError as e:
            logger.error(f"live_review: invalid review in model output: {e}")
            raise GenerationError(REVIEW_FAILED) from e


@lru_cache(maxsize=1)
def get_interview_ai() -> InterviewAI:
    """Process-wide model client dependency (overridden in tests)."""
    return InterviewAI()

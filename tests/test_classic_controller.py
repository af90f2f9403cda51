"""
Tests for the classic session controller and the terminal practice loop.
"""
import asyncio
import json

import pytest

from coach.client.classic import AnswerTimer, ClassicSessionController, ClassicState, format_time
from coach.client.local_storage import LocalStorage
from coach.client.storage import GuestSessionStorage
from coach.client.terminal import build_parser, format_dashboard, practice
from coach.core.errors import GenerationError, SessionStateError
from coach.llm.provider import LLMProvider, LLMResponse
from coach.schemas.session import SessionCreate
from coach.services.interview_ai import InterviewAI


class FakeProvider(LLMProvider):
    def __init__(self):
        self.fail_evaluation = False

    def chat(self, messages, model, temperature=0.7, max_tokens=None, response_schema=None, **kwargs):
        if response_schema["name"] == "interview_questions":
            payload = {
                "questions": [
                    {
                        "question": f"Question {i}?",
                        "category": "Technical",
                        "difficulty": "Medium",
                        "expected_answer_duration_minutes": 3,
                    }
                    for i in range(10)
                ]
            }
        else:
            if self.fail_evaluation:
                raise RuntimeError("model down")
            payload = {
                "overall_score": 8,
                "strengths": ["Concise"],
                "areas_for_improvement": [],
                "suggested_answer_structure": "",
                "key_points_missed": [],
            }
        return LLMResponse(content=json.dumps(payload), model=model)


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def storage(tmp_path, provider):
    return GuestSessionStorage(LocalStorage(str(tmp_path / "storage.json")), InterviewAI(provider=provider))


def new_controller(storage, mode="classic", clock=None):
    async def create():
        session = await storage.create_session(
            SessionCreate(jobTitle="Engineer", jobDescription="JD", persona="Friendly HR Manager", mode=mode)
        )
        if clock is None:
            return ClassicSessionController(storage, session.id)
        return ClassicSessionController(storage, session.id, clock=clock)
    return asyncio.run(create())


def test_answer_and_move_on(storage):
    controller = new_controller(storage)

    async def flow():
        await controller.start()
        assert controller.state == ClassicState.QUESTION_ACTIVE
        assert controller.current_question.question == "Question 0?"

        feedback = await controller.submit_answer("Use a cache.")
        assert feedback.overall_score == 8
        assert controller.state == ClassicState.FEEDBACK_SHOWN
        # Feedback stays on the answered question until moving on
        assert controller.current_question.question == "Question 0?"
        assert controller.progress == (1, 10)

        question = await controller.next_question()
        assert question.question == "Question 1?"
        assert controller.state == ClassicState.QUESTION_ACTIVE

    asyncio.run(flow())


def test_empty_answer_is_rejected(storage):
    controller = new_controller(storage)

    async def flow():
        await controller.start()
        with pytest.raises(ValueError):
            await controller.submit_answer("   ")
        assert controller.state == ClassicState.QUESTION_ACTIVE

    asyncio.run(flow())


def test_failed_evaluation_keeps_question_active(storage, provider):
    controller = new_controller(storage)
    provider.fail_evaluation = True

    async def flow():
        await controller.start()
        with pytest.raises(GenerationError):
            await controller.submit_answer("An answer")
        assert controller.state == ClassicState.QUESTION_ACTIVE
        assert controller.progress == (0, 10)

    asyncio.run(flow())


def test_next_question_requires_feedback(storage):
    controller = new_controller(storage)

    async def flow():
        await controller.start()
        with pytest.raises(SessionStateError):
            await controller.next_question()

    asyncio.run(flow())


def test_last_answer_completes(storage):
    controller = new_controller(storage)

    async def flow():
        await controller.start()
        for i in range(10):
            await controller.submit_answer(f"Answer {i}")
            await controller.next_question()
        assert controller.state == ClassicState.COMPLETED
        return await controller.finish()

    session = asyncio.run(flow())
    assert session.status == "completed"
    assert session.averageScore == 8


def test_finish_early(storage):
    controller = new_controller(storage)

    async def flow():
        await controller.start()
        await controller.submit_answer("Only one")
        return await controller.finish()

    session = asyncio.run(flow())
    assert controller.state == ClassicState.COMPLETED
    assert session.averageScore == 8


def test_live_session_is_not_classic(storage):
    controller = new_controller(storage, mode="live")
    with pytest.raises(SessionStateError):
        asyncio.run(controller.start())


def test_practice_loop_with_scripted_answers(storage):
    """Two answers, then a blank line ends the session early."""
    controller = new_controller(storage)
    answers = iter(["First answer", "Second answer", ""])
    output = []

    session = asyncio.run(practice(controller, ask=lambda prompt: next(answers), say=output.append))

    assert session.status == "completed"
    assert sum(1 for q in session.questions if q.feedback) == 2
    assert any("Score: 8/10" in line for line in output)
    assert output[-1].endswith("8.0/10")


def test_dashboard_and_parser(storage):
    controller = new_controller(storage)
    asyncio.run(controller.start())
    listing = format_dashboard(asyncio.run(storage.list_sessions()))
    assert "Engineer" in listing
    assert format_dashboard([]) == "No interview sessions yet."

    args = build_parser().parse_args(["review", "abc"])
    assert args.command == "review"
    assert args.session_id == "abc"


def test_answer_timer_counts_down_and_extends():
    now = [0.0]
    timer = AnswerTimer(90, clock=lambda: now[0])
    assert timer.remaining == 90
    assert not timer.is_time_up

    now[0] = 100.0
    assert timer.is_time_up
    assert timer.remaining == 0

    timer.extend()
    assert timer.remaining == 60
    assert not timer.is_time_up

    assert not AnswerTimer(0).is_time_up
    assert format_time(125) == "02:05"


def test_each_question_gets_its_suggested_time(storage):
    now = [0.0]
    controller = new_controller(storage, clock=lambda: now[0])

    async def flow():
        await controller.start()
        assert controller.timer.remaining == 180
        now[0] = 200.0
        assert controller.timer.is_time_up
        assert controller.extend_time() == 60

        await controller.submit_answer("Done.")
        assert controller.timer is None
        with pytest.raises(SessionStateError):
            controller.extend_time()

        await controller.next_question()
        assert controller.timer.remaining == 180

    asyncio.run(flow())


def test_practice_offers_more_time_when_time_is_up(storage):
    now = [0.0]
    controller = new_controller(storage, clock=lambda: now[0])
    replies = iter(["First part.", "e", "Second part.", "s", ""])
    output = []

    def ask(prompt):
        now[0] += 200
        return next(replies)

    session = asyncio.run(practice(controller, ask=ask, say=output.append))

    assert session.questions[0].userAnswer == "First part. Second part."
    assert "Suggested answer time: 3 min" in output
    assert output.count("Time's up! The suggested time for this question has elapsed.") == 2

"""
Terminal front end: `coach-practice`.

    coach-practice new --job-title "Backend Engineer" --description jd.txt
    coach-practice live --job-title "Backend Engineer" --description jd.txt --audio-in answers.wav
    coach-practice resume <session-id>
    coach-practice list
    coach-practice review <session-id>

Signed-in use needs COACH_TOKEN (a bearer token from the identity provider);
without it sessions are kept locally as a guest.
"""
import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Callable, List, Optional

import httpx
from jose import JWTError, jwt

from coach.client.auth import adopt_guest_session, resolve_identity
from coach.client.classic import ClassicSessionController, ClassicState, format_time
from coach.client.devices import FileMediaCapture, WaveFileOutput, parse_camera
from coach.client.live import Connect, LiveSessionController, LiveState
from coach.client.local_storage import LocalStorage, stash_session_for_import
from coach.client.realtime import MISSING_KEY_MESSAGE, GeminiLiveConnection
from coach.client.storage import ApiSessionStorage, ClientIdentity, SessionStorage, select_storage
from coach.core import config
from coach.core.errors import CoachError, GenerationError
from coach.core.logging_config import setup_logging
from coach.schemas.session import Feedback, InterviewSession, SessionCreate
from coach.services.interview_ai import InterviewAI

logger = logging.getLogger(__name__)

Ask = Callable[[str], str]
Say = Callable[[str], None]


async def env_sign_in() -> Optional[ClientIdentity]:
    """Identity from COACH_TOKEN; the uid is read from the token's subject."""
    token = os.getenv("COACH_TOKEN")
    if not token:
        return None
    try:
        uid = jwt.get_unverified_claims(token).get("sub", "")
    except JWTError:
        logger.warning("COACH_TOKEN is not a readable JWT")
        uid = ""

    async def get_token() -> Optional[str]:
        return token

    return ClientIdentity(uid=uid, get_token=get_token)


def _read_text(value: Optional[str]) -> str:
    """Accept either literal text or a path to a file holding it."""
    if not value:
        return ""
    path = Path(value)
    if path.is_file():
        return path.read_text(encoding="utf-8")
    return value


def format_feedback(feedback: Feedback) -> str:
    lines = [f"Score: {feedback.overall_score:g}/10"]
    if feedback.strengths:
        lines.append("Strengths:")
        lines.extend(f"  + {item}" for item in feedback.strengths)
    if feedback.areas_for_improvement:
        lines.append("Areas for improvement:")
        lines.extend(f"  - {item}" for item in feedback.areas_for_improvement)
    if feedback.key_points_missed:
        lines.append("Key points missed:")
        lines.extend(f"  - {item}" for item in feedback.key_points_missed)
    if feedback.suggested_answer_structure:
        lines.append(f"Suggested structure: {feedback.suggested_answer_structure}")
    return "\n".join(lines)


def format_dashboard(sessions: List[InterviewSession]) -> str:
    if not sessions:
        return "No interview sessions yet."
    lines = []
    for session in sessions:
        if session.status == "completed" and session.averageScore is not None:
            score = f"{session.averageScore:.1f}/10"
        else:
            score = "-"
        company = f" @ {session.company}" if session.company else ""
        lines.append(
            f"{session.id}  {session.createdAt[:10]}  {session.mode:<7} {session.status:<11} "
            f"{score:>7}  {session.jobTitle}{company}"
        )
    return "\n".join(lines)


def format_review(session: InterviewSession) -> str:
    lines = [f"{session.jobTitle} ({session.mode}, {session.status})"]
    if session.mode == "classic":
        if session.averageScore is not None:
            lines.append(f"Average score: {session.averageScore:.1f}/10")
        for number, question in enumerate(session.questions, start=1):
            lines.append(f"\n{number}. [{question.category}, {question.difficulty}] {question.question}")
            if question.userAnswer:
                lines.append(f"Your answer: {question.userAnswer}")
            if question.feedback:
                lines.append(format_feedback(question.feedback))
    else:
        review = session.liveSessionFeedback
        if review:
            lines.append(review.overall_summary)
            for title, items in (
                ("Strengths", review.strengths),
                ("Areas for improvement", review.areas_for_improvement),
                ("Non-verbal feedback", review.non_verbal_feedback),
            ):
                if items:
                    lines.append(f"{title}:")
                    lines.extend(f"  - {item}" for item in items)
        for entry in session.transcript or []:
            speaker = "Interviewer" if entry.speaker == "ai" else "You"
            lines.append(f"{speaker}: {entry.text}")
    return "\n".join(lines)


def _offer_extensions(controller: ClassicSessionController, answer: str, ask: Ask, say: Say) -> str:
    """When the countdown ran out, offer more time; extra text is appended to the answer."""
    while controller.timer is not None and controller.timer.is_time_up:
        say("Time's up! The suggested time for this question has elapsed.")
        choice = ask("Submit now, or extend by 1 min? [S/e]: ").strip().lower()
        if choice != "e":
            break
        remaining = controller.extend_time()
        more = ask(f"{format_time(remaining)} left. Continue your answer: ").strip()
        if more:
            answer = f"{answer} {more}"
    return answer


async def practice(controller: ClassicSessionController, ask: Ask = input, say: Say = print) -> InterviewSession:
    """Run a classic session question by question; a blank answer ends it early."""
    await controller.start()
    while controller.state == ClassicState.QUESTION_ACTIVE:
        question = controller.current_question
        answered, total = controller.progress
        say(f"\nQuestion {answered + 1}/{total} [{question.category}, {question.difficulty}]")
        say(question.question)
        if controller.timer is not None:
            say(f"Suggested answer time: {question.expected_answer_duration_minutes:g} min")
        answer = ask("Your answer (blank to finish): ").strip()
        if not answer:
            break
        answer = _offer_extensions(controller, answer, ask, say)
        try:
            feedback = await controller.submit_answer(answer)
        except GenerationError as e:
            say(e.message)
            continue
        say(format_feedback(feedback))
        await controller.next_question()

    session = await controller.finish()
    say(f"\nSession complete. Average score: {session.averageScore or 0:.1f}/10")
    return session


async def live_interview(
    controller: LiveSessionController, ask: Ask = input, say: Say = print
) -> Optional[InterviewSession]:
    """
    Run a live session until the candidate presses Enter, then fetch the review.

    Returns None when the session could not start or broke off; the reason is
    shown to the candidate.
    """
    session = await controller.load()
    if controller.state == LiveState.COMPLETED:
        return session

    say("Opening microphone and camera...")
    await controller.request_permissions()
    if controller.state == LiveState.READY:
        say("Connecting to the interviewer...")
        await controller.start()
    if controller.state != LiveState.ACTIVE:
        say(controller.error)
        return None

    await asyncio.to_thread(ask, "Interview in progress. Press Enter to end it. ")
    if controller.state != LiveState.ACTIVE:
        say(controller.error)
        return None

    say("Generating your performance review...")
    return await controller.end()


def _add_session_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--job-title", required=True)
    parser.add_argument("--company", default="")
    parser.add_argument("--description", required=True, help="job description text or a file holding it")
    parser.add_argument("--persona", default="Friendly HR Manager")
    parser.add_argument("--resume", help="resume text or a file holding it")


def _session_details(args: argparse.Namespace, mode: str) -> SessionCreate:
    return SessionCreate(
        jobTitle=args.job_title,
        company=args.company,
        jobDescription=_read_text(args.description),
        persona=args.persona,
        resumeText=_read_text(args.resume),
        mode=mode,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="coach-practice", description="Practice job interviews.")
    parser.add_argument("--log-level", default="WARNING")
    subparsers = parser.add_subparsers(dest="command", required=True)

    new = subparsers.add_parser("new", help="start a classic question-by-question session")
    _add_session_arguments(new)

    live = subparsers.add_parser("live", help="start a real-time voice and video session")
    _add_session_arguments(live)
    live.add_argument("--audio-in", required=True, help="your answers: a mono 16-bit WAV at 16 kHz")
    live.add_argument("--audio-out", default="interviewer.wav", help="where the interviewer's voice is saved")
    live.add_argument("--camera", default="0", help="camera index or a video file")

    resume = subparsers.add_parser("resume", help="continue an in-progress session")
    resume.add_argument("session_id")

    subparsers.add_parser("list", help="show past sessions")

    review = subparsers.add_parser("review", help="show the feedback for a session")
    review.add_argument("session_id")
    return parser


async def run(
    args: argparse.Namespace,
    local: LocalStorage,
    ask: Ask = input,
    say: Say = print,
    connect: Optional[Connect] = None,
    ai: Optional[InterviewAI] = None,
) -> int:
    identity = await resolve_identity(env_sign_in)

    async with httpx.AsyncClient(timeout=None) as client:
        if identity is not None:
            await adopt_guest_session(local, ApiSessionStorage(identity.get_token, client))
        storage: SessionStorage = select_storage(local, identity, client, ai)

        if args.command == "list":
            say(format_dashboard(await storage.list_sessions()))
            return 0
        if args.command == "review":
            say(format_review(await storage.get_session(args.session_id)))
            return 0

        if args.command == "live":
            if connect is None:
                if not config.GEMINI_API_KEY:
                    say(MISSING_KEY_MESSAGE)
                    return 1
                connect = GeminiLiveConnection.open
            session = await storage.create_session(_session_details(args, "live"))
            output = WaveFileOutput(args.audio_out)
            media = FileMediaCapture(args.audio_in, camera=parse_camera(args.camera))
            try:
                finished = await live_interview(
                    LiveSessionController(storage, session.id, media, connect, output), ask, say
                )
            finally:
                output.save()
            if finished is None:
                return 1
            say(format_review(finished))
        else:
            if args.command == "new":
                say("Generating questions...")
                session = await storage.create_session(_session_details(args, "classic"))
                session_id = session.id
            else:
                session_id = args.session_id
            finished = await practice(ClassicSessionController(storage, session_id), ask, say)

        if identity is None:
            stash_session_for_import(local, finished)
            say("Sign in (set COACH_TOKEN) to keep this session in your history.")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level, log_dir=config.CLIENT_LOG_DIR, log_file="client.log", stream=sys.stderr)
    try:
        return asyncio.run(run(args, LocalStorage()))
    except CoachError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())

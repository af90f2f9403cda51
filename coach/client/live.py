"""
Live (real-time voice and video) session controller.

State machine:

    idle -> requesting_permissions -> ready -> active -> ending -> completed
    (any step may fall into error)

While active, three tasks run side by side: one forwards microphone audio,
one forwards camera frames, one consumes server events (interviewer audio,
transcription chunks, interruptions). The transcript is owned by a single
`TranscriptAccumulator` task that the event pump feeds through a queue.
"""
import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, List, Optional, Protocol, Sequence

from coach.client.audio import AudioOutput, PlaybackQueue, float_to_pcm16
from coach.client.storage import SessionStorage
from coach.core.errors import CoachError, SessionStateError
from coach.llm import prompts
from coach.schemas.session import InterviewSession, TranscriptEntry
from coach.services import session_rules

logger = logging.getLogger(__name__)

CONNECTION_ERROR_MESSAGE = "A connection error occurred. The session has ended."
PERMISSION_ERROR_MESSAGE = (
    "Microphone and camera access are required for a live session. "
    "Please grant permission and try again."
)
REVIEW_ERROR_MESSAGE = "Failed to generate your performance review."


class LiveState(str, enum.Enum):
    IDLE = "idle"
    REQUESTING_PERMISSIONS = "requesting_permissions"
    READY = "ready"
    ACTIVE = "active"
    ENDING = "ending"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass
class LiveEvent:
    """A server message, reduced to what the controller acts on."""
    kind: str
    data: Any = None

    AUDIO = "audio"
    INPUT_TRANSCRIPT = "input_transcript"
    OUTPUT_TRANSCRIPT = "output_transcript"
    INTERRUPTED = "interrupted"


class MediaCapture(Protocol):
    """Microphone and camera."""

    async def open(self) -> None:
        """Acquire both devices; raises if permission is denied."""

    def audio_chunks(self) -> AsyncIterator[Sequence[float]]:
        ...

    def video_frames(self) -> AsyncIterator[bytes]:
        """JPEG-encoded frames."""

    async def close(self) -> None:
        ...


class LiveConnection(Protocol):
    """An open streaming connection to the interviewer model."""

    async def send_audio(self, pcm: bytes) -> None:
        ...

    async def send_image(self, jpeg: bytes) -> None:
        ...

    def events(self) -> AsyncIterator[LiveEvent]:
        ...

    async def close(self) -> None:
        ...


Connect = Callable[[str], Awaitable[LiveConnection]]


class TranscriptAccumulator:
    """
    Owns a live transcript.

    Chunks are posted with `append` and applied in order by one task, so the
    transcript is never touched from two places at once. `close` applies
    whatever is still queued and returns the final transcript.
    """

    def __init__(self, initial: Optional[Sequence[TranscriptEntry]] = None):
        self._entries: List[TranscriptEntry] = list(initial or [])
        self._queue: "asyncio.Queue[Optional[tuple]]" = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None
        self._closed = False

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name="transcript-accumulator")

    async def _run(self) -> None:
        while True:
            item = await self._queue.get()
            if item is None:
                break
            speaker, text = item
            session_rules.append_chunk(self._entries, speaker, text)

    def append(self, speaker: str, text: str) -> None:
        if self._closed:
            logger.debug(f"Dropping transcript chunk after close: speaker={speaker}")
            return
        self._queue.put_nowait((speaker, text))

    @property
    def closed(self) -> bool:
        """True once close has drained the queue and stopped the task."""
        return self._closed and (self._task is None or self._task.done())

    def snapshot(self) -> List[TranscriptEntry]:
        """Transcript as applied so far."""
        return list(self._entries)

    async def close(self) -> List[TranscriptEntry]:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(None)
            if self._task is None:
                await self._run()
            else:
                await self._task
        return self.snapshot()


class LiveSessionController:
    """Drives one live session: media in, interviewer out, transcript kept, review at the end."""

    def __init__(
        self,
        storage: SessionStorage,
        session_id: str,
        media: MediaCapture,
        connect: Connect,
        output: AudioOutput,
    ):
        self.storage = storage
        self.session_id = session_id
        self.media = media
        self.connect = connect
        self.playback = PlaybackQueue(output)
        self.session: Optional[InterviewSession] = None
        self.state = LiveState.IDLE
        self.error: Optional[str] = None
        self.transcript = TranscriptAccumulator()
        self._connection: Optional[LiveConnection] = None
        self._tasks: List[asyncio.Task] = []
        self._media_open = False

    def _fail(self, message: str, error: Optional[BaseException] = None) -> None:
        if error is not None:
            logger.error(f"Live session {self.session_id}: {message} ({error})", exc_info=error)
        self.error = message
        self.state = LiveState.ERROR

    async def load(self) -> InterviewSession:
        session = await self.storage.get_session(self.session_id)
        if session.mode != "live":
            raise SessionStateError("This is not a live session.")
        self.session = session
        self.transcript = TranscriptAccumulator(session.transcript)
        if session.status == "completed":
            self.state = LiveState.COMPLETED
        return session

    async def request_permissions(self) -> None:
        if self.state != LiveState.IDLE:
            raise SessionStateError(f"Cannot request permissions while {self.state.value}.")
        self.state = LiveState.REQUESTING_PERMISSIONS
        try:
            await self.media.open()
        except Exception as e:
            self._fail(PERMISSION_ERROR_MESSAGE, e)
            return
        self._media_open = True
        self.state = LiveState.READY

    async def start(self) -> None:
        """Connect to the interviewer and start streaming."""
        if self.state != LiveState.READY or self.session is None:
            raise SessionStateError("The session is not ready to start.")

        session = self.session
        instruction = prompts.live_interview_instruction(
            session.jobTitle, session.company, session.persona, session.resumeText
        )
        self.state = LiveState.ACTIVE
        try:
            self._connection = await self.connect(instruction)
        except Exception as e:
            self._fail(CONNECTION_ERROR_MESSAGE, e)
            await self.cleanup()
            return

        self.transcript.start()
        self._tasks = [
            asyncio.create_task(self._guard(self._pump_audio()), name="live-audio"),
            asyncio.create_task(self._guard(self._pump_video()), name="live-video"),
            asyncio.create_task(self._guard(self._pump_events()), name="live-events"),
        ]
        logger.info(f"Live session started: session_id={self.session_id}")

    async def _guard(self, pump: Awaitable[None]) -> None:
        try:
            await pump
        except Exception as e:
            if self.state == LiveState.ACTIVE:
                self._fail(CONNECTION_ERROR_MESSAGE, e)
                await self.cleanup(current=asyncio.current_task())
                await self.transcript.close()

    async def _pump_audio(self) -> None:
        async for samples in self.media.audio_chunks():
            await self._connection.send_audio(float_to_pcm16(samples))

    async def _pump_video(self) -> None:
        async for frame in self.media.video_frames():
            await self._connection.send_image(frame)

    async def _pump_events(self) -> None:
        async for event in self._connection.events():
            self.handle_event(event)

    def handle_event(self, event: LiveEvent) -> None:
        if event.kind == LiveEvent.AUDIO:
            self.playback.enqueue(event.data)
        elif event.kind == LiveEvent.OUTPUT_TRANSCRIPT:
            self.transcript.append("ai", event.data)
        elif event.kind == LiveEvent.INPUT_TRANSCRIPT:
            self.transcript.append("user", event.data)
        elif event.kind == LiveEvent.INTERRUPTED:
            self.playback.interrupt()
        else:
            logger.debug(f"Ignoring live event: {event.kind}")

    async def cleanup(self, current: Optional[asyncio.Task] = None) -> None:
        """Stop streaming, release the devices and silence playback."""
        tasks = [task for task in self._tasks if task is not current]
        self._tasks = []
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        if self._connection is not None:
            connection, self._connection = self._connection, None
            try:
                await connection.close()
            except Exception as e:
                logger.warning(f"Error closing live connection: {e}")

        if self._media_open:
            self._media_open = False
            try:
                await self.media.close()
            except Exception as e:
                logger.warning(f"Error releasing media devices: {e}")

        self.playback.interrupt()

    async def end(self) -> InterviewSession:
        """
        End the interview and fetch its review.

        Streaming stops first; the final transcript is whatever the
        accumulator holds once its queue is drained.
        """
        if self.state != LiveState.ACTIVE:
            raise SessionStateError("The session is not active.")
        self.state = LiveState.ENDING
        await self.cleanup()
        transcript = await self.transcript.close()

        try:
            self.session = await self.storage.finish_session(self.session_id, transcript)
        except CoachError as e:
            self._fail(e.message or REVIEW_ERROR_MESSAGE, e)
            raise

        self.state = LiveState.COMPLETED
        logger.info(f"Live session completed: session_id={self.session_id}, entries={len(transcript)}")
        return self.session

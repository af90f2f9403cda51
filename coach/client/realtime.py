"""
Streaming connection to the hosted interviewer model (Gemini Live API).

Audio goes up as 16 kHz PCM16, camera frames as JPEG; the model answers with
24 kHz PCM16 audio plus transcriptions of both sides of the conversation.
"""
import logging
from contextlib import AsyncExitStack
from typing import Any, AsyncIterator, List, Optional

from google import genai
from google.genai import types

from coach.client.audio import INPUT_MIME_TYPE, VIDEO_MIME_TYPE, decode_base64
from coach.client.live import LiveEvent
from coach.core import config
from coach.llm.router import get_model_for_feature

logger = logging.getLogger(__name__)

MISSING_KEY_MESSAGE = "Gemini API key not found. Please set the GEMINI_API_KEY environment variable. This is required for live sessions."


def live_connect_config(instruction: str) -> dict:
    return {
        "response_modalities": ["AUDIO"],
        "input_audio_transcription": {},
        "output_audio_transcription": {},
        "system_instruction": instruction,
    }


def translate_server_message(message: Any) -> List[LiveEvent]:
    """
    Reduce a live server message to controller events.

    Order within one message: audio, interviewer transcription, candidate
    transcription, interruption.
    """
    content = getattr(message, "server_content", None)
    if content is None:
        return []

    events: List[LiveEvent] = []
    model_turn = getattr(content, "model_turn", None)
    for part in (getattr(model_turn, "parts", None) or []):
        inline = getattr(part, "inline_data", None)
        if inline is not None and inline.data:
            data = inline.data
            if isinstance(data, str):
                data = decode_base64(data)
            events.append(LiveEvent(LiveEvent.AUDIO, data))

    output_transcription = getattr(content, "output_transcription", None)
    if output_transcription is not None and output_transcription.text:
        events.append(LiveEvent(LiveEvent.OUTPUT_TRANSCRIPT, output_transcription.text))

    input_transcription = getattr(content, "input_transcription", None)
    if input_transcription is not None and input_transcription.text:
        events.append(LiveEvent(LiveEvent.INPUT_TRANSCRIPT, input_transcription.text))

    if getattr(content, "interrupted", False):
        events.append(LiveEvent(LiveEvent.INTERRUPTED))
    return events


class GeminiLiveConnection:
    """A `LiveConnection` over `client.aio.live.connect`."""

    def __init__(self, session: Any, stack: AsyncExitStack):
        self._session = session
        self._stack = stack
        self._closed = False

    @classmethod
    async def open(
        cls,
        instruction: str,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
    ) -> "GeminiLiveConnection":
        api_key = api_key or config.GEMINI_API_KEY
        if not api_key:
            raise ValueError(MISSING_KEY_MESSAGE)

        client = genai.Client(api_key=api_key)
        model = model or get_model_for_feature("live_interview")
        stack = AsyncExitStack()
        try:
            session = await stack.enter_async_context(
                client.aio.live.connect(model=model, config=live_connect_config(instruction))
            )
        except Exception:
            await stack.aclose()
            raise
        logger.info(f"Connected to live model {model}")
        return cls(session, stack)

    async def send_audio(self, pcm: bytes) -> None:
        await self._session.send_realtime_input(audio=types.Blob(data=pcm, mime_type=INPUT_MIME_TYPE))

    async def send_image(self, jpeg: bytes) -> None:
        await self._session.send_realtime_input(video=types.Blob(data=jpeg, mime_type=VIDEO_MIME_TYPE))

    async def events(self) -> AsyncIterator[LiveEvent]:
        # receive() ends after each model turn, so keep re-entering it until closed
        while not self._closed:
            received = False
            async for message in self._session.receive():
                received = True
                for event in translate_server_message(message):
                    yield event
            if not received:
                logger.info("Live connection closed by the server")
                return

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._stack.aclose()

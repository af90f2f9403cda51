"""
Media devices for terminal live sessions.

The candidate's voice comes from a WAV recording (16 kHz, mono, 16-bit),
streamed at real-time pace as if it were a microphone. Camera frames come from
OpenCV (a device index or a video file). The interviewer's voice is rendered
into a WAV file at the times the playback queue scheduled it, so an
interruption cuts the recording exactly where playback would have stopped.
"""
import asyncio
import logging
import time
import wave
from typing import AsyncIterator, Callable, List, Optional, Union

import cv2

from coach.client.audio import (
    INPUT_SAMPLE_RATE,
    OUTPUT_SAMPLE_RATE,
    VIDEO_FRAMES_PER_SECOND,
    pcm16_duration,
    pcm16_to_float,
)

logger = logging.getLogger(__name__)

AUDIO_CHUNK_SAMPLES = 4096
FRAME_MAX_WIDTH = 640
JPEG_QUALITY = 60


def parse_camera(value: str) -> Union[int, str]:
    """A bare number selects a camera device; anything else is a video file."""
    return int(value) if value.isdigit() else value


def encode_jpeg(frame, max_width: int = FRAME_MAX_WIDTH) -> bytes:
    """Downscale a BGR frame to at most `max_width` pixels wide and JPEG-encode it."""
    h, w = frame.shape[:2]
    if w > max_width:
        scale = max_width / float(w)
        frame = cv2.resize(frame, (int(w * scale), int(h * scale)))
    ok, buf = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), JPEG_QUALITY])
    if not ok:
        raise ValueError("Could not encode camera frame as JPEG")
    return buf.tobytes()


class FileMediaCapture:
    """Microphone from a WAV file, camera through OpenCV."""

    def __init__(
        self,
        audio_path: str,
        camera: Union[int, str] = 0,
        frames_per_second: float = VIDEO_FRAMES_PER_SECOND,
        chunk_samples: int = AUDIO_CHUNK_SAMPLES,
        realtime: bool = True,
        camera_factory: Callable = cv2.VideoCapture,
    ):
        self.audio_path = audio_path
        self.camera = camera
        self.frames_per_second = frames_per_second
        self.chunk_samples = chunk_samples
        self.realtime = realtime
        self.camera_factory = camera_factory
        self._wave = None
        self._capture = None

    async def open(self) -> None:
        """Open both sources; a missing file, wrong format or unavailable camera raises."""
        recording = wave.open(self.audio_path, "rb")
        if (
            recording.getnchannels() != 1
            or recording.getsampwidth() != 2
            or recording.getframerate() != INPUT_SAMPLE_RATE
        ):
            recording.close()
            raise ValueError(f"{self.audio_path} must be a mono 16-bit WAV at {INPUT_SAMPLE_RATE} Hz")
        self._wave = recording

        capture = await asyncio.to_thread(self.camera_factory, self.camera)
        if not capture.isOpened():
            capture.release()
            await self.close()
            raise PermissionError(f"Camera {self.camera!r} is not available")
        self._capture = capture
        logger.info(f"Media opened: audio={self.audio_path}, camera={self.camera}")

    async def audio_chunks(self) -> AsyncIterator[List[float]]:
        while self._wave is not None:
            data = await asyncio.to_thread(self._wave.readframes, self.chunk_samples)
            if not data:
                break
            yield pcm16_to_float(data)
            if self.realtime:
                await asyncio.sleep(pcm16_duration(data, INPUT_SAMPLE_RATE))
        logger.debug("Microphone recording finished")

    async def video_frames(self) -> AsyncIterator[bytes]:
        interval = 1.0 / self.frames_per_second
        while self._capture is not None:
            ok, frame = await asyncio.to_thread(self._capture.read)
            if not ok:
                break
            yield await asyncio.to_thread(encode_jpeg, frame)
            await asyncio.sleep(interval)
        logger.debug("Camera stream finished")

    async def close(self) -> None:
        if self._capture is not None:
            capture, self._capture = self._capture, None
            await asyncio.to_thread(capture.release)
        if self._wave is not None:
            recording, self._wave = self._wave, None
            recording.close()


class ScheduledChunk:
    """One chunk on the output timeline; `stop` cuts it at the current time."""

    def __init__(self, output: "WaveFileOutput", data: bytes, start_at: float, sample_rate: int):
        self.output = output
        self.data = data
        self.start_at = start_at
        self.sample_rate = sample_rate
        self.stopped_at: Optional[float] = None

    def stop(self) -> None:
        if self.stopped_at is None:
            self.stopped_at = self.output.current_time

    def audible_bytes(self) -> bytes:
        if self.stopped_at is None:
            return self.data
        samples = max(0, round((self.stopped_at - self.start_at) * self.sample_rate))
        return self.data[: samples * 2]


class WaveFileOutput:
    """An audio output whose clock is wall time and whose speaker is a WAV file."""

    def __init__(
        self,
        path: str,
        sample_rate: int = OUTPUT_SAMPLE_RATE,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.path = path
        self.sample_rate = sample_rate
        self.clock = clock
        self._origin = clock()
        self._chunks: List[ScheduledChunk] = []

    @property
    def current_time(self) -> float:
        return self.clock() - self._origin

    def play(self, data: bytes, start_at: float, sample_rate: int) -> ScheduledChunk:
        if sample_rate != self.sample_rate:
            raise ValueError(f"Output is {self.sample_rate} Hz, got {sample_rate} Hz audio")
        chunk = ScheduledChunk(self, data, start_at, sample_rate)
        self._chunks.append(chunk)
        return chunk

    def render(self) -> bytes:
        """The whole timeline as PCM16, silence between chunks."""
        timeline = bytearray()
        for chunk in self._chunks:
            audible = chunk.audible_bytes()
            if not audible:
                continue
            offset = round(chunk.start_at * self.sample_rate) * 2
            end = offset + len(audible)
            if len(timeline) < end:
                timeline.extend(bytes(end - len(timeline)))
            timeline[offset:end] = audible
        return bytes(timeline)

    def save(self) -> float:
        """Write the recording; returns its length in seconds."""
        pcm = self.render()
        with wave.open(self.path, "wb") as wf:
            wf.setnchannels(1)
            wf.setsampwidth(2)
            wf.setframerate(self.sample_rate)
            wf.writeframes(pcm)
        logger.info(f"Interviewer audio saved to {self.path}")
        return pcm16_duration(pcm, self.sample_rate)

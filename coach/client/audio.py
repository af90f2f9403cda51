"""
Audio glue for live sessions.

Microphone audio goes out as 16-bit little-endian mono PCM at 16 kHz; the
interviewer's voice comes back as the same encoding at 24 kHz.
`PlaybackQueue` schedules the returned chunks back to back on an output
device so they never overlap, and drops everything pending when the user
interrupts.
"""
import array
import base64
import logging
import sys
from typing import List, Protocol, Sequence, Tuple, Union

logger = logging.getLogger(__name__)

INPUT_SAMPLE_RATE = 16000
OUTPUT_SAMPLE_RATE = 24000
INPUT_MIME_TYPE = f"audio/pcm;rate={INPUT_SAMPLE_RATE}"
VIDEO_MIME_TYPE = "image/jpeg"
VIDEO_FRAMES_PER_SECOND = 10

_PCM16_MAX = 32767


def float_to_pcm16(samples: Sequence[float]) -> bytes:
    """Encode float samples in [-1, 1] as little-endian PCM16; out-of-range values are clipped."""
    pcm = array.array("h", (int(max(-1.0, min(1.0, s)) * _PCM16_MAX) for s in samples))
    if sys.byteorder == "big":
        pcm.byteswap()
    return pcm.tobytes()


def pcm16_to_float(data: bytes) -> List[float]:
    pcm = array.array("h")
    # A trailing odd byte cannot form a sample
    pcm.frombytes(data[: len(data) - len(data) % 2])
    if sys.byteorder == "big":
        pcm.byteswap()
    return [s / 32768.0 for s in pcm]


def pcm16_duration(data: bytes, sample_rate: int = OUTPUT_SAMPLE_RATE) -> float:
    """Playback length in seconds of a mono PCM16 chunk."""
    return (len(data) // 2) / float(sample_rate)


def encode_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def decode_base64(data: Union[str, bytes]) -> bytes:
    return base64.b64decode(data)


class PlaybackHandle(Protocol):
    def stop(self) -> None:
        ...


class AudioOutput(Protocol):
    """An output device with its own clock, in seconds."""

    @property
    def current_time(self) -> float:
        ...

    def play(self, data: bytes, start_at: float, sample_rate: int) -> PlaybackHandle:
        ...


class PlaybackQueue:
    """
    Gapless, in-order playback of streamed audio chunks.

    Each chunk starts at max(next_start, now) and pushes next_start forward by
    its duration. Chunks whose end has passed on the output clock are
    forgotten the next time the queue is touched.
    """

    def __init__(self, output: AudioOutput, sample_rate: int = OUTPUT_SAMPLE_RATE):
        self.output = output
        self.sample_rate = sample_rate
        self.next_start = 0.0
        # (handle, end time) per scheduled chunk
        self._scheduled: List[Tuple[PlaybackHandle, float]] = []

    def _prune(self) -> None:
        now = self.output.current_time
        self._scheduled = [(handle, end) for handle, end in self._scheduled if end > now]

    @property
    def pending(self) -> int:
        """Number of chunks scheduled and not yet finished or interrupted."""
        self._prune()
        return len(self._scheduled)

    def enqueue(self, data: bytes) -> float:
        """Schedule a chunk; returns the time it starts at."""
        self._prune()
        start = max(self.next_start, self.output.current_time)
        handle = self.output.play(data, start, self.sample_rate)
        self.next_start = start + pcm16_duration(data, self.sample_rate)
        self._scheduled.append((handle, self.next_start))
        return start

    def release(self, handle: PlaybackHandle) -> None:
        """Forget a chunk that finished playing."""
        self._scheduled = [(h, end) for h, end in self._scheduled if h is not handle]

    def interrupt(self) -> None:
        """Stop everything scheduled and restart the timeline."""
        for handle, _ in self._scheduled:
            try:
                handle.stop()
            except RuntimeError as e:
                logger.debug(f"Playback source already stopped: {e}")
        self._scheduled = []
        self.next_start = 0.0

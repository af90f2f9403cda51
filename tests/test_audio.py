"""
Tests for PCM16 conversion and the playback queue.
"""
import pytest

from coach.client.audio import (
    OUTPUT_SAMPLE_RATE,
    PlaybackQueue,
    decode_base64,
    encode_base64,
    float_to_pcm16,
    pcm16_duration,
    pcm16_to_float,
)


class FakeHandle:
    def __init__(self):
        self.stopped = False

    def stop(self):
        self.stopped = True


class FakeOutput:
    """Output device whose clock is set by the test."""

    def __init__(self):
        self.current_time = 0.0
        self.started = []
        self.handles = []

    def play(self, data, start_at, sample_rate):
        handle = FakeHandle()
        self.started.append(start_at)
        self.handles.append(handle)
        return handle


def chunk(seconds):
    """Silence lasting `seconds` at the output rate."""
    return b"\x00\x00" * int(OUTPUT_SAMPLE_RATE * seconds)


def test_pcm16_encoding_is_little_endian_and_clipped():
    data = float_to_pcm16([0.0, 1.0, -1.0, 2.0])
    assert data[:2] == b"\x00\x00"
    assert data[2:4] == b"\xff\x7f"
    assert data[4:6] == b"\x01\x80"
    assert data[6:8] == b"\xff\x7f"


def test_pcm16_decoding():
    samples = pcm16_to_float(float_to_pcm16([0.5, -0.5]) + b"\x00")
    assert len(samples) == 2
    assert samples[0] == pytest.approx(0.5, abs=1e-3)
    assert samples[1] == pytest.approx(-0.5, abs=1e-3)


def test_duration_and_base64():
    assert pcm16_duration(chunk(0.5)) == pytest.approx(0.5)
    assert pcm16_duration(b"\x00\x00" * 16000, sample_rate=16000) == pytest.approx(1.0)
    assert decode_base64(encode_base64(b"\x01\x02")) == b"\x01\x02"


def test_chunks_play_back_to_back():
    output = FakeOutput()
    queue = PlaybackQueue(output)

    queue.enqueue(chunk(0.5))
    queue.enqueue(chunk(0.25))
    queue.enqueue(chunk(0.25))

    assert output.started == pytest.approx([0.0, 0.5, 0.75])
    assert queue.next_start == pytest.approx(1.0)
    assert queue.pending == 3


def test_chunk_after_gap_starts_now():
    output = FakeOutput()
    queue = PlaybackQueue(output)
    queue.enqueue(chunk(0.5))

    output.current_time = 2.0
    start = queue.enqueue(chunk(0.5))
    assert start == pytest.approx(2.0)
    assert queue.next_start == pytest.approx(2.5)


def test_interrupt_stops_everything_and_resets_timeline():
    output = FakeOutput()
    queue = PlaybackQueue(output)
    queue.enqueue(chunk(0.5))
    queue.enqueue(chunk(0.5))

    queue.interrupt()

    assert all(handle.stopped for handle in output.handles)
    assert queue.pending == 0
    assert queue.next_start == 0.0

    output.current_time = 3.0
    assert queue.enqueue(chunk(0.1)) == pytest.approx(3.0)


def test_release_forgets_finished_chunk():
    output = FakeOutput()
    queue = PlaybackQueue(output)
    queue.enqueue(chunk(0.1))
    queue.release(output.handles[0])
    assert queue.pending == 0


def test_finished_chunks_are_forgotten():
    output = FakeOutput()
    queue = PlaybackQueue(output)
    for _ in range(1000):
        queue.enqueue(chunk(0.01))
    assert queue.pending == 1000

    output.current_time = queue.next_start + 1.0
    assert queue.pending == 0

    queue.enqueue(chunk(0.5))
    output.current_time += 0.25
    assert queue.pending == 1
    queue.interrupt()
    assert output.handles[-1].stopped
    assert not any(handle.stopped for handle in output.handles[:1000])

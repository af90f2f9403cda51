"""
Tests for the file and camera backed media devices.
"""
import asyncio
import wave

import cv2
import numpy as np
import pytest

from coach.client.audio import PlaybackQueue, float_to_pcm16
from coach.client.devices import FileMediaCapture, WaveFileOutput, encode_jpeg, parse_camera


class FakeCamera:
    def __init__(self, frames, opened=True):
        self.frames = list(frames)
        self.opened = opened
        self.released = False

    def isOpened(self):
        return self.opened

    def read(self):
        if self.frames:
            return True, self.frames.pop(0)
        return False, None

    def release(self):
        self.released = True


def write_wav(path, samples, rate=16000):
    with wave.open(str(path), "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(rate)
        wf.writeframes(float_to_pcm16(samples))


def frame(width=1280, height=480):
    return np.zeros((height, width, 3), dtype=np.uint8)


def test_parse_camera():
    assert parse_camera("0") == 0
    assert parse_camera("clip.mp4") == "clip.mp4"


def test_encode_jpeg_downscales_wide_frames():
    jpeg = encode_jpeg(frame())
    assert jpeg[:2] == b"\xff\xd8"
    decoded = cv2.imdecode(np.frombuffer(jpeg, np.uint8), cv2.IMREAD_COLOR)
    assert decoded.shape == (240, 640, 3)


def test_capture_streams_wav_chunks_and_camera_frames(tmp_path):
    audio = tmp_path / "answers.wav"
    write_wav(audio, [0.25] * 8292)
    camera = FakeCamera([frame(320, 240), frame(320, 240)])

    async def flow():
        media = FileMediaCapture(
            str(audio), camera=0, frames_per_second=1000, realtime=False, camera_factory=lambda source: camera
        )
        await media.open()
        chunks = [chunk async for chunk in media.audio_chunks()]
        frames = [jpeg async for jpeg in media.video_frames()]
        await media.close()
        return chunks, frames

    chunks, frames = asyncio.run(flow())
    assert [len(c) for c in chunks] == [4096, 4096, 100]
    assert chunks[0][0] == pytest.approx(0.25, abs=1e-3)
    assert len(frames) == 2
    assert all(jpeg[:2] == b"\xff\xd8" for jpeg in frames)
    assert camera.released


def test_capture_rejects_wrong_audio_format(tmp_path):
    audio = tmp_path / "answers.wav"
    write_wav(audio, [0.0] * 100, rate=44100)
    media = FileMediaCapture(str(audio), camera_factory=lambda source: FakeCamera([]))

    with pytest.raises(ValueError):
        asyncio.run(media.open())


def test_unavailable_camera_is_a_permission_error(tmp_path):
    audio = tmp_path / "answers.wav"
    write_wav(audio, [0.0] * 100)
    camera = FakeCamera([], opened=False)
    media = FileMediaCapture(str(audio), camera_factory=lambda source: camera)

    with pytest.raises(PermissionError):
        asyncio.run(media.open())
    assert camera.released


def test_output_records_schedule_and_cuts_interrupted_audio(tmp_path):
    now = [100.0]
    path = tmp_path / "interviewer.wav"
    output = WaveFileOutput(str(path), clock=lambda: now[0])
    queue = PlaybackQueue(output)

    queue.enqueue(b"\x01\x00" * 24000)
    queue.enqueue(b"\x02\x00" * 24000)
    now[0] = 100.5
    queue.interrupt()
    now[0] = 102.0
    queue.enqueue(b"\x03\x00" * 2400)

    assert output.save() == pytest.approx(2.1)
    with wave.open(str(path), "rb") as wf:
        assert wf.getframerate() == 24000
        assert wf.getnframes() == 50400
        pcm = wf.readframes(wf.getnframes())
    assert pcm[:2] == b"\x01\x00"
    assert pcm[11999 * 2:12001 * 2] == b"\x01\x00\x00\x00"
    assert pcm[48000 * 2:48001 * 2] == b"\x03\x00"


def test_output_rejects_other_sample_rates(tmp_path):
    output = WaveFileOutput(str(tmp_path / "out.wav"))
    with pytest.raises(ValueError):
        output.play(b"\x00\x00", 0.0, 16000)

"""Shared fixtures for speech stitcher tests."""

import io

import numpy as np
import pytest
from pydub import AudioSegment

from speech_stitcher.errors import SynthesisError
from speech_stitcher.tts import TTSBackend

# Each sentence is comfortably over the 50-byte merge threshold
THREE_SENTENCES = (
    "The first sentence is long enough to stand on its own here. "
    "The second sentence is also long enough to stand on its own. "
    "The third sentence closes the text and is long enough as well."
)


def make_wav(duration_ms=100, frame_rate=24000, channels=1) -> bytes:
    """Silent 16-bit WAV bytes."""
    audio = AudioSegment.silent(duration=duration_ms, frame_rate=frame_rate).set_channels(channels)
    out = io.BytesIO()
    audio.export(out, format="wav")
    return out.getvalue()


def make_tone_wav(duration_ms=100, frame_rate=24000, freq=440.0) -> bytes:
    """16-bit mono sine tone, so payloads differ between calls."""
    t = np.linspace(0, duration_ms / 1000, int(frame_rate * duration_ms / 1000), endpoint=False)
    samples = (np.sin(2 * np.pi * freq * t) * 8000).astype(np.int16)
    audio = AudioSegment(data=samples.tobytes(), sample_width=2, frame_rate=frame_rate, channels=1)
    out = io.BytesIO()
    audio.export(out, format="wav")
    return out.getvalue()


class FakeBackend(TTSBackend):
    """Returns a distinct tone per call; optionally fails at one call index."""

    name = "fake"

    def __init__(self, fail_at=None, error=None, frame_rates=None):
        self.calls = []
        self.fail_at = fail_at
        self.error = error or SynthesisError("backend down", kind="http_error", status_code=500)
        self.frame_rates = frame_rates or {}
        self.closed = False

    def synthesize(self, text, speaker=None):
        index = len(self.calls)
        self.calls.append((text, speaker))
        if index == self.fail_at:
            raise self.error
        frame_rate = self.frame_rates.get(index, 24000)
        return make_tone_wav(duration_ms=50, frame_rate=frame_rate, freq=220.0 * (index + 1))

    def close(self):
        self.closed = True


@pytest.fixture
def tiny_wav():
    """A 100ms silent WAV at 24 kHz mono."""
    return make_wav()


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def three_sentences():
    return THREE_SENTENCES


@pytest.fixture
def wav_factory():
    """Build silent WAV bytes: wav_factory(duration_ms=100, frame_rate=24000, channels=1)."""
    return make_wav


@pytest.fixture
def backend_factory():
    """Build a FakeBackend: backend_factory(fail_at=None, error=None, frame_rates=None)."""
    return FakeBackend

"""Tests for constants, models and errors."""

from speech_stitcher import constants
from speech_stitcher.errors import (
    IncompatibleFormatError,
    SpeechStitcherError,
    SynthesisError,
    WavParseError,
)
from speech_stitcher.models import Chunk, JobState, Segment, WavFormat


def test_chunk_prompt_untagged():
    chunk = Chunk(index=0, text="Hello.", speaker="tara")
    assert chunk.prompt == "Hello."


def test_chunk_prompt_tagged():
    chunk = Chunk(index=0, text="Hello.", speaker="leah", tagged=True)
    assert chunk.prompt == "{leah}: Hello."


def test_wav_format_compatibility():
    a = WavFormat(1, 1, 24000, 48000, 2, 16)
    assert a.compatible_with(WavFormat(1, 1, 24000, 0, 0, 16))
    assert not a.compatible_with(WavFormat(1, 2, 24000, 96000, 4, 16))
    assert not a.compatible_with(WavFormat(1, 1, 22050, 44100, 2, 16))
    assert not a.compatible_with(WavFormat(1, 1, 24000, 72000, 3, 24))
    assert not a.compatible_with(WavFormat(3, 1, 24000, 48000, 2, 16))


def test_job_state_counts():
    state = JobState(
        id="abc",
        status="processing",
        chunks=[Chunk(0, "a", "tara"), Chunk(1, "b", "tara")],
        segments={0: Segment(0, b"x")},
        current_index=1,
    )
    assert state.total == 2
    assert state.completed == 1


def test_errors_carry_kind():
    assert SpeechStitcherError().kind == "error"
    assert SynthesisError("x").kind == "synthesis_failed"
    assert SynthesisError("x", kind="http_error").kind == "http_error"
    assert str(WavParseError("invalid_header")) == "invalid header"
    assert str(WavParseError("incomplete", position=3)) == "incomplete (input 3)"


def test_incompatible_format_error():
    err = IncompatibleFormatError(0)
    assert err.position == 0
    assert err.index == 1
    assert "position 0" in str(err)


def test_constants_exist():
    """All module-level constants are defined."""
    expected = [
        "DEFAULT_CHUNK_SIZE",
        "MIN_CHUNK_SIZE",
        "MIN_SENTENCE_LENGTH",
        "DEFAULT_VOICE",
        "AVAILABLE_VOICES",
        "ORPHEUS_URL",
        "ELEVENLABS_BASE_URL",
        "TTS_TIMEOUT",
        "VRAM_CHUNK_SIZES",
        "BACKENDS",
        "VERSION",
    ]
    for name in expected:
        assert hasattr(constants, name), f"Missing constant: {name}"
    assert constants.DEFAULT_VOICE in constants.AVAILABLE_VOICES

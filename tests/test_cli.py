"""Tests for the CLI."""

import json
from unittest.mock import patch

import pytest

from speech_stitcher.cli import main
from speech_stitcher.errors import GPUError
from speech_stitcher.registry import JobRegistry
from speech_stitcher.wav import parse_wav, wav_duration_ms

TEXT = (
    "The first sentence is long enough to stand on its own here. "
    "The second sentence is also long enough to stand on its own. "
    "The third sentence closes the text and is long enough as well."
)


@pytest.fixture
def story(tmp_path):
    path = tmp_path / "story.txt"
    path.write_text(TEXT)
    return str(path)


@pytest.fixture
def settings_path(tmp_path):
    return str(tmp_path / "settings.json")


@pytest.fixture
def no_gpu():
    error = GPUError("no gpu", kind="nvidia_smi_not_found")
    with patch("speech_stitcher.gpu.get_memory_info", side_effect=error):
        yield


def _run(*argv):
    with patch("sys.argv", ["speech-stitcher", *argv]):
        main()


# --- speak ---

def test_speak_batch(story, settings_path, tmp_path, fake_backend, no_gpu, capsys):
    output = tmp_path / "out.wav"
    with patch("speech_stitcher.cli.create_backend", return_value=fake_backend):
        _run("--settings", settings_path, "speak", story, "-o", str(output))

    parse_wav(output.read_bytes())
    assert "1 chunks (batch" in capsys.readouterr().out
    assert fake_backend.closed


def test_speak_result_comes_from_registry(story, settings_path, tmp_path, fake_backend, capsys):
    output = tmp_path / "out.wav"
    with patch("speech_stitcher.cli.registry", JobRegistry()) as jobs, \
         patch("speech_stitcher.cli.create_backend", return_value=fake_backend):
        _run("--settings", settings_path, "speak", story, "-o", str(output), "--stream")

    job_id = capsys.readouterr().out.split("Job ", 1)[1].split(":", 1)[0]
    assert job_id in jobs
    assert output.read_bytes() == jobs.result(job_id)


def test_speak_stream_writes_segments(story, settings_path, tmp_path, fake_backend, capsys):
    output = tmp_path / "out.wav"
    segments = tmp_path / "segments"
    with patch("speech_stitcher.cli.create_backend", return_value=fake_backend):
        _run("--settings", settings_path, "speak", story, "-o", str(output),
             "--stream", "--segments-dir", str(segments))

    assert sorted(p.name for p in segments.iterdir()) == ["000.wav", "001.wav", "002.wav"]
    assert wav_duration_ms(output.read_bytes()) == 150
    out = capsys.readouterr().out
    assert "Segment 3/3 ready" in out
    assert "Done:" in out


def test_speak_passes_voice(story, settings_path, tmp_path, fake_backend):
    with patch("speech_stitcher.cli.create_backend", return_value=fake_backend):
        _run("--settings", settings_path, "speak", story, "-o", str(tmp_path / "o.wav"),
             "--stream", "--voice", "jess")
    assert {speaker for _, speaker in fake_backend.calls} == {"jess"}


def test_speak_backend_failure(story, settings_path, tmp_path, backend_factory, capsys):
    backend = backend_factory(fail_at=1)
    output = tmp_path / "out.wav"
    with patch("speech_stitcher.cli.create_backend", return_value=backend):
        with pytest.raises(SystemExit):
            _run("--settings", settings_path, "speak", story, "-o", str(output), "--stream")
    assert not output.exists()
    assert "failed" in capsys.readouterr().err
    assert backend.closed


def test_speak_missing_file(settings_path, tmp_path):
    with pytest.raises(SystemExit):
        _run("--settings", settings_path, "speak", str(tmp_path / "nonexistent.txt"))


def test_speak_empty_file(settings_path, tmp_path):
    empty = tmp_path / "empty.txt"
    empty.write_text("  \n")
    with pytest.raises(SystemExit):
        _run("--settings", settings_path, "speak", str(empty))


def test_speak_unconfigured_backend(story, settings_path):
    with pytest.raises(SystemExit):
        _run("--settings", settings_path, "speak", story, "--backend", "elevenlabs")


# --- chunks ---

def test_chunks_sentences(story, capsys):
    _run("chunks", story)
    out = capsys.readouterr().out
    assert "[000] tara" in out
    assert "[002]" in out


def test_chunks_json(story, capsys):
    _run("chunks", story, "--json")
    chunks = json.loads(capsys.readouterr().out)
    assert [c["index"] for c in chunks] == [0, 1, 2]
    assert chunks[0]["speaker"] == "tara"


def test_chunks_max_size(story, capsys):
    _run("chunks", story, "--max-size", "1000", "--json")
    assert len(json.loads(capsys.readouterr().out)) == 1


def test_chunks_max_size_zero_rejected(story, capsys):
    with pytest.raises(SystemExit):
        _run("chunks", story, "--max-size", "0")
    assert "max_size must be positive" in capsys.readouterr().err


def test_chunks_negative_max_size_rejected(story):
    with pytest.raises(SystemExit):
        _run("chunks", story, "--max-size", "-5")


def test_chunks_batch_uses_gpu_size(story, capsys):
    with patch("speech_stitcher.gpu.recommended_chunk_size", return_value=130):
        _run("chunks", story, "--batch", "--json")
    assert len(json.loads(capsys.readouterr().out)) == 2


# --- stitch ---

def test_stitch_command(tmp_path, wav_factory, capsys):
    a, b = tmp_path / "a.wav", tmp_path / "b.wav"
    a.write_bytes(wav_factory(duration_ms=100))
    b.write_bytes(wav_factory(duration_ms=200))
    out = tmp_path / "out.wav"
    _run("stitch", str(out), str(a), str(b))
    assert wav_duration_ms(out.read_bytes()) == 300
    assert "Stitched 2 files" in capsys.readouterr().out


def test_stitch_incompatible(tmp_path, wav_factory, capsys):
    a, b = tmp_path / "a.wav", tmp_path / "b.wav"
    a.write_bytes(wav_factory(frame_rate=24000))
    b.write_bytes(wav_factory(frame_rate=16000))
    with pytest.raises(SystemExit):
        _run("stitch", str(tmp_path / "out.wav"), str(a), str(b))
    assert "incompatible format" in capsys.readouterr().err


# --- settings, voices, health, gpu ---

def test_settings_set_and_show(settings_path, capsys):
    _run("--settings", settings_path, "settings", "set", "elevenlabs_api_key", "secret")
    assert "Updated" in capsys.readouterr().out

    _run("--settings", settings_path, "settings", "show")
    out = capsys.readouterr().out
    assert "***" in out
    assert "secret" not in out
    assert "tara" in out


def test_settings_set_invalid_key(settings_path):
    with pytest.raises(SystemExit):
        _run("--settings", settings_path, "settings", "set", "colour", "blue")


def test_settings_set_needs_two_values(settings_path):
    with pytest.raises(SystemExit):
        _run("--settings", settings_path, "settings", "set", "orpheus_voice")


def test_voices(capsys):
    _run("voices")
    out = capsys.readouterr().out
    assert "tara" in out and "zoe" in out


def test_health_ok(settings_path, capsys):
    with patch("speech_stitcher.cli.OrpheusBackend.health_check", return_value=True):
        _run("--settings", settings_path, "health")
    assert "OK" in capsys.readouterr().out


def test_health_unreachable(settings_path):
    with patch("speech_stitcher.cli.OrpheusBackend.health_check", return_value=False):
        with pytest.raises(SystemExit):
            _run("--settings", settings_path, "health")


def test_gpu_command(capsys):
    info = {"total": 8192, "used": 1024, "free": 7168}
    with patch("speech_stitcher.cli.get_memory_info", return_value=info), \
         patch("speech_stitcher.cli.recommended_chunk_size", return_value=1000):
        _run("gpu")
    out = capsys.readouterr().out
    assert "7168 MiB free" in out
    assert "1000 bytes" in out


def test_gpu_command_without_gpu(capsys):
    with patch("speech_stitcher.cli.get_memory_info", side_effect=GPUError("x", kind="nvidia_smi_not_found")):
        with pytest.raises(SystemExit):
            _run("gpu")
    assert "nvidia_smi_not_found" in capsys.readouterr().err


def test_no_args_shows_help(capsys):
    _run()
    assert "usage" in capsys.readouterr().out.lower()

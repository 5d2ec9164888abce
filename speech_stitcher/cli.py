"""CLI interface with subcommand routing."""

import argparse
import json
import logging
import os
import sys

from speech_stitcher.batch import BatchJob
from speech_stitcher.chunker import chunk_by_sentences, chunk_text, get_chunk_size
from speech_stitcher.constants import AVAILABLE_VOICES, BACKENDS, OUTPUT_FILE, SETTINGS_FILE, VERSION
from speech_stitcher.errors import EmptyTextError, GPUError, SpeechStitcherError
from speech_stitcher.gpu import get_memory_info, recommended_chunk_size
from speech_stitcher.models import JobComplete, JobFailed, SegmentReady
from speech_stitcher.registry import JobRegistry
from speech_stitcher.settings import load_settings, set_setting
from speech_stitcher.streaming import StreamingJob
from speech_stitcher.tts import OrpheusBackend, create_backend
from speech_stitcher.wav import stitch, wav_duration_ms

registry = JobRegistry()


def _fail(message: str):
    print(f"Error: {message}", file=sys.stderr)
    raise SystemExit(1)


def _read_text(file_path: str) -> str:
    if file_path == "-":
        return sys.stdin.read()
    if not os.path.exists(file_path):
        _fail(f"File not found: {file_path}")
    with open(file_path) as f:
        return f.read()


def _load_settings(args) -> dict:
    try:
        return load_settings(args.settings)
    except SpeechStitcherError as e:
        _fail(str(e))


def cmd_speak(args):
    """Synthesize a text file into one WAV."""
    text = _read_text(args.file)
    if not text.strip():
        _fail(f"File is empty: {args.file}")

    settings = _load_settings(args)
    try:
        backend = create_backend(settings, args.backend)
    except SpeechStitcherError as e:
        _fail(str(e))

    voice = args.voice or settings["orpheus_voice"]
    try:
        if args.stream:
            job = StreamingJob(text, backend, voice=voice,
                               min_sentence_length=settings["min_sentence_length"])
        else:
            job = BatchJob(text, backend, voice=voice)
    except EmptyTextError:
        backend.close()
        _fail(f"Could not find any text to synthesize in: {args.file}")

    registry.register(job)
    total = len(job.chunks)
    mode = "streaming" if args.stream else "batch"
    print(f"Job {job.id}: {total} chunks ({mode}, backend: {backend.name})")

    if args.segments_dir:
        os.makedirs(args.segments_dir, exist_ok=True)

    sub = job.subscribe()
    try:
        job.start()
        for event in sub.events():
            if isinstance(event, SegmentReady):
                print(f"  Segment {event.index + 1}/{total} ready ({len(event.audio)} bytes)")
                if args.segments_dir:
                    path = os.path.join(args.segments_dir, f"{event.index:03d}.wav")
                    with open(path, "wb") as f:
                        f.write(event.audio)
            elif isinstance(event, JobFailed):
                _fail(f"Job {job.id} failed: {event.error}")
            elif isinstance(event, JobComplete):
                audio = registry.result(job.id)
                with open(args.output, "wb") as f:
                    f.write(audio)
                seconds = wav_duration_ms(audio) / 1000
                print(f"Done: {args.output} ({seconds:.1f}s of audio)")
    finally:
        job.unsubscribe(sub)
        backend.close()


def cmd_chunks(args):
    """Show how a text file would be chunked."""
    text = _read_text(args.file)
    if args.max_size is not None:
        try:
            chunks = chunk_text(text, args.max_size)
        except ValueError as e:
            _fail(str(e))
    elif args.batch:
        chunks = chunk_text(text, get_chunk_size())
    else:
        chunks = chunk_by_sentences(text, min_length=args.min_length)

    if not chunks:
        print("No chunks.")
        return
    if args.json:
        print(json.dumps(
            [{"index": c.index, "speaker": c.speaker, "text": c.text} for c in chunks],
            indent=2,
        ))
        return
    for chunk in chunks:
        print(f"  [{chunk.index:03d}] {chunk.speaker:<6} {chunk.text}")


def cmd_stitch(args):
    """Combine WAV files into one."""
    wavs = []
    for path in args.inputs:
        if not os.path.exists(path):
            _fail(f"File not found: {path}")
        with open(path, "rb") as f:
            wavs.append(f.read())

    try:
        combined = stitch(wavs)
    except SpeechStitcherError as e:
        _fail(str(e))

    with open(args.output, "wb") as f:
        f.write(combined)
    print(f"Stitched {len(wavs)} files into {args.output} ({len(combined)} bytes)")


def cmd_voices(args):
    """List the Orpheus voices usable in {voice}: tags."""
    print("Available voices:")
    for v in AVAILABLE_VOICES:
        print(f"  {v}")


def cmd_settings(args):
    """Show or update settings."""
    if args.action == "set":
        if len(args.values) != 2:
            _fail("'settings set' requires <key> and <value>")
        key, value = args.values
        try:
            set_setting(key, value, args.settings)
        except SpeechStitcherError as e:
            _fail(str(e))
        print(f"Updated: {key} → {value}")
        return

    settings = _load_settings(args)
    for key, value in sorted(settings.items()):
        if key == "elevenlabs_api_key" and value:
            value = "***"
        print(f"  {key:<22} {value}")


def cmd_health(args):
    """Check that the Orpheus service answers."""
    settings = _load_settings(args)
    backend = OrpheusBackend(url=settings["orpheus_url"])
    try:
        healthy = backend.health_check()
    finally:
        backend.close()
    if not healthy:
        _fail(f"Orpheus service not reachable at {settings['orpheus_url']}")
    print(f"Orpheus service OK: {settings['orpheus_url']}")


def cmd_gpu(args):
    """Show GPU memory and the chunk size it implies."""
    try:
        info = get_memory_info()
        size = recommended_chunk_size()
    except GPUError as e:
        _fail(f"GPU query failed ({e.kind}): {e}")
    print(f"VRAM: {info['free']} MiB free of {info['total']} MiB ({info['used']} MiB used)")
    print(f"Recommended chunk size: {size} bytes")


def main(argv=None):
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="speech-stitcher",
        description="Speech Stitcher: synthesize long text chunk by chunk into one WAV",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress details")
    parser.add_argument("--settings", default=SETTINGS_FILE, help="Settings file (default: settings.json)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # speak
    speak_parser = subparsers.add_parser("speak", help="Synthesize a text file")
    speak_parser.add_argument("file", help="Text file to read ('-' for stdin)")
    speak_parser.add_argument("-o", "--output", default=OUTPUT_FILE, help="Output WAV path")
    speak_parser.add_argument("--stream", action="store_true", help="Sentence-by-sentence streaming job")
    speak_parser.add_argument("--backend", choices=BACKENDS, help="Override the configured backend")
    speak_parser.add_argument("--voice", help="Default voice for untagged text")
    speak_parser.add_argument("--segments-dir", help="Also write each ready segment here (streaming)")
    speak_parser.set_defaults(func=cmd_speak)

    # chunks
    chunks_parser = subparsers.add_parser("chunks", help="Show how text would be chunked")
    chunks_parser.add_argument("file", help="Text file to read ('-' for stdin)")
    chunks_parser.add_argument("--max-size", type=int, help="Size-bounded chunks of at most N bytes")
    chunks_parser.add_argument("--batch", action="store_true", help="Size-bounded chunks sized from GPU memory")
    chunks_parser.add_argument("--min-length", type=int, default=20, help="Group sentences shorter than this")
    chunks_parser.add_argument("--json", action="store_true", help="Print chunks as JSON")
    chunks_parser.set_defaults(func=cmd_chunks)

    # stitch
    stitch_parser = subparsers.add_parser("stitch", help="Combine WAV files")
    stitch_parser.add_argument("output", help="Output WAV path")
    stitch_parser.add_argument("inputs", nargs="+", help="WAV files, in order")
    stitch_parser.set_defaults(func=cmd_stitch)

    # voices
    voices_parser = subparsers.add_parser("voices", help="List available voices")
    voices_parser.set_defaults(func=cmd_voices)

    # settings
    settings_parser = subparsers.add_parser("settings", help="Show or update settings")
    settings_parser.add_argument("action", choices=["show", "set"], help="show | set")
    settings_parser.add_argument("values", nargs="*", help="<key> <value> for set")
    settings_parser.set_defaults(func=cmd_settings)

    # health
    health_parser = subparsers.add_parser("health", help="Check the Orpheus service")
    health_parser.set_defaults(func=cmd_health)

    # gpu
    gpu_parser = subparsers.add_parser("gpu", help="Show GPU memory and chunk size")
    gpu_parser.set_defaults(func=cmd_gpu)

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        return

    args.func(args)

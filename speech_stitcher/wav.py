"""Parse and combine RIFF/WAVE files.

All inputs to a combine must share one format (tag, channels, sample rate,
bit depth). Payloads are concatenated in input order under a single freshly
built 44-byte header.
"""

import struct

from speech_stitcher.errors import IncompatibleFormatError, StitchError, WavParseError
from speech_stitcher.models import WavData, WavFormat

FMT_CHUNK_SIZE = 16
# "WAVE" (4) + fmt chunk header and body (8 + 16) + data chunk header (8)
HEADER_OVERHEAD = 4 + 8 + FMT_CHUNK_SIZE + 8

_CHUNK_HEADER = struct.Struct("<4sI")
_FMT = struct.Struct("<HHIIHH")


def _parse_fmt_chunk(payload: bytes) -> WavFormat:
    if len(payload) < FMT_CHUNK_SIZE:
        raise WavParseError("invalid_fmt_chunk")
    return WavFormat(*_FMT.unpack_from(payload))


def parse_wav(data: bytes) -> WavData:
    """Split a WAV file into its format descriptor and raw sample bytes.

    Unknown chunks (LIST, fact, ...) are skipped by their declared size.
    Trailing bytes too short to hold a chunk header are ignored.
    """
    if len(data) < 12 or data[0:4] != b"RIFF" or data[8:12] != b"WAVE":
        raise WavParseError("invalid_header")

    fmt = None
    audio_data = None
    pos = 12

    while len(data) - pos >= _CHUNK_HEADER.size:
        chunk_id, size = _CHUNK_HEADER.unpack_from(data, pos)
        start = pos + _CHUNK_HEADER.size
        end = start + size
        if end > len(data):
            # Declared size runs past the end of input
            break

        if chunk_id == b"fmt ":
            fmt = _parse_fmt_chunk(data[start:end])
        elif chunk_id == b"data":
            audio_data = data[start:end]

        # RIFF chunks are word-aligned
        pos = end + (size & 1)

    if fmt is None or audio_data is None:
        raise WavParseError("incomplete")

    return WavData(format=fmt, audio_data=audio_data, raw=data)


def build_wav(fmt: WavFormat, audio_data: bytes) -> bytes:
    """Build a canonical WAV: RIFF header, 16-byte fmt chunk, one data chunk."""
    data_size = len(audio_data)
    header = b"".join([
        _CHUNK_HEADER.pack(b"RIFF", HEADER_OVERHEAD + data_size),
        b"WAVE",
        _CHUNK_HEADER.pack(b"fmt ", FMT_CHUNK_SIZE),
        _FMT.pack(
            fmt.audio_format,
            fmt.num_channels,
            fmt.sample_rate,
            fmt.byte_rate,
            fmt.block_align,
            fmt.bits_per_sample,
        ),
        _CHUNK_HEADER.pack(b"data", data_size),
    ])
    return header + audio_data


def validate_compatible_formats(parts: list[WavData]) -> None:
    """Raise IncompatibleFormatError for the first part that differs from the first."""
    reference = parts[0].format
    for position, part in enumerate(parts[1:]):
        if not part.format.compatible_with(reference):
            raise IncompatibleFormatError(position)


def combine_wavs(parts: list[WavData]) -> bytes:
    """Combine parsed WAVs into one file. The fmt chunk is taken from the first part.

    A single part is passed through unchanged.
    """
    if not parts:
        raise StitchError("nothing to combine", kind="empty_list")
    if len(parts) == 1:
        only = parts[0]
        return only.raw if only.raw is not None else build_wav(only.format, only.audio_data)

    validate_compatible_formats(parts)
    combined_audio = b"".join(part.audio_data for part in parts)
    return build_wav(parts[0].format, combined_audio)


def parse_all_wavs(wav_binaries: list[bytes]) -> list[WavData]:
    parsed = []
    for position, wav in enumerate(wav_binaries):
        try:
            parsed.append(parse_wav(wav))
        except WavParseError as e:
            raise WavParseError(e.kind, position=position) from e
    return parsed


def stitch(wav_binaries: list[bytes]) -> bytes:
    """Stitch WAV files (as bytes) into one, in list order.

    Every input is parsed, so a single malformed input still fails. A single
    valid input comes back byte-for-byte.
    """
    if not wav_binaries:
        raise StitchError("nothing to stitch", kind="empty_list")
    return combine_wavs(parse_all_wavs(wav_binaries))


def wav_duration_ms(data: bytes) -> int:
    """Playback length of a WAV in milliseconds."""
    parsed = parse_wav(data)
    fmt = parsed.format
    if not fmt.block_align or not fmt.sample_rate:
        return 0
    frames = len(parsed.audio_data) // fmt.block_align
    return int(frames * 1000 / fmt.sample_rate)

"""Split text into synthesis-ready chunks.

Two variants share the same sentence splitter:

- ``chunk_by_sentences``: one chunk per sentence (short ones grouped) with
  speaker context carried across chunks, for streaming playback.
- ``chunk_text`` / ``chunk_by_vram``: sentences greedily packed up to a byte
  budget, for batch synthesis.

Speaker tags look like ``{leah}: Hello there.`` and only count when the name
is a known voice.
"""

import logging
import re

from speech_stitcher.constants import (
    AVAILABLE_VOICES,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_VOICE,
    MIN_CHUNK_SIZE,
    MIN_SENTENCE_LENGTH,
)
from speech_stitcher import gpu
from speech_stitcher.errors import GPUError
from speech_stitcher.models import Chunk

logger = logging.getLogger(__name__)

# Structural pattern: any "{word}:" line is kept whole and never merged
_DIALOGUE_RE = re.compile(r"^\{(\w+)\}:")

# Voice extraction: the name must also be in the known voice set
_VOICE_RE = re.compile(r"^\{(\w+)\}:\s*(.*)$", re.DOTALL)

# Previous line ended a sentence: "." "!" "?" optionally followed by a closing quote/paren
_LINE_END_RE = re.compile(r"[.!?][\"')]?\s*$")

_OPENERS = "([{"
_CLOSERS = ")]}"
_TERMINALS = ".!?"
_WHITESPACE = " \n\r\t"


def _byte_len(text: str) -> int:
    return len(text.encode("utf-8"))


def is_dialogue_line(text: str) -> bool:
    return bool(_DIALOGUE_RE.match(text))


def extract_voice(text: str, voices=AVAILABLE_VOICES) -> tuple[str, str] | None:
    """Return (voice, rest) if text starts with a known "{voice}:" tag, else None."""
    match = _VOICE_RE.match(text.strip())
    if match and match.group(1) in voices:
        return match.group(1), match.group(2).strip()
    return None


def normalize_wrapped_lines(text: str) -> str:
    """Re-join lines that were hard-wrapped mid-sentence.

    A line starts fresh when it is empty, starts with a speaker tag, or the
    previous line ended in terminal punctuation. Otherwise it is appended to
    the previous line.
    """
    lines = []
    for line in text.split("\n"):
        trimmed = line.strip()
        if not lines:
            lines.append(trimmed)
            continue

        prev = lines[-1]
        if not trimmed or not prev:
            lines.append(trimmed)
        elif is_dialogue_line(trimmed):
            lines.append(trimmed)
        elif _LINE_END_RE.search(prev):
            lines.append(trimmed)
        else:
            lines[-1] = prev + " " + trimmed

    return "\n".join(lines)


def split_sentences(line: str) -> list[str]:
    """Split one line into sentences.

    Terminal punctuation only ends a sentence outside brackets and outside a
    double-quoted span. A run like "?!" is kept together, and one whitespace
    character after the boundary is dropped.
    """
    sentences = []
    current = []
    depth = 0
    in_quote = False
    i = 0
    n = len(line)

    while i < n:
        char = line[i]
        if not in_quote and char in _OPENERS:
            depth += 1
        elif not in_quote and char in _CLOSERS and depth > 0:
            depth -= 1
        elif char == '"':
            in_quote = not in_quote
        elif char in _TERMINALS and depth == 0 and not in_quote:
            current.append(char)
            i += 1
            while i < n and line[i] in _TERMINALS:
                current.append(line[i])
                i += 1
            if i < n and line[i] in _WHITESPACE:
                i += 1
            sentences.append("".join(current))
            current = []
            continue

        current.append(char)
        i += 1

    if current:
        sentences.append("".join(current))
    return sentences


def _split_line(line: str) -> list[str]:
    trimmed = line.strip()
    if is_dialogue_line(trimmed):
        return [trimmed]
    return split_sentences(trimmed)


def _collapse_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def group_small_chunks(units: list[str], min_size: int = MIN_CHUNK_SIZE) -> list[str]:
    """Merge units shorter than min_size bytes into the following unit.

    Dialogue lines never absorb or get absorbed. A short trailing unit is
    merged backward while that stays legal.
    """
    grouped = []
    for unit in units:
        if not grouped:
            grouped.append(unit)
            continue

        current = grouped[-1]
        if is_dialogue_line(unit) or is_dialogue_line(current):
            grouped.append(unit)
        elif _byte_len(current) < min_size:
            grouped[-1] = current + " " + unit
        else:
            grouped.append(unit)

    return merge_trailing_small(grouped, min_size)


def merge_trailing_small(units: list[str], min_size: int = MIN_CHUNK_SIZE) -> list[str]:
    units = list(units)
    while len(units) > 1:
        last = units[-1]
        second_last = units[-2]
        if _byte_len(last) >= min_size or is_dialogue_line(last) or is_dialogue_line(second_last):
            break
        units[-2:] = [second_last + " " + last]
    return units


def split_into_sentences(text: str) -> list[str]:
    """Normalize wrapping, split into sentences, clean up, and merge small units."""
    normalized = normalize_wrapped_lines(text)

    units = []
    for line in re.split(r"\n+", normalized):
        units.extend(_split_line(line))

    units = [_collapse_whitespace(u) for u in units]
    units = [u for u in units if u]
    return group_small_chunks(units, MIN_CHUNK_SIZE)


def group_short_sentences(sentences: list[str], min_length: int = MIN_SENTENCE_LENGTH) -> list[str]:
    """Fold sentences shorter than min_length bytes into the next one."""
    grouped = []
    for sentence in sentences:
        if not grouped:
            grouped.append(sentence)
            continue
        current = grouped[-1]
        if is_dialogue_line(sentence) or is_dialogue_line(current):
            grouped.append(sentence)
        elif _byte_len(current) < min_length:
            grouped[-1] = current + " " + sentence
        else:
            grouped.append(sentence)
    return grouped


def apply_voice_context(
    units: list[str],
    default_voice: str = DEFAULT_VOICE,
    voices=AVAILABLE_VOICES,
) -> list[Chunk]:
    """Attach a speaker to every unit and number the resulting chunks.

    A unit opening with a known "{voice}:" tag switches the current speaker;
    untagged units inherit it. Units left empty after stripping the tag are
    dropped before indexing, but still switch the speaker.
    """
    chunks = []
    current_voice = default_voice

    for unit in units:
        found = extract_voice(unit, voices)
        if found:
            current_voice, text = found
        else:
            text = unit.strip()

        if not text:
            continue
        chunks.append(Chunk(index=len(chunks), text=text, speaker=current_voice, tagged=True))

    return chunks


def chunk_by_sentences(
    text: str,
    min_length: int = MIN_SENTENCE_LENGTH,
    default_voice: str = DEFAULT_VOICE,
    voices=AVAILABLE_VOICES,
) -> list[Chunk]:
    """One chunk per sentence for minimal playback latency."""
    sentences = split_into_sentences(text.strip())
    if min_length > 0:
        sentences = group_short_sentences(sentences, min_length)
    return apply_voice_context(sentences, default_voice, voices)


def chunk_by_chars(text: str, max_size: int) -> list[str]:
    return [text[i:i + max_size] for i in range(0, len(text), max_size)]


def force_split(text: str, max_size: int) -> list[str]:
    """Split an over-long sentence at word boundaries, and over-long words by characters."""
    pieces = []
    for word in text.split():
        if _byte_len(word) > max_size:
            pieces.extend(chunk_by_chars(word, max_size))
        elif pieces and _byte_len(pieces[-1]) + _byte_len(word) + 1 <= max_size:
            pieces[-1] = pieces[-1] + " " + word
        else:
            pieces.append(word)
    return pieces


def group_sentences_into_chunks(sentences: list[str], max_size: int) -> list[str]:
    """Greedily pack sentences while the joined byte length stays within max_size."""
    packed = []
    for sentence in sentences:
        if _byte_len(sentence) > max_size:
            packed.extend(force_split(sentence, max_size))
        elif packed and _byte_len(packed[-1]) + _byte_len(sentence) + 1 <= max_size:
            packed[-1] = packed[-1] + " " + sentence
        else:
            packed.append(sentence)
    return packed


def chunk_text(text: str, max_size: int, default_voice: str = DEFAULT_VOICE) -> list[Chunk]:
    """Size-bounded chunks for batch synthesis, in source order."""
    if max_size <= 0:
        raise ValueError(f"max_size must be positive, got {max_size}")
    sentences = split_into_sentences(text.strip())
    packed = [p for p in group_sentences_into_chunks(sentences, max_size) if p.strip()]
    return [Chunk(index=i, text=p, speaker=default_voice) for i, p in enumerate(packed)]


def get_chunk_size(size_provider=None) -> int:
    """Ask the sizing capability for a chunk size, falling back to the default."""
    if size_provider is None:
        size_provider = gpu.recommended_chunk_size
    try:
        return size_provider()
    except GPUError as e:
        logger.info("GPU sizing unavailable (%s), using %d byte chunks", e.kind, DEFAULT_CHUNK_SIZE)
        return DEFAULT_CHUNK_SIZE


def chunk_by_vram(text: str, size_provider=None, default_voice: str = DEFAULT_VOICE) -> list[Chunk]:
    """Chunk text to the size recommended for the current GPU memory."""
    return chunk_text(text, get_chunk_size(size_provider), default_voice)

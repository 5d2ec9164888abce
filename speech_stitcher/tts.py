"""Synthesis backends behind one ``synthesize(text, speaker) -> wav bytes`` call.

- ``OrpheusBackend``: local Orpheus TTS service (returns WAV)
- ``ElevenLabsBackend``: ElevenLabs cloud API (returns MP3, converted to WAV)
- ``EdgeBackend``: Microsoft Edge voices via edge-tts (MP3, converted to WAV)

Every backend raises ``SynthesisError`` on failure and enforces its own
request timeout. The pipelines only see ``TTSBackend``.
"""

import asyncio
import io
import logging
import os
import tempfile
from abc import ABC, abstractmethod

import edge_tts
import httpx
from pydub import AudioSegment
from pydub.exceptions import CouldntDecodeError

from speech_stitcher.chunker import extract_voice
from speech_stitcher.constants import (
    AVAILABLE_VOICES,
    CONVERTED_SAMPLE_RATE,
    DEFAULT_VOICE,
    EDGE_RATE,
    EDGE_VOICE,
    ELEVENLABS_BASE_URL,
    ELEVENLABS_MODEL,
    ELEVENLABS_SIMILARITY_BOOST,
    ELEVENLABS_STABILITY,
    HEALTH_CHECK_TIMEOUT,
    LOG_PREVIEW_CHARS,
    ORPHEUS_URL,
    TTS_CONNECT_TIMEOUT,
    TTS_TIMEOUT,
)
from speech_stitcher.errors import SettingsError, SynthesisError

logger = logging.getLogger(__name__)


def parse_inline_voice(text: str, default_voice: str, voices=AVAILABLE_VOICES) -> tuple[str, str]:
    """Split "{voice}: text" into (voice, text). Unknown or missing tags keep default_voice."""
    found = extract_voice(text, voices)
    if found:
        return found
    return default_voice, text


def mp3_to_wav(data: bytes, sample_rate: int = CONVERTED_SAMPLE_RATE) -> bytes:
    """Decode MP3 bytes to 16-bit mono WAV at sample_rate. Needs ffmpeg."""
    try:
        audio = AudioSegment.from_file(io.BytesIO(data), format="mp3")
    except CouldntDecodeError as e:
        raise SynthesisError(f"could not decode MP3: {e}", kind="conversion_failed", cause=e)

    audio = audio.set_frame_rate(sample_rate).set_channels(1).set_sample_width(2)
    out = io.BytesIO()
    audio.export(out, format="wav")
    return out.getvalue()


class TTSBackend(ABC):
    name = ""

    @abstractmethod
    def synthesize(self, text: str, speaker: str | None = None) -> bytes:
        """Synthesize text and return WAV bytes. Raises SynthesisError."""

    def close(self) -> None:
        pass


class OrpheusBackend(TTSBackend):
    """Local Orpheus service: POST {"text", "voice"} as JSON, WAV comes back.

    Text may start with "{voice}:" to pick the voice inline.
    """

    name = "orpheus"

    def __init__(self, url: str = ORPHEUS_URL, voice: str = DEFAULT_VOICE,
                 timeout: float = TTS_TIMEOUT, client: httpx.Client | None = None):
        self.url = url
        self.voice = voice
        self.timeout = timeout
        self.client = client or httpx.Client(timeout=timeout)

    def synthesize(self, text: str, speaker: str | None = None) -> bytes:
        voice, clean_text = parse_inline_voice(text, speaker or self.voice)
        try:
            response = self.client.post(
                self.url,
                json={"text": clean_text, "voice": voice},
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            logger.error("TTS transport error: %s", e)
            raise SynthesisError(f"TTS transport error: {e}", kind="transport_error", cause=e)

        if response.status_code != 200:
            logger.error("TTS request failed with status %d: %s",
                         response.status_code, response.text[:200])
            raise SynthesisError(
                f"TTS request failed with status {response.status_code}",
                kind="http_error",
                status_code=response.status_code,
            )
        return response.content

    def health_check(self) -> bool:
        """True if the service root answers with a non-5xx status."""
        base_url = httpx.URL(self.url).join("/")
        try:
            response = self.client.get(base_url, timeout=HEALTH_CHECK_TIMEOUT)
        except httpx.HTTPError as e:
            logger.warning("Orpheus health check failed: %s", e)
            return False
        return response.status_code < 500

    def close(self) -> None:
        self.client.close()


class ElevenLabsBackend(TTSBackend):
    """ElevenLabs text-to-speech API.

    https://elevenlabs.io/docs/api-reference/text-to-speech
    """

    name = "elevenlabs"

    _ERROR_KINDS = {
        401: "invalid_api_key",
        404: "voice_not_found",
        422: "validation_error",
    }

    def __init__(self, api_key: str, voice_id: str, model: str = ELEVENLABS_MODEL,
                 timeout: float = TTS_TIMEOUT, base_url: str = ELEVENLABS_BASE_URL,
                 client: httpx.Client | None = None):
        self.api_key = api_key
        self.voice_id = voice_id
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = httpx.Timeout(timeout, connect=TTS_CONNECT_TIMEOUT)
        self.client = client or httpx.Client(timeout=self.timeout)

    def synthesize(self, text: str, speaker: str | None = None) -> bytes:
        # Inline Orpheus speaker tags mean nothing to ElevenLabs
        _, clean_text = parse_inline_voice(text, "")
        url = f"{self.base_url}/text-to-speech/{self.voice_id}"
        body = {
            "text": clean_text,
            "model_id": self.model,
            "voice_settings": {
                "stability": ELEVENLABS_STABILITY,
                "similarity_boost": ELEVENLABS_SIMILARITY_BOOST,
            },
        }
        headers = {"xi-api-key": self.api_key, "Accept": "audio/mpeg"}

        try:
            response = self.client.post(url, json=body, headers=headers, timeout=self.timeout)
        except httpx.HTTPError as e:
            logger.error("ElevenLabs transport error: %s", e)
            raise SynthesisError(f"ElevenLabs transport error: {e}", kind="transport_error", cause=e)

        if response.status_code != 200:
            kind = self._ERROR_KINDS.get(response.status_code, "http_error")
            logger.error("ElevenLabs API error %d (%s): %s",
                         response.status_code, kind, response.text[:200])
            raise SynthesisError(
                f"ElevenLabs API error {response.status_code}",
                kind=kind,
                status_code=response.status_code,
            )
        return mp3_to_wav(response.content)

    def list_voices(self) -> list[dict]:
        """[{"id", "name"}] for every voice on the account."""
        headers = {"xi-api-key": self.api_key, "Accept": "application/json"}
        try:
            response = self.client.get(f"{self.base_url}/voices", headers=headers)
        except httpx.HTTPError as e:
            raise SynthesisError(f"ElevenLabs transport error: {e}", kind="transport_error", cause=e)

        if response.status_code != 200:
            kind = self._ERROR_KINDS.get(response.status_code, "http_error")
            raise SynthesisError(f"ElevenLabs API error {response.status_code}", kind=kind,
                                 status_code=response.status_code)
        return [
            {"id": v["voice_id"], "name": v["name"]}
            for v in response.json().get("voices", [])
        ]

    def close(self) -> None:
        self.client.close()


class EdgeBackend(TTSBackend):
    """edge-tts voices. Speakers can be mapped to Edge voices with voice_map."""

    name = "edge"

    def __init__(self, voice: str = EDGE_VOICE, rate: str = EDGE_RATE, voice_map: dict | None = None):
        self.voice = voice
        self.rate = rate
        self.voice_map = voice_map or {}

    def synthesize(self, text: str, speaker: str | None = None) -> bytes:
        _, clean_text = parse_inline_voice(text, "")
        voice = self.voice_map.get(speaker, self.voice)

        with tempfile.TemporaryDirectory() as tmp_dir:
            output_path = os.path.join(tmp_dir, "segment.mp3")
            try:
                communicate = edge_tts.Communicate(clean_text, voice, rate=self.rate)
                asyncio.run(communicate.save(output_path))
            except Exception as e:
                raise SynthesisError(f"edge-tts failed: {e}", cause=e)

            # 0-byte file counts as failure
            if not os.path.exists(output_path) or os.path.getsize(output_path) == 0:
                raise SynthesisError(
                    f"TTS produced 0-byte file for: {clean_text[:LOG_PREVIEW_CHARS]}...",
                    kind="empty_audio",
                )
            with open(output_path, "rb") as f:
                mp3_data = f.read()

        return mp3_to_wav(mp3_data)


def create_backend(settings: dict, backend: str | None = None) -> TTSBackend:
    """Build the backend named by settings["tts_backend"] (or the backend override)."""
    name = backend or settings.get("tts_backend", "orpheus")
    timeout = float(settings.get("timeout_seconds", TTS_TIMEOUT))

    if name == "orpheus":
        return OrpheusBackend(
            url=settings.get("orpheus_url", ORPHEUS_URL),
            voice=settings.get("orpheus_voice", DEFAULT_VOICE),
            timeout=timeout,
        )
    if name == "elevenlabs":
        api_key = settings.get("elevenlabs_api_key", "")
        voice_id = settings.get("elevenlabs_voice_id", "")
        if not api_key or not voice_id:
            raise SettingsError("ElevenLabs needs elevenlabs_api_key and elevenlabs_voice_id",
                                kind="backend_not_configured")
        return ElevenLabsBackend(
            api_key=api_key,
            voice_id=voice_id,
            model=settings.get("elevenlabs_model", ELEVENLABS_MODEL),
            timeout=timeout,
        )
    if name == "edge":
        return EdgeBackend(
            voice=settings.get("edge_voice", EDGE_VOICE),
            rate=settings.get("edge_rate", EDGE_RATE),
            voice_map=settings.get("edge_voice_map") or {},
        )
    raise SettingsError(f"unknown TTS backend: {name}", kind="unknown_backend")

"""TTS settings stored as a JSON file, merged over built-in defaults."""

import json
import os

from speech_stitcher.constants import (
    BACKENDS,
    DEFAULT_VOICE,
    EDGE_RATE,
    EDGE_VOICE,
    ELEVENLABS_MODEL,
    MIN_SENTENCE_LENGTH,
    ORPHEUS_URL,
    SETTINGS_FILE,
    TTS_TIMEOUT,
)
from speech_stitcher.errors import SettingsError

DEFAULTS = {
    "tts_backend": "orpheus",
    "orpheus_url": ORPHEUS_URL,
    "orpheus_voice": DEFAULT_VOICE,
    "elevenlabs_api_key": "",
    "elevenlabs_voice_id": "",
    "elevenlabs_model": ELEVENLABS_MODEL,
    "edge_voice": EDGE_VOICE,
    "edge_rate": EDGE_RATE,
    "edge_voice_map": {},
    "timeout_seconds": TTS_TIMEOUT,
    "min_sentence_length": MIN_SENTENCE_LENGTH,
}

# Values coerced from strings when set from the command line
_NUMERIC = {"timeout_seconds": float, "min_sentence_length": int}


def load_settings(path: str = SETTINGS_FILE) -> dict:
    """Defaults overlaid with the settings file, if there is one."""
    settings = dict(DEFAULTS)
    if not os.path.exists(path):
        return settings
    try:
        with open(path) as f:
            stored = json.load(f)
    except json.JSONDecodeError as e:
        raise SettingsError(f"Malformed settings file {path}: {e}", kind="malformed_settings")
    settings.update({k: v for k, v in stored.items() if k in DEFAULTS})
    return settings


def save_settings(settings: dict, path: str = SETTINGS_FILE) -> str:
    """Write settings as JSON. Returns the path written."""
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "w") as f:
        json.dump(settings, f, indent=2)
    return path


def set_setting(key: str, value, path: str = SETTINGS_FILE) -> dict:
    """Update one key and persist. Unknown keys are rejected."""
    if key not in DEFAULTS:
        raise SettingsError(f"Invalid setting key: {key}. Valid keys: {', '.join(sorted(DEFAULTS))}")
    if key in _NUMERIC and isinstance(value, str):
        try:
            value = _NUMERIC[key](value)
        except ValueError:
            raise SettingsError(f"Invalid value for {key}: {value}")
    if key == "edge_voice_map" and isinstance(value, str):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            parsed = None
        if not isinstance(parsed, dict):
            raise SettingsError(f"edge_voice_map must be a JSON object, got: {value}")
        value = parsed
    if key == "tts_backend" and value not in BACKENDS:
        raise SettingsError(f"Unknown backend: {value}", kind="unknown_backend")

    settings = load_settings(path)
    settings[key] = value
    save_settings(settings, path)
    return settings


def elevenlabs_configured(settings: dict) -> bool:
    return bool(settings.get("elevenlabs_api_key")) and bool(settings.get("elevenlabs_voice_id"))

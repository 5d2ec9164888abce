"""All magic numbers and configuration constants."""

DEFAULT_CHUNK_SIZE = 500            # bytes: batch chunk size when GPU sizing is unavailable
MIN_CHUNK_SIZE = 50                 # bytes: units shorter than this get merged with a neighbour
MIN_SENTENCE_LENGTH = 20            # bytes: streaming: group sentences shorter than this
DEFAULT_VOICE = "tara"
AVAILABLE_VOICES = ("tara", "leah", "jess", "leo", "dan", "mia", "zac", "zoe")

ORPHEUS_URL = "http://localhost:8000/tts"
ELEVENLABS_BASE_URL = "https://api.elevenlabs.io/v1"
ELEVENLABS_MODEL = "eleven_turbo_v2_5"
ELEVENLABS_STABILITY = 0.5
ELEVENLABS_SIMILARITY_BOOST = 0.75
EDGE_VOICE = "en-US-AriaNeural"
EDGE_RATE = "+0%"
TTS_TIMEOUT = 120.0                 # seconds: per synthesis request
TTS_CONNECT_TIMEOUT = 30.0          # seconds: cloud backend connect timeout
HEALTH_CHECK_TIMEOUT = 5.0          # seconds
CONVERTED_SAMPLE_RATE = 24000       # Hz: MP3 backends are converted to 24 kHz mono WAV

# VRAM (MiB free) → recommended chunk size (bytes), checked in order
VRAM_CHUNK_SIZES = (
    (2000, 200),
    (4000, 500),
    (8000, 1000),
)
VRAM_MAX_CHUNK_SIZE = 2000
MIN_GPU_CAPACITY_MB = 1000

BACKENDS = ("orpheus", "elevenlabs", "edge")
MAX_REGISTERED_JOBS = 50
SETTINGS_FILE = "settings.json"
OUTPUT_FILE = "speech.wav"
LOG_PREVIEW_CHARS = 50

STATUS_READY = "ready"
STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"
STATUS_REPLAYING = "replaying"
TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_FAILED)

VERSION = "0.1.0"

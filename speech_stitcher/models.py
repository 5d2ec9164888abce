"""Data models for chunking, synthesis results, and job events."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class Chunk:
    index: int
    text: str             # speaker tag stripped
    speaker: str
    tagged: bool = False  # sentence chunks carry their speaker inline when sent

    @property
    def prompt(self) -> str:
        """Text handed to the backend: "{speaker}: text" for tagged chunks."""
        if self.tagged:
            return f"{{{self.speaker}}}: {self.text}"
        return self.text


@dataclass(frozen=True)
class Segment:
    index: int
    audio: bytes
    duration_ms: int = 0   # wall-clock synthesis time


@dataclass(frozen=True)
class WavFormat:
    audio_format: int
    num_channels: int
    sample_rate: int
    byte_rate: int
    block_align: int
    bits_per_sample: int

    def compatible_with(self, other: "WavFormat") -> bool:
        """Byte rate and block align are derived fields and are not compared."""
        return (
            self.audio_format == other.audio_format
            and self.num_channels == other.num_channels
            and self.sample_rate == other.sample_rate
            and self.bits_per_sample == other.bits_per_sample
        )


@dataclass(frozen=True)
class WavData:
    format: WavFormat
    audio_data: bytes
    raw: bytes | None = field(default=None, repr=False, compare=False)  # the file this was parsed from


@dataclass(frozen=True)
class JobStatus:
    status: str
    current_index: int
    total: int
    completed: int


# --- Events published to job subscribers ---

@dataclass(frozen=True)
class SegmentReady:
    job_id: str
    index: int
    audio: bytes


@dataclass(frozen=True)
class StatusSnapshot:
    job_id: str
    status: JobStatus


@dataclass(frozen=True)
class JobComplete:
    job_id: str
    audio: bytes


@dataclass(frozen=True)
class JobFailed:
    job_id: str
    error: Exception


@dataclass
class JobState:
    """A read-only copy of a job's state, taken under the job's lock."""

    id: str
    status: str
    chunks: list[Chunk]
    segments: dict[int, Segment]
    current_index: int
    error: Exception | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def total(self) -> int:
        return len(self.chunks)

    @property
    def completed(self) -> int:
        return len(self.segments)

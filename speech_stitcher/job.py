"""Sequential synthesis job shared by the streaming and batch pipelines.

A job owns its chunks, the synthesized segments (index → Segment), and its
subscribers. ``run()`` is the only writer: it issues one backend call at a
time, stores each result by index, and stops for good on the first failure.
Other threads only take copies through the query methods.
"""

import logging
import secrets
import threading
import time
from datetime import datetime, timezone

from speech_stitcher import wav
from speech_stitcher.constants import (
    DEFAULT_VOICE,
    LOG_PREVIEW_CHARS,
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_PROCESSING,
    STATUS_READY,
    TERMINAL_STATUSES,
)
from speech_stitcher.errors import (
    EmptyTextError,
    ResultNotReadyError,
    SpeechStitcherError,
    SynthesisError,
)
from speech_stitcher.events import EventHub, Subscription
from speech_stitcher.models import (
    Chunk,
    JobComplete,
    JobFailed,
    JobState,
    JobStatus,
    Segment,
    StatusSnapshot,
)

logger = logging.getLogger(__name__)


def generate_job_id() -> str:
    """8 random bytes, URL-safe base64 without padding."""
    return secrets.token_urlsafe(8)


class Job:
    """Base class. Subclasses decide how text is chunked and what is published per chunk."""

    kind = "job"

    def __init__(self, text: str, backend, voice: str = DEFAULT_VOICE):
        self.id = generate_job_id()
        self.text = text
        self.voice = voice
        self.backend = backend

        self.chunks: list[Chunk] = self._make_chunks(text)
        if not self.chunks:
            raise EmptyTextError("text produced no chunks to synthesize")

        self.status = STATUS_READY
        self.current_index = 0
        self.error: Exception | None = None
        self.started_at: datetime | None = None
        self.completed_at: datetime | None = None

        self._segments: dict[int, Segment] = {}
        self._result: bytes | None = None
        self._hub = EventHub(self.id)
        self._lock = threading.RLock()
        self._thread: threading.Thread | None = None

    # --- Hooks ---

    def _make_chunks(self, text: str) -> list[Chunk]:
        raise NotImplementedError

    def _on_start(self) -> None:
        pass

    def _on_segment(self, segment: Segment) -> None:
        pass

    # --- Subscriptions ---

    def subscribe(self) -> Subscription:
        """Register a listener. A late subscriber to a finished job gets the terminal events."""
        with self._lock:
            sub = self._hub.subscribe()
            if self.status == STATUS_COMPLETED:
                sub.put(JobComplete(self.id, self._result))
                sub.put(self._snapshot())
            elif self.status == STATUS_FAILED:
                sub.put(JobFailed(self.id, self.error))
                sub.put(self._snapshot())
            return sub

    def unsubscribe(self, sub: Subscription) -> None:
        self._hub.unsubscribe(sub)

    def _publish(self, event) -> None:
        self._hub.publish(event)

    # --- Queries ---

    def _status(self) -> JobStatus:
        return JobStatus(
            status=self.status,
            current_index=self.current_index,
            total=len(self.chunks),
            completed=len(self._segments),
        )

    def _snapshot(self) -> StatusSnapshot:
        return StatusSnapshot(self.id, self._status())

    def get_status(self) -> JobStatus:
        with self._lock:
            return self._status()

    def get_state(self) -> JobState:
        with self._lock:
            return JobState(
                id=self.id,
                status=self.status,
                chunks=list(self.chunks),
                segments=dict(self._segments),
                current_index=self.current_index,
                error=self.error,
                started_at=self.started_at,
                completed_at=self.completed_at,
            )

    def get_result(self) -> bytes:
        """The combined WAV. Raises ResultNotReadyError unless the job completed.

        A streaming job reads "replaying" while replay() runs, so this raises
        until the replay finishes even though the audio exists.
        """
        with self._lock:
            if self.status != STATUS_COMPLETED:
                raise ResultNotReadyError(self.status)
            return self._result

    def ordered_segments(self) -> list[Segment]:
        """Stored segments sorted by index."""
        with self._lock:
            return [self._segments[i] for i in sorted(self._segments)]

    @property
    def is_finished(self) -> bool:
        with self._lock:
            return self.status in TERMINAL_STATUSES

    # --- Running ---

    def start(self) -> "Job":
        """Run the job on a background thread."""
        self._thread = threading.Thread(target=self.run, name=f"{self.kind}-{self.id}", daemon=True)
        self._thread.start()
        return self

    def wait(self, timeout: float | None = None) -> JobStatus:
        if self._thread is not None:
            self._thread.join(timeout)
        return self.get_status()

    def run(self) -> None:
        """Synthesize every chunk in order, then stitch. Runs once."""
        with self._lock:
            if self.status != STATUS_READY:
                raise RuntimeError(f"job {self.id} already ran (status: {self.status})")
            self.status = STATUS_PROCESSING
            self.started_at = datetime.now(timezone.utc)

        total = len(self.chunks)
        logger.info("Starting %s %s with %d chunks", self.kind, self.id, total)
        self._on_start()

        for chunk in self.chunks:
            with self._lock:
                self.current_index = chunk.index

            logger.debug("Synthesizing chunk %d/%d: %s...",
                         chunk.index + 1, total, chunk.text[:LOG_PREVIEW_CHARS])
            start = time.monotonic()
            try:
                audio = self.backend.synthesize(chunk.prompt, chunk.speaker)
            except SynthesisError as e:
                self._fail(e, chunk.index)
                return
            except Exception as e:
                self._fail(SynthesisError(str(e), cause=e), chunk.index)
                return

            if not audio:
                self._fail(SynthesisError(f"backend returned no audio for chunk {chunk.index}",
                                          kind="empty_audio"), chunk.index)
                return

            duration_ms = int((time.monotonic() - start) * 1000)
            segment = Segment(index=chunk.index, audio=audio, duration_ms=duration_ms)
            with self._lock:
                self._segments[chunk.index] = segment
            logger.debug("Chunk %d ready: %d bytes in %dms", chunk.index + 1, len(audio), duration_ms)

            self._on_segment(segment)

            with self._lock:
                self.current_index = chunk.index + 1

        self._finish()

    def _fail(self, error: Exception, index: int | None = None) -> None:
        if index is not None:
            logger.error("%s %s failed at chunk %d: %s", self.kind, self.id, index, error)
        else:
            logger.error("%s %s failed: %s", self.kind, self.id, error)
        with self._lock:
            self.status = STATUS_FAILED
            self.error = error
            self.completed_at = datetime.now(timezone.utc)
            self._publish(JobFailed(self.id, error))
            self._publish(self._snapshot())

    def _finish(self) -> None:
        logger.info("All chunks of %s %s complete, stitching final WAV...", self.kind, self.id)
        segments = self.ordered_segments()
        try:
            final_wav = wav.stitch([s.audio for s in segments])
        except SpeechStitcherError as e:
            self._fail(e)
            return

        total_ms = sum(s.duration_ms for s in segments)
        with self._lock:
            self._result = final_wav
            self.status = STATUS_COMPLETED
            self.completed_at = datetime.now(timezone.utc)
            logger.info("%s %s completed in %dms, output: %d bytes",
                        self.kind, self.id, total_ms, len(final_wav))
            self._publish(JobComplete(self.id, final_wav))
            self._publish(self._snapshot())

"""Streaming synthesis: one chunk per sentence, each published as soon as it is ready.

Subscribers receive, in order:

- ``StatusSnapshot`` when processing starts
- per chunk: ``SegmentReady(index, audio)`` then a ``StatusSnapshot``
- at the end: ``JobComplete(final_wav)`` then the completed snapshot,
  or ``JobFailed(error)`` then the failed snapshot

A completed job can be replayed from its stored segments without calling the
backend again.
"""

import logging

from speech_stitcher.chunker import chunk_by_sentences
from speech_stitcher.constants import (
    DEFAULT_VOICE,
    MIN_SENTENCE_LENGTH,
    STATUS_COMPLETED,
    STATUS_REPLAYING,
)
from speech_stitcher.errors import ResultNotReadyError
from speech_stitcher.job import Job
from speech_stitcher.models import Chunk, Segment, SegmentReady

logger = logging.getLogger(__name__)


class StreamingJob(Job):
    kind = "streaming job"

    def __init__(
        self,
        text: str,
        backend,
        voice: str = DEFAULT_VOICE,
        min_sentence_length: int = MIN_SENTENCE_LENGTH,
    ):
        self.min_sentence_length = min_sentence_length
        super().__init__(text, backend, voice)

    def _make_chunks(self, text: str) -> list[Chunk]:
        return chunk_by_sentences(text, min_length=self.min_sentence_length, default_voice=self.voice)

    def _on_start(self) -> None:
        with self._lock:
            self._publish(self._snapshot())

    def _on_segment(self, segment: Segment) -> None:
        with self._lock:
            self._publish(SegmentReady(self.id, segment.index, segment.audio))
            self._publish(self._snapshot())

    def replay(self) -> None:
        """Re-publish the stored segments in index order, then the completion snapshot.

        Only valid for completed jobs; the backend is not called.
        """
        with self._lock:
            if self.status != STATUS_COMPLETED:
                raise ResultNotReadyError(self.status)
            self.status = STATUS_REPLAYING
            segments = self.ordered_segments()

        logger.info("Replaying streaming job %s (%d segments)", self.id, len(segments))
        for segment in segments:
            self._publish(SegmentReady(self.id, segment.index, segment.audio))

        with self._lock:
            self.status = STATUS_COMPLETED
            self._publish(self._snapshot())

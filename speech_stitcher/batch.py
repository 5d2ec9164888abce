"""Batch synthesis: size-bounded chunks, one combined WAV at the end.

No per-chunk events are published; subscribers only see the final
``JobComplete``/``JobFailed`` and the terminal status snapshot. Progress can
still be polled with ``get_status()``.
"""

import logging

from speech_stitcher import gpu
from speech_stitcher.chunker import chunk_by_vram
from speech_stitcher.constants import DEFAULT_VOICE
from speech_stitcher.errors import GPUError
from speech_stitcher.job import Job
from speech_stitcher.models import Chunk

logger = logging.getLogger(__name__)


class BatchJob(Job):
    kind = "batch job"

    def __init__(self, text: str, backend, voice: str = DEFAULT_VOICE, size_provider=None):
        self.size_provider = size_provider
        super().__init__(text, backend, voice)

    def _make_chunks(self, text: str) -> list[Chunk]:
        chunks = chunk_by_vram(text, self.size_provider, default_voice=self.voice)
        logger.info("Text chunked into %d parts", len(chunks))
        return chunks

    def _on_start(self) -> None:
        try:
            logger.info("Batch job %s GPU memory: %s", self.id, gpu.get_memory_info())
        except GPUError as e:
            logger.info("Batch job %s GPU memory unavailable: %s", self.id, e.kind)

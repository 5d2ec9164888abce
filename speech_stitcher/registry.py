"""Bounded job-id → job lookup for the calling layer."""

import logging
import threading
from collections import OrderedDict

from speech_stitcher.constants import MAX_REGISTERED_JOBS
from speech_stitcher.errors import JobNotFoundError

logger = logging.getLogger(__name__)


class JobRegistry:
    """Last writer wins on insert; the oldest entry is evicted once full."""

    def __init__(self, max_jobs: int = MAX_REGISTERED_JOBS):
        self.max_jobs = max_jobs
        self._jobs: OrderedDict[str, object] = OrderedDict()
        self._lock = threading.Lock()

    def register(self, job) -> str:
        with self._lock:
            self._jobs.pop(job.id, None)
            self._jobs[job.id] = job
            while len(self._jobs) > self.max_jobs:
                evicted, _ = self._jobs.popitem(last=False)
                logger.debug("Evicted job %s from registry", evicted)
        return job.id

    def get(self, job_id: str):
        with self._lock:
            try:
                return self._jobs[job_id]
            except KeyError:
                raise JobNotFoundError(job_id) from None

    def result(self, job_id: str) -> bytes:
        """Combined audio of a registered job; ResultNotReadyError while it is still running."""
        return self.get(job_id).get_result()

    def __contains__(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._jobs

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

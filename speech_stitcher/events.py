"""Per-job event fan-out to subscriber queues."""

import logging
import queue
import threading

from speech_stitcher.constants import TERMINAL_STATUSES
from speech_stitcher.models import StatusSnapshot

logger = logging.getLogger(__name__)


def is_terminal(event) -> bool:
    """A status snapshot in completed/failed is the last event of a run."""
    return isinstance(event, StatusSnapshot) and event.status.status in TERMINAL_STATUSES


class Subscription:
    """An unbounded queue of events for one listener.

    Publishing never blocks, so a slow reader cannot stall the job.
    """

    def __init__(self, job_id: str):
        self.job_id = job_id
        self._queue = queue.Queue()

    def put(self, event) -> None:
        self._queue.put_nowait(event)

    def get(self, timeout: float | None = None):
        """Next event. Raises queue.Empty after timeout seconds."""
        return self._queue.get(timeout=timeout)

    def drain(self) -> list:
        """Everything queued so far, without waiting."""
        events = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events

    def events(self, timeout: float | None = None):
        """Yield events until the job's terminal status snapshot.

        Raises TimeoutError if no event arrives within timeout seconds.
        """
        while True:
            try:
                event = self._queue.get(timeout=timeout)
            except queue.Empty:
                raise TimeoutError(f"no event from job {self.job_id} within {timeout}s")
            yield event
            if is_terminal(event):
                return


class EventHub:
    """The listener list owned by one job."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        self._subscribers: list[Subscription] = []
        self._lock = threading.Lock()

    def subscribe(self) -> Subscription:
        sub = Subscription(self.job_id)
        with self._lock:
            self._subscribers.append(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            if sub in self._subscribers:
                self._subscribers.remove(sub)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, event) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for sub in subscribers:
            sub.put(event)
        logger.debug("Job %s published %s to %d subscriber(s)",
                     self.job_id, type(event).__name__, len(subscribers))

import logging
import threading
from collections import deque
from typing import Deque, List

from pialert_relay.models import PollRecord

log = logging.getLogger(__name__)

DEFAULT_CAPACITY = 50


class PollHistory:
    """Bounded, newest-first ring of poll records.

    Order is strictly insertion order; timestamps are never compared, so a
    clock step cannot reorder entries. Once full, each append drops the
    oldest record.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError(f"history capacity must be at least 1 (got {capacity})")
        self.capacity = capacity
        self._records: Deque[PollRecord] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def append(self, record: PollRecord) -> None:
        with self._lock:
            # deque(maxlen) evicts from the opposite end of appendleft
            self._records.appendleft(record)
        log.debug(f"history: {record.kind.value} - {record.detail}")

    def snapshot(self) -> List[PollRecord]:
        with self._lock:
            return list(self._records)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

"""
Bounded in-memory job history.
"""

import threading
from collections import OrderedDict

from worker.v1.core.exceptions import NotFoundError
from worker.v1.jobs.schemas import JobRecord

MAX_HISTORY = 100


class HistoryStore:
    """
    Insertion-ordered map of job id to its latest record.

    Once more than ``max_size`` ids are present the oldest inserted id is
    evicted. Overwriting an id keeps its original position.
    """

    def __init__(self, max_size: int = MAX_HISTORY):
        if max_size < 1:
            raise ValueError(f"max_size must be at least 1, got: {max_size}")
        self.max_size = max_size
        self._records: OrderedDict[str, JobRecord] = OrderedDict()
        self._lock = threading.Lock()

    def put(self, job_id: str, record: JobRecord) -> str | None:
        """Insert or overwrite a record. Returns the evicted job id, if any."""
        with self._lock:
            self._records[job_id] = record
            if len(self._records) > self.max_size:
                evicted_id, _ = self._records.popitem(last=False)
                return evicted_id
        return None

    def get(self, job_id: str) -> JobRecord:
        with self._lock:
            record = self._records.get(job_id)
        if record is None:
            raise NotFoundError("Job not found", details={"job_id": job_id})
        return record

    def list_recent(self, limit: int = 10) -> list[JobRecord]:
        """Return up to ``limit`` records, newest ``started_at`` first."""
        if limit <= 0:
            return []
        with self._lock:
            records = list(self._records.values())
        # sorted() is stable, equal start times keep insertion order
        records = sorted(records, key=lambda r: r.started_at, reverse=True)
        return records[:limit]

    @property
    def capacity(self) -> int:
        return self.max_size

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, job_id: object) -> bool:
        with self._lock:
            return job_id in self._records

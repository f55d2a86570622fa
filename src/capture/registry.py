"""In-process job records, one per capture.

The HTTP layer polls ``GET /captures/{id}/job`` while a submit is running; the
record says which phase the capture is in and how far evidence processing
got. Each record also owns the lock that serializes submit and confirm calls
for that capture. Records are looked up by capture id *and* owner, so one user can
never read another's job. A record is dropped once its capture reaches a
terminal state; the database row is the source of truth after that.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional, Tuple
from uuid import UUID

from src.shared.models import utcnow


class JobPhase:
    IDLE = "idle"
    EVIDENCE = "processing_evidence"
    EXTRACTING = "extracting"
    REVIEW = "ready_for_review"
    COMMITTING = "committing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class CaptureJob:
    capture_id: UUID
    user_id: UUID
    phase: str = JobPhase.IDLE
    evidence_done: int = 0
    evidence_total: int = 0
    error: Optional[str] = None
    updated_at: datetime = field(default_factory=utcnow)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    def set_phase(self, phase: str, error: Optional[str] = None) -> None:
        self.phase = phase
        self.error = error
        self.updated_at = utcnow()

    def set_progress(self, done: int, total: int) -> None:
        self.evidence_done = done
        self.evidence_total = total
        self.updated_at = utcnow()


class CaptureJobRegistry:
    def __init__(self):
        self._jobs: Dict[Tuple[UUID, UUID], CaptureJob] = {}

    def get_or_create(self, capture_id: UUID, user_id: UUID) -> CaptureJob:
        key = (user_id, capture_id)
        job = self._jobs.get(key)
        if job is None:
            job = CaptureJob(capture_id=capture_id, user_id=user_id)
            self._jobs[key] = job
        return job

    def get(self, capture_id: UUID, user_id: UUID) -> Optional[CaptureJob]:
        return self._jobs.get((user_id, capture_id))

    def discard(self, capture_id: UUID, user_id: UUID) -> None:
        self._jobs.pop((user_id, capture_id), None)

    def release(self, capture_id: UUID, user_id: UUID) -> bool:
        """Drop a finished record unless a caller is still inside its lock."""
        job = self._jobs.get((user_id, capture_id))
        if job is None or job.lock.locked():
            return False
        del self._jobs[(user_id, capture_id)]
        return True

    def __len__(self) -> int:
        return len(self._jobs)

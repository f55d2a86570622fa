import logging
from datetime import date, datetime
from typing import Callable, List, Optional
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.agents.extraction.agent import ExtractionEngine
from src.agents.extraction.normalizer import NarrativeNormalizer
from src.agents.extraction.schemas import ExtractionResult
from src.auth.models import User
from src.billing.service import UsageGate
from src.capture.models import Capture, CaptureStatus
from src.capture.registry import CaptureJob, CaptureJobRegistry, JobPhase
from src.capture.state import TERMINAL_STATES, ensure_transition
from src.cases.service import CaseService
from src.evidence.models import CaptureEvidence, Evidence, EvidenceSourceType
from src.evidence.service import EvidencePreprocessor, load_capture_evidence, summaries_for_prompt
from src.evidence.storage import BlobStorage
from src.ingestion.service import IngestionService
from src.llm.provider import StructuredProvider
from src.shared.exceptions import (
    CommitError,
    ExtractionError,
    InvalidStateTransition,
    NotFoundError,
    QuotaExceededError,
    StaleExtractionError,
    ValidationError,
)
from src.shared.models import utcnow
from src.shared.tenancy import TenantScope
from src.timeline.service import CommitResult, TimelineCommitService

logger = logging.getLogger(__name__)

SUBMIT_FAILED = "We couldn't process this capture. Please try again."

_TERMINAL_VALUES = frozenset(status.value for status in TERMINAL_STATES)

_PHASE_FOR_STATUS = {
    CaptureStatus.DRAFT: JobPhase.IDLE,
    CaptureStatus.PROCESSING: JobPhase.EXTRACTING,
    CaptureStatus.REVIEW: JobPhase.REVIEW,
    CaptureStatus.COMPLETED: JobPhase.COMPLETED,
    CaptureStatus.CANCELLED: JobPhase.CANCELLED,
}


def infer_source_type(mime_type: Optional[str], filename: Optional[str] = None) -> EvidenceSourceType:
    mime = (mime_type or "").lower()
    lower = (filename or "").lower()
    if mime.startswith("image/"):
        return EvidenceSourceType.PHOTO
    if mime.startswith(("audio/", "video/")):
        return EvidenceSourceType.RECORDING
    if mime == "message/rfc822" or lower.endswith(".eml"):
        return EvidenceSourceType.EMAIL
    if mime == "application/pdf" or lower.endswith((".pdf", ".docx", ".doc")):
        return EvidenceSourceType.DOCUMENT
    if mime.startswith("text/"):
        return EvidenceSourceType.TEXT
    return EvidenceSourceType.OTHER


class CaptureService:
    """Drives one user's captures through draft → processing → review → completed."""

    def __init__(
        self,
        db: AsyncSession,
        user: User,
        *,
        extraction_provider: StructuredProvider,
        evidence_provider: StructuredProvider,
        storage: BlobStorage,
        registry: CaptureJobRegistry,
        ingestion: Optional[IngestionService] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.user_id = user.id
        self.timezone_name = user.timezone
        self.speaker_name = user.full_name
        self.scope = TenantScope(db, user.id)
        self.extraction_provider = extraction_provider
        self.evidence_provider = evidence_provider
        self.storage = storage
        self.registry = registry
        self.ingestion = ingestion or IngestionService()
        self.normalizer = NarrativeNormalizer(clock) if clock else NarrativeNormalizer()

    # --- Drafting ---

    async def create_capture(
        self,
        event_text: Optional[str] = None,
        reference_date: Optional[date] = None,
        reference_time_description: Optional[str] = None,
    ) -> Capture:
        capture = Capture(
            user_id=self.user_id,
            status=CaptureStatus.DRAFT,
            event_text=event_text,
            reference_date=reference_date,
            reference_time_description=reference_time_description,
        )
        self.db.add(capture)
        await self.db.commit()
        await self.db.refresh(capture)
        logger.info("Created capture %s for user %s", capture.id, self.user_id)
        return capture

    async def update_capture(self, capture_id: UUID, **fields) -> Capture:
        capture = await self.scope.get(Capture, capture_id)
        self._require_draft(capture)
        for name in ("event_text", "reference_date", "reference_time_description"):
            if name in fields:
                setattr(capture, name, fields[name])
        await self.db.commit()
        return capture

    async def attach_evidence(
        self,
        capture_id: UUID,
        *,
        content: bytes,
        filename: Optional[str],
        mime_type: Optional[str],
        source_type: Optional[EvidenceSourceType] = None,
        annotation: Optional[str] = None,
    ) -> CaptureEvidence:
        capture = await self.scope.get(Capture, capture_id)
        self._require_draft(capture)
        if not content:
            raise ValidationError("The uploaded file is empty.")

        evidence = Evidence(
            user_id=self.user_id,
            source_type=source_type or infer_source_type(mime_type, filename),
            original_filename=filename,
            mime_type=mime_type,
            file_hash=self.ingestion.calculate_hash(content),
            staged_content=content,
            user_annotation=annotation or None,
        )
        self.db.add(evidence)
        await self.db.flush()

        next_order = await self.db.scalar(
            select(func.coalesce(func.max(CaptureEvidence.sort_order) + 1, 0))
            .where(CaptureEvidence.capture_id == capture.id)
        )
        link = CaptureEvidence(capture_id=capture.id, evidence_id=evidence.id, sort_order=next_order)
        self.db.add(link)
        await self.db.commit()
        await self.db.refresh(link)
        logger.info("Attached evidence %s to capture %s at position %s", evidence.id, capture.id, next_order)
        return link

    # --- Reads ---

    async def get_capture(self, capture_id: UUID) -> Capture:
        return await self.scope.get(Capture, capture_id)

    async def list_captures(self, status: Optional[CaptureStatus] = None) -> List[Capture]:
        query = self.scope.select(Capture).order_by(desc(Capture.created_at))
        if status is not None:
            query = query.where(Capture.status == status)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_evidence(self, capture_id: UUID) -> List[CaptureEvidence]:
        capture = await self.scope.get(Capture, capture_id)
        return await load_capture_evidence(self.db, capture.id)

    async def get_job(self, capture_id: UUID) -> CaptureJob:
        capture = await self.scope.get(Capture, capture_id)
        job = self.registry.get(capture.id, self.user_id)
        if job is not None:
            return job
        if capture.status in TERMINAL_STATES:
            job = CaptureJob(capture_id=capture.id, user_id=self.user_id)
        else:
            job = self.registry.get_or_create(capture.id, self.user_id)
        job.set_phase(_PHASE_FOR_STATUS[capture.status], capture.processing_error)
        return job

    # --- Transitions ---

    async def submit_capture(self, capture_id: UUID) -> ExtractionResult:
        job = self.registry.get_or_create(capture_id, self.user_id)
        try:
            async with job.lock:
                return await self._submit(capture_id, job)
        except NotFoundError:
            self.registry.discard(capture_id, self.user_id)
            raise
        except InvalidStateTransition as e:
            self._release_if_finished(capture_id, e)
            raise

    async def _submit(self, capture_id: UUID, job: CaptureJob) -> ExtractionResult:
        capture = await self.scope.get(Capture, capture_id, for_update=True)
        if not (capture.event_text or "").strip():
            raise ValidationError("Describe what happened before submitting.")
        ensure_transition(capture.status, CaptureStatus.PROCESSING)
        if not await UsageGate(self.db, self.user_id).can_submit():
            raise QuotaExceededError()

        capture.status = CaptureStatus.PROCESSING
        capture.processing_error = None
        await self.db.commit()
        logger.info("Capture %s submitted", capture.id)

        try:
            result = await self._extract(capture, job)
        except ExtractionError as e:
            await self._revert_to_draft(capture_id, e.detail)
            job.set_phase(JobPhase.FAILED, e.detail)
            raise
        except Exception:
            logger.exception("Submit for capture %s failed", capture_id)
            await self._revert_to_draft(capture_id, SUBMIT_FAILED)
            job.set_phase(JobPhase.FAILED, SUBMIT_FAILED)
            raise

        # The capture may have been cancelled while the provider was working.
        capture = await self.scope.get(Capture, capture_id, for_update=True)
        if capture.status != CaptureStatus.PROCESSING:
            current = capture.status
            await self.db.rollback()
            logger.warning("Discarding extraction for capture %s: now %s", capture_id, current.value)
            job.set_phase(_PHASE_FOR_STATUS[current])
            raise StaleExtractionError(current.value, CaptureStatus.REVIEW.value)

        capture.extraction_raw = result.model_dump(mode="json")
        capture.processed_at = utcnow()
        capture.status = CaptureStatus.REVIEW
        await self.db.commit()
        job.set_phase(JobPhase.REVIEW)
        logger.info("Capture %s ready for review with %d event(s)", capture_id, len(result.events))
        return result

    async def _extract(self, capture: Capture, job: CaptureJob) -> ExtractionResult:
        case = await CaseService(self.db, self.user_id).get_latest_case()

        job.set_phase(JobPhase.EVIDENCE)
        preprocessor = EvidencePreprocessor(
            self.db, self.user_id, self.evidence_provider, self.storage, self.ingestion,
        )
        await preprocessor.process(
            capture,
            case_context=NarrativeNormalizer.case_context(case),
            on_progress=job.set_progress,
        )
        links = await load_capture_evidence(self.db, capture.id)

        context = self.normalizer.normalize(
            capture.event_text,
            reference_date=capture.reference_date,
            reference_time_description=capture.reference_time_description,
            timezone_name=self.timezone_name,
            speaker_name=self.speaker_name,
            case=case,
            evidence=summaries_for_prompt(links),
        )

        job.set_phase(JobPhase.EXTRACTING)
        return await ExtractionEngine(self.extraction_provider).extract(context)

    async def confirm_capture(self, capture_id: UUID) -> CommitResult:
        job = self.registry.get_or_create(capture_id, self.user_id)
        try:
            async with job.lock:
                result = await self._confirm(capture_id, job)
        except NotFoundError:
            self.registry.discard(capture_id, self.user_id)
            raise
        except InvalidStateTransition as e:
            self._release_if_finished(capture_id, e)
            raise
        self.registry.release(capture_id, self.user_id)
        return result

    async def _confirm(self, capture_id: UUID, job: CaptureJob) -> CommitResult:
        capture = await self.scope.get(Capture, capture_id, for_update=True)
        commits = TimelineCommitService(self.db, self.user_id)

        if capture.status == CaptureStatus.COMPLETED:
            marker = await commits.get_marker(capture.id)
            if marker is not None:
                return CommitResult.from_marker(marker)
        ensure_transition(capture.status, CaptureStatus.COMPLETED)

        try:
            extraction = ExtractionResult.model_validate(capture.extraction_raw)
        except PydanticValidationError as e:
            logger.error("Stored extraction for capture %s is unreadable: %s", capture_id, e)
            raise CommitError() from e
        if not extraction.events:
            raise ValidationError("No events were found. Edit the description and submit again.")
        if not await UsageGate(self.db, self.user_id).can_submit():
            raise QuotaExceededError()

        links = await load_capture_evidence(self.db, capture.id)
        job.set_phase(JobPhase.COMMITTING)
        try:
            result = await commits.commit(capture, extraction, links)
        except CommitError as e:
            capture = await self.scope.get(Capture, capture_id)
            capture.processing_error = e.detail
            await self.db.commit()
            job.set_phase(JobPhase.FAILED, e.detail)
            raise

        job.set_phase(JobPhase.COMPLETED)
        return result

    async def cancel_capture(self, capture_id: UUID) -> Capture:
        capture = await self.scope.get(Capture, capture_id, for_update=True)
        ensure_transition(capture.status, CaptureStatus.CANCELLED)
        capture.status = CaptureStatus.CANCELLED
        await self.db.commit()
        job = self.registry.get(capture.id, self.user_id)
        if job is not None:
            job.set_phase(JobPhase.CANCELLED)
            # A submit still holding the lock releases the record itself.
            self.registry.release(capture.id, self.user_id)
        logger.info("Capture %s cancelled", capture_id)
        return capture

    async def discard_extraction(self, capture_id: UUID) -> Capture:
        """review → draft: drop the unconfirmed extraction so the narrative can be edited."""
        capture = await self.scope.get(Capture, capture_id, for_update=True)
        ensure_transition(capture.status, CaptureStatus.DRAFT)
        if capture.status != CaptureStatus.REVIEW:
            raise InvalidStateTransition(capture.status.value, CaptureStatus.DRAFT.value)
        capture.status = CaptureStatus.DRAFT
        capture.extraction_raw = None
        capture.processed_at = None
        capture.processing_error = None
        await self.db.commit()
        job = self.registry.get(capture.id, self.user_id)
        if job is not None:
            job.set_phase(JobPhase.IDLE)
        return capture

    # --- Helpers ---

    @staticmethod
    def _require_draft(capture: Capture) -> None:
        if capture.status != CaptureStatus.DRAFT:
            raise InvalidStateTransition(
                capture.status.value,
                CaptureStatus.DRAFT.value,
                detail="Only draft captures can be edited.",
            )

    def _release_if_finished(self, capture_id: UUID, error: InvalidStateTransition) -> None:
        if error.current in _TERMINAL_VALUES:
            self.registry.release(capture_id, self.user_id)

    async def _revert_to_draft(self, capture_id: UUID, error: str) -> None:
        await self.db.rollback()
        capture = await self.scope.get(Capture, capture_id, for_update=True)
        if capture.status != CaptureStatus.PROCESSING:
            await self.db.rollback()
            return
        ensure_transition(capture.status, CaptureStatus.DRAFT)
        capture.status = CaptureStatus.DRAFT
        capture.processing_error = error
        await self.db.commit()
        logger.info("Capture %s reverted to draft: %s", capture_id, error)

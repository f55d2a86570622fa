"""Evidence pre-processing for a capture.

Each attached item is stored in blob storage (if it is still staged) and
summarised by the evidence model. Items are worked on by a small bounded pool;
their outcomes are applied to the database afterwards, in sort order, so a
slow or failing item never reorders or aborts the others.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID

from langchain_core.messages import HumanMessage, SystemMessage
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.agents.extraction.normalizer import DEFAULT_CASE_CONTEXT, EvidenceSummary
from src.config import settings
from src.evidence.models import CaptureEvidence, EvidenceSourceType
from src.evidence.prompts import (
    EVIDENCE_DOCUMENT_TEXT,
    EVIDENCE_SYSTEM_PROMPT,
    EVIDENCE_UNREADABLE_FILE,
    EVIDENCE_USER_PROMPT,
    EVIDENCE_USER_PROMPT_WITH_NOTE,
)
from src.evidence.schemas import EvidenceAnalysis
from src.evidence.storage import BlobStorage, StorageError, evidence_object_path
from src.ingestion.service import IngestionService
from src.llm.provider import StructuredProvider
from src.shared.exceptions import EvidenceProcessingError, ExtractionError
from src.shared.models import utcnow

logger = logging.getLogger(__name__)

STORAGE_FAILED = "We couldn't upload this file. Please try attaching it again."
ANALYSIS_FAILED = "We couldn't analyze this file."


@dataclass(frozen=True)
class _WorkItem:
    link_id: int
    evidence_id: UUID
    source_type: EvidenceSourceType
    filename: Optional[str]
    mime_type: Optional[str]
    annotation: Optional[str]
    staged: Optional[bytes]
    storage_path: Optional[str]


@dataclass
class _Outcome:
    link_id: int
    storage_path: Optional[str] = None
    analysis: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


@dataclass
class PreprocessReport:
    processed: List[UUID] = field(default_factory=list)
    skipped: List[UUID] = field(default_factory=list)
    failed: List[UUID] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.processed) + len(self.skipped) + len(self.failed)


def is_image(mime_type: Optional[str], source_type: EvidenceSourceType) -> bool:
    if mime_type:
        return mime_type.lower().startswith("image/")
    return source_type == EvidenceSourceType.PHOTO


async def load_capture_evidence(db: AsyncSession, capture_id: UUID) -> List[CaptureEvidence]:
    result = await db.execute(
        select(CaptureEvidence)
        .where(CaptureEvidence.capture_id == capture_id)
        .order_by(CaptureEvidence.sort_order, CaptureEvidence.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().unique().all())


def summaries_for_prompt(links: List[CaptureEvidence]) -> List[EvidenceSummary]:
    """Processed items only, in sort order."""
    return [
        EvidenceSummary(
            annotation=link.evidence.user_annotation or "",
            summary=link.evidence.summary or "",
        )
        for link in links
        if link.is_processed
    ]


class EvidencePreprocessor:
    def __init__(
        self,
        db: AsyncSession,
        user_id: UUID,
        provider: StructuredProvider,
        storage: BlobStorage,
        ingestion: Optional[IngestionService] = None,
        concurrency: Optional[int] = None,
    ):
        self.db = db
        self.user_id = user_id
        self.provider = provider
        self.storage = storage
        self.ingestion = ingestion or IngestionService()
        self.concurrency = max(1, concurrency or settings.EVIDENCE_CONCURRENCY)

    async def process(
        self,
        capture: Any,
        *,
        force: bool = False,
        case_context: str = DEFAULT_CASE_CONTEXT,
        on_progress: Optional[Callable[[int, int], None]] = None,
    ) -> PreprocessReport:
        links = await load_capture_evidence(self.db, capture.id)
        report = PreprocessReport()

        pending: List[_WorkItem] = []
        for link in links:
            if link.is_processed and not force:
                report.skipped.append(link.evidence_id)
                continue
            ev = link.evidence
            pending.append(_WorkItem(
                link_id=link.id,
                evidence_id=ev.id,
                source_type=ev.source_type,
                filename=ev.original_filename,
                mime_type=ev.mime_type,
                annotation=ev.user_annotation,
                staged=ev.staged_content,
                storage_path=ev.storage_path,
            ))

        if not pending:
            return report

        logger.info(
            "Pre-processing %d evidence item(s) for capture %s (concurrency=%d)",
            len(pending), capture.id, self.concurrency,
        )

        semaphore = asyncio.Semaphore(self.concurrency)
        done = 0

        async def run(item: _WorkItem) -> _Outcome:
            nonlocal done
            async with semaphore:
                outcome = await self._work(item, case_context)
            done += 1
            if on_progress is not None:
                on_progress(done, len(pending))
            return outcome

        outcomes = await asyncio.gather(*(run(item) for item in pending))

        by_link = {link.id: link for link in links}
        now = utcnow()
        for outcome in outcomes:
            link = by_link[outcome.link_id]
            ev = link.evidence
            if outcome.storage_path and ev.storage_path is None:
                ev.storage_path = outcome.storage_path
                ev.staged_content = None
            if outcome.error is not None:
                link.is_processed = False
                link.processing_error = outcome.error
                report.failed.append(ev.id)
                continue
            analysis = outcome.analysis or {}
            ev.summary = analysis.get("summary")
            ev.extraction_raw = analysis
            ev.tags = analysis.get("suggested_tags") or []
            link.is_processed = True
            link.processed_at = now
            link.processing_error = None
            report.processed.append(ev.id)

        await self.db.commit()
        logger.info(
            "Evidence for capture %s: %d processed, %d skipped, %d failed",
            capture.id, len(report.processed), len(report.skipped), len(report.failed),
        )
        return report

    async def _work(self, item: _WorkItem, case_context: str) -> _Outcome:
        outcome = _Outcome(link_id=item.link_id, storage_path=item.storage_path)

        if outcome.storage_path is None and item.staged is not None:
            path = evidence_object_path(self.user_id, item.evidence_id, item.filename)
            try:
                outcome.storage_path = await self.storage.put(item.staged, path, item.mime_type)
            except Exception as e:
                logger.warning("Storing evidence %s failed: %s", item.evidence_id, e)
                outcome.error = STORAGE_FAILED
                return outcome

        try:
            messages = await self._build_messages(item, outcome.storage_path, case_context)
            outcome.analysis = await self.provider.call(messages, EvidenceAnalysis)
        except StorageError as e:
            logger.warning("Signing evidence %s failed: %s", item.evidence_id, e)
            outcome.error = ANALYSIS_FAILED
        except (ExtractionError, EvidenceProcessingError) as e:
            logger.warning("Analysis of evidence %s failed: %s", item.evidence_id, e)
            outcome.error = ANALYSIS_FAILED
        except Exception:
            logger.warning("Analysis of evidence %s failed unexpectedly", item.evidence_id, exc_info=True)
            outcome.error = ANALYSIS_FAILED
        return outcome

    async def _build_messages(self, item: _WorkItem, storage_path: Optional[str], case_context: str):
        system = SystemMessage(content=EVIDENCE_SYSTEM_PROMPT.format(case_context=case_context))
        if item.annotation:
            instruction = EVIDENCE_USER_PROMPT_WITH_NOTE.format(annotation=item.annotation)
        else:
            instruction = EVIDENCE_USER_PROMPT

        if is_image(item.mime_type, item.source_type) and storage_path:
            url = await self.storage.signed_url(storage_path, settings.SIGNED_URL_TTL_SECONDS)
            return [system, HumanMessage(content=[
                {"type": "text", "text": instruction},
                {"type": "image_url", "image_url": {"url": url}},
            ])]

        body = self._document_text(item)
        return [system, HumanMessage(content=f"{body}\n\n{instruction}")]

    def _document_text(self, item: _WorkItem) -> str:
        filename = item.filename or "upload"
        mime_type = item.mime_type or "unknown"
        if item.staged is None or not self.ingestion.can_extract(item.filename, item.mime_type):
            return EVIDENCE_UNREADABLE_FILE.format(mime_type=mime_type, filename=filename)
        try:
            text = self.ingestion.extract_text(item.staged, item.filename, item.mime_type)
        except Exception as e:
            logger.warning("Text extraction failed for %s: %s", filename, e)
            return EVIDENCE_UNREADABLE_FILE.format(mime_type=mime_type, filename=filename)
        limit = settings.EVIDENCE_TEXT_CHAR_LIMIT
        if len(text) > limit:
            text = text[:limit] + "\n[truncated]"
        return EVIDENCE_DOCUMENT_TEXT.format(filename=filename, text=text)

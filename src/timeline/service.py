import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import insert, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.agents.extraction.schemas import ExtractedEvent, ExtractionResult
from src.billing.service import UsageGate
from src.capture.models import Capture, CaptureStatus
from src.capture.state import ensure_transition
from src.config import settings
from src.evidence.models import CaptureEvidence, EvidenceSourceType
from src.shared.exceptions import CaptureError, CommitError
from src.shared.models import utcnow
from src.shared.tenancy import TenantScope
from src.timeline.models import (
    ActionItem,
    ActionItemStatus,
    CaptureCommit,
    EventParticipant,
    EvidenceMention,
    ParticipantRole,
    Pattern,
    TimelineEvent,
    TimelineEventType,
    event_evidence,
    event_patterns,
)

logger = logging.getLogger(__name__)

_SLUG_CHARS = re.compile(r"[^a-z0-9]+")


def pattern_key(label: str) -> str:
    return _SLUG_CHARS.sub("-", label.lower()).strip("-")[:64]


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass
class CommitResult:
    capture_id: UUID
    event_ids: List[UUID] = field(default_factory=list)
    action_item_ids: List[UUID] = field(default_factory=list)
    linked_evidence_count: int = 0
    already_committed: bool = False

    @classmethod
    def from_marker(cls, marker: CaptureCommit) -> "CommitResult":
        return cls(
            capture_id=marker.capture_id,
            event_ids=[UUID(i) for i in marker.event_ids],
            action_item_ids=[UUID(i) for i in marker.action_item_ids],
            linked_evidence_count=marker.linked_evidence_count,
            already_committed=True,
        )


class TimelineCommitService:
    """Turns a validated extraction into timeline rows, once per capture.

    Everything (events, links, patterns, action items, usage, the capture's
    move to ``completed`` and the ``CaptureCommit`` marker) is written in one
    transaction. The marker is inserted first, so a second committer for the
    same capture fails on its primary key before writing anything else.
    """

    def __init__(self, db: AsyncSession, user_id: UUID, link_policy: Optional[str] = None):
        self.db = db
        self.user_id = user_id
        self.link_policy = link_policy or settings.EVIDENCE_LINK_POLICY

    async def get_marker(self, capture_id: UUID) -> Optional[CaptureCommit]:
        result = await self.db.execute(
            select(CaptureCommit).where(
                CaptureCommit.capture_id == capture_id,
                CaptureCommit.user_id == self.user_id,
            ).execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def commit(
        self,
        capture: Capture,
        extraction: ExtractionResult,
        links: Sequence[CaptureEvidence],
    ) -> CommitResult:
        capture_id = capture.id
        existing = await self.get_marker(capture_id)
        if existing is not None:
            return CommitResult.from_marker(existing)

        marker = CaptureCommit(
            capture_id=capture_id,
            user_id=self.user_id,
            event_ids=[],
            action_item_ids=[],
            linked_evidence_count=0,
        )
        self.db.add(marker)
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            winner = await self.get_marker(capture_id)
            if winner is None:
                logger.error("Commit marker for capture %s collided but cannot be read", capture_id)
                raise CommitError()
            logger.info("Capture %s was committed concurrently; returning that result", capture_id)
            return CommitResult.from_marker(winner)

        try:
            result = await self._write(capture, extraction, links, marker)
            await self.db.commit()
        except CaptureError:
            await self.db.rollback()
            raise
        except (SQLAlchemyError, ValueError) as e:
            await self.db.rollback()
            logger.error("Commit for capture %s failed: %s", capture_id, e)
            raise CommitError() from e

        logger.info(
            "Committed capture %s: %d event(s), %d action item(s), %d evidence linked",
            capture_id, len(result.event_ids), len(result.action_item_ids), result.linked_evidence_count,
        )
        return result

    async def _write(
        self,
        capture: Capture,
        extraction: ExtractionResult,
        links: Sequence[CaptureEvidence],
        marker: CaptureCommit,
    ) -> CommitResult:
        events: List[TimelineEvent] = []
        for extracted in extraction.events:
            event = self._build_event(capture.id, extracted)
            self.db.add(event)
            events.append(event)
        await self.db.flush()

        linked = await self._link_evidence(events, extraction.events, links)
        await self._link_patterns(events, extraction.events)

        first_event_id = events[0].id if events else None
        action_items: List[ActionItem] = []
        for extracted in extraction.action_items:
            item = ActionItem(
                user_id=self.user_id,
                event_id=first_event_id,
                priority=extracted.priority,
                type=extracted.type,
                description=extracted.description,
                deadline=_parse_datetime(extracted.deadline),
                status=ActionItemStatus.OPEN,
            )
            self.db.add(item)
            action_items.append(item)
        await self.db.flush()

        await UsageGate(self.db, self.user_id).increment_usage()

        ensure_transition(capture.status, CaptureStatus.COMPLETED)
        capture.status = CaptureStatus.COMPLETED
        capture.completed_at = utcnow()
        capture.processing_error = None

        marker.event_ids = [str(e.id) for e in events]
        marker.action_item_ids = [str(a.id) for a in action_items]
        marker.linked_evidence_count = linked
        await self.db.flush()

        return CommitResult(
            capture_id=capture.id,
            event_ids=[e.id for e in events],
            action_item_ids=[a.id for a in action_items],
            linked_evidence_count=linked,
        )

    def _build_event(self, capture_id: UUID, extracted: ExtractedEvent) -> TimelineEvent:
        participants = extracted.participants
        event = TimelineEvent(
            user_id=self.user_id,
            capture_id=capture_id,
            type=TimelineEventType(extracted.type),
            title=extracted.title,
            description=extracted.description,
            primary_timestamp=_parse_datetime(extracted.primary_timestamp),
            timestamp_precision=extracted.timestamp_precision,
            duration_minutes=extracted.duration_minutes,
            location=extracted.location,
            child_involved=extracted.child_involved,
            agreement_violation=extracted.custody_relevance.agreement_violation,
            safety_concern=extracted.custody_relevance.safety_concern,
            welfare_impact=extracted.custody_relevance.welfare_impact,
        )
        event.participants = (
            [EventParticipant(role=ParticipantRole.PRIMARY, label=p) for p in participants.primary]
            + [EventParticipant(role=ParticipantRole.WITNESS, label=p) for p in participants.witnesses]
            + [EventParticipant(role=ParticipantRole.PROFESSIONAL, label=p) for p in participants.professionals]
        )
        event.evidence_mentions = [
            EvidenceMention(type=EvidenceSourceType(m.type), description=m.description, status=m.status)
            for m in extracted.evidence_mentioned
        ]
        return event

    async def _link_evidence(
        self,
        events: Sequence[TimelineEvent],
        extracted: Sequence[ExtractedEvent],
        links: Sequence[CaptureEvidence],
    ) -> int:
        # Only artifacts that made it into storage can be linked.
        stored = [
            link.evidence for link in sorted(links, key=lambda l: (l.sort_order, l.id))
            if link.evidence.storage_path and link.evidence.user_id == self.user_id
        ]
        rows: List[Dict[str, Any]] = []
        for event, source in zip(events, extracted):
            if self.link_policy == "mentioned":
                have = {m.type for m in source.evidence_mentioned if m.status == "have"}
                candidates = [ev for ev in stored if ev.source_type.value in have]
            else:
                candidates = stored
            for position, evidence in enumerate(candidates):
                rows.append({
                    "event_id": event.id,
                    "evidence_id": evidence.id,
                    "is_primary": position == 0,
                    "created_at": utcnow(),
                })
        if rows:
            await self.db.execute(insert(event_evidence), rows)
        return len({row["evidence_id"] for row in rows})

    async def _link_patterns(self, events: Sequence[TimelineEvent], extracted: Sequence[ExtractedEvent]) -> None:
        labels: Dict[str, str] = {}
        per_event: List[List[str]] = []
        for source in extracted:
            keys = []
            for label in source.patterns_noted:
                key = pattern_key(label)
                if not key or key in keys:
                    continue
                labels.setdefault(key, label.strip())
                keys.append(key)
            per_event.append(keys)
        if not labels:
            return

        result = await self.db.execute(
            select(Pattern).where(Pattern.user_id == self.user_id, Pattern.key.in_(list(labels)))
        )
        patterns = {p.key: p for p in result.scalars().all()}
        for key, label in labels.items():
            if key not in patterns:
                pattern = Pattern(user_id=self.user_id, key=key, label=label)
                self.db.add(pattern)
                patterns[key] = pattern
        await self.db.flush()

        rows = [
            {"event_id": event.id, "pattern_id": patterns[key].id}
            for event, keys in zip(events, per_event)
            for key in keys
        ]
        if rows:
            await self.db.execute(insert(event_patterns), rows)


class TimelineService:
    def __init__(self, db: AsyncSession, user_id: UUID):
        self.db = db
        self.user_id = user_id
        self.scope = TenantScope(db, user_id)

    async def list_events(self, limit: int = 100, offset: int = 0) -> List[TimelineEvent]:
        result = await self.db.execute(
            self.scope.select(TimelineEvent)
            .order_by(TimelineEvent.primary_timestamp.desc().nulls_last(), TimelineEvent.created_at.desc())
            .limit(limit)
            .offset(offset)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def linked_evidence(self, event_ids: Sequence[UUID]) -> Dict[UUID, List[Dict[str, Any]]]:
        if not event_ids:
            return {}
        result = await self.db.execute(
            select(event_evidence.c.event_id, event_evidence.c.evidence_id, event_evidence.c.is_primary)
            .where(event_evidence.c.event_id.in_(list(event_ids)))
            .order_by(event_evidence.c.id)
        )
        links: Dict[UUID, List[Dict[str, Any]]] = {}
        for event_id, evidence_id, is_primary in result.all():
            links.setdefault(event_id, []).append({"evidence_id": evidence_id, "is_primary": is_primary})
        return links

    async def list_action_items(self, status: Optional[ActionItemStatus] = None) -> List[ActionItem]:
        query = self.scope.select(ActionItem).order_by(ActionItem.created_at)
        if status is not None:
            query = query.where(ActionItem.status == status)
        result = await self.db.execute(query)
        return list(result.scalars().all())

from enum import Enum
from sqlalchemy import (
    Column, String, Integer, Text, Boolean, DateTime, ForeignKey, Uuid, Table,
    UniqueConstraint, Enum as SAEnum,
)
from sqlalchemy.orm import relationship
from src.database import Base
from src.evidence.models import EvidenceSourceType
from src.shared.models import AuditMixin, OwnedMixin, JSONType, utcnow


class TimelineEventType(str, Enum):
    INCIDENT = "incident"
    POSITIVE = "positive"
    MEDICAL = "medical"
    SCHOOL = "school"
    COMMUNICATION = "communication"
    LEGAL = "legal"


class ParticipantRole(str, Enum):
    PRIMARY = "primary"
    WITNESS = "witness"
    PROFESSIONAL = "professional"


class ActionItemStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    CANCELLED = "cancelled"


# Evidence linked to an event; at most one link per pair.
event_evidence = Table(
    "event_evidence",
    Base.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("event_id", Uuid(as_uuid=True), ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("evidence_id", Uuid(as_uuid=True), ForeignKey("evidence.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("is_primary", Boolean, default=False, nullable=False),
    Column("created_at", DateTime, default=utcnow, nullable=False),
    UniqueConstraint("event_id", "evidence_id", name="uq_event_evidence_pair"),
)

event_patterns = Table(
    "event_patterns",
    Base.metadata,
    Column("event_id", Uuid(as_uuid=True), ForeignKey("events.id", ondelete="CASCADE"), primary_key=True),
    Column("pattern_id", Uuid(as_uuid=True), ForeignKey("patterns.id", ondelete="CASCADE"), primary_key=True),
)


class TimelineEvent(Base, AuditMixin, OwnedMixin):
    __tablename__ = "events"

    capture_id = Column(Uuid(as_uuid=True), ForeignKey("captures.id", ondelete="SET NULL"), nullable=True, index=True)
    type = Column(SAEnum(TimelineEventType), nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    primary_timestamp = Column(DateTime(timezone=True), nullable=True)
    timestamp_precision = Column(String, default="unknown", nullable=False)
    duration_minutes = Column(Integer, nullable=True)
    location = Column(String, nullable=True)
    child_involved = Column(Boolean, default=False, nullable=False)
    agreement_violation = Column(Boolean, nullable=True)
    safety_concern = Column(Boolean, nullable=True)
    welfare_impact = Column(String, default="unknown", nullable=False)

    participants = relationship("EventParticipant", lazy="selectin", cascade="all, delete-orphan")
    evidence_mentions = relationship("EvidenceMention", lazy="selectin", cascade="all, delete-orphan")
    patterns = relationship("Pattern", secondary=event_patterns, lazy="selectin")


class EventParticipant(Base):
    __tablename__ = "event_participants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(Uuid(as_uuid=True), ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(SAEnum(ParticipantRole), nullable=False)
    label = Column(String, nullable=False)


class EvidenceMention(Base):
    """Evidence the narrative refers to, whether or not it was attached."""
    __tablename__ = "evidence_mentions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(Uuid(as_uuid=True), ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(SAEnum(EvidenceSourceType), nullable=False)
    description = Column(Text, nullable=False)
    status = Column(String, nullable=False)


class Pattern(Base, AuditMixin, OwnedMixin):
    __tablename__ = "patterns"
    __table_args__ = (UniqueConstraint("user_id", "key", name="uq_patterns_user_key"),)

    key = Column(String, nullable=False)
    label = Column(String, nullable=False)


class ActionItem(Base, AuditMixin, OwnedMixin):
    __tablename__ = "action_items"

    event_id = Column(Uuid(as_uuid=True), ForeignKey("events.id", ondelete="SET NULL"), nullable=True, index=True)
    priority = Column(String, default="normal", nullable=False)
    type = Column(String, default="other", nullable=False)
    description = Column(Text, nullable=False)
    deadline = Column(DateTime(timezone=True), nullable=True)
    status = Column(SAEnum(ActionItemStatus), default=ActionItemStatus.OPEN, nullable=False)


class CaptureCommit(Base):
    """Written in the same transaction as the rows it lists. Its presence means the capture is committed."""
    __tablename__ = "capture_commits"

    capture_id = Column(Uuid(as_uuid=True), ForeignKey("captures.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    event_ids = Column(JSONType, nullable=False)
    action_item_ids = Column(JSONType, nullable=False)
    linked_evidence_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

from enum import Enum
from sqlalchemy import (
    Column, String, Integer, Text, Boolean, DateTime, LargeBinary, ForeignKey, Uuid,
    UniqueConstraint, Enum as SAEnum,
)
from sqlalchemy.orm import relationship
from src.database import Base
from src.shared.models import AuditMixin, OwnedMixin, JSONType, utcnow


class EvidenceSourceType(str, Enum):
    TEXT = "text"
    EMAIL = "email"
    PHOTO = "photo"
    DOCUMENT = "document"
    RECORDING = "recording"
    OTHER = "other"


class Evidence(Base, AuditMixin, OwnedMixin):
    """An uploaded artifact (screenshot, photo, document...) and its analysis."""
    __tablename__ = "evidence"

    source_type = Column(SAEnum(EvidenceSourceType), nullable=False)
    original_filename = Column(String, nullable=True)
    mime_type = Column(String, nullable=True)
    file_hash = Column(String(64), nullable=True)  # SHA-256 of the original upload
    storage_path = Column(String, nullable=True)  # set once the artifact is in blob storage
    staged_content = Column(LargeBinary, nullable=True)  # upload held until the pre-processor stores it
    user_annotation = Column(Text, nullable=True)
    summary = Column(Text, nullable=True)
    extraction_raw = Column(JSONType, nullable=True)
    tags = Column(JSONType, nullable=True)


class CaptureEvidence(Base):
    """Evidence attached to a capture, with its per-item processing status."""
    __tablename__ = "capture_evidence"
    __table_args__ = (UniqueConstraint("capture_id", "evidence_id", name="uq_capture_evidence_pair"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    capture_id = Column(Uuid(as_uuid=True), ForeignKey("captures.id", ondelete="CASCADE"), nullable=False, index=True)
    evidence_id = Column(Uuid(as_uuid=True), ForeignKey("evidence.id", ondelete="CASCADE"), nullable=False, index=True)
    sort_order = Column(Integer, default=0, nullable=False)
    is_processed = Column(Boolean, default=False, nullable=False)
    processed_at = Column(DateTime, nullable=True)
    processing_error = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    evidence = relationship("Evidence", lazy="joined")

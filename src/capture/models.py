from enum import Enum
from sqlalchemy import Column, String, Text, Date, DateTime, Enum as SAEnum
from src.database import Base
from src.shared.models import AuditMixin, OwnedMixin, JSONType


class CaptureStatus(str, Enum):
    DRAFT = "draft"
    PROCESSING = "processing"
    REVIEW = "review"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Capture(Base, AuditMixin, OwnedMixin):
    """One narrative on its way from raw text to committed timeline events."""
    __tablename__ = "captures"

    status = Column(SAEnum(CaptureStatus), default=CaptureStatus.DRAFT, nullable=False, index=True)
    event_text = Column(Text, nullable=True)
    reference_date = Column(Date, nullable=True)
    reference_time_description = Column(String, nullable=True)
    extraction_raw = Column(JSONType, nullable=True)  # frozen once completed
    processing_error = Column(Text, nullable=True)
    processed_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.agents.extraction.schemas import ExtractionResult
from src.capture.models import CaptureStatus
from src.evidence.schemas import EvidenceItemResponse


class CaptureCreate(BaseModel):
    event_text: Optional[str] = Field(None, max_length=20000)
    reference_date: Optional[date] = None
    reference_time_description: Optional[str] = Field(None, max_length=200)


class CaptureUpdate(BaseModel):
    event_text: Optional[str] = Field(None, max_length=20000)
    reference_date: Optional[date] = None
    reference_time_description: Optional[str] = Field(None, max_length=200)


class CaptureResponse(BaseModel):
    id: UUID
    status: CaptureStatus
    event_text: Optional[str]
    reference_date: Optional[date]
    reference_time_description: Optional[str]
    extraction_raw: Optional[dict]
    processing_error: Optional[str]
    processed_at: Optional[datetime]
    completed_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CaptureDetailResponse(CaptureResponse):
    evidence: List[EvidenceItemResponse] = []


class SubmitResponse(BaseModel):
    capture_id: UUID
    status: CaptureStatus
    extraction: ExtractionResult


class ConfirmResponse(BaseModel):
    capture_id: UUID
    event_ids: List[UUID]
    action_item_ids: List[UUID]
    linked_evidence_count: int
    already_committed: bool


class JobResponse(BaseModel):
    capture_id: UUID
    phase: str
    evidence_done: int
    evidence_total: int
    error: Optional[str]
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from src.evidence.models import EvidenceSourceType
from src.timeline.models import ActionItemStatus, ParticipantRole, TimelineEventType


class ParticipantResponse(BaseModel):
    role: ParticipantRole
    label: str

    model_config = ConfigDict(from_attributes=True)


class EvidenceMentionResponse(BaseModel):
    type: EvidenceSourceType
    description: str
    status: str

    model_config = ConfigDict(from_attributes=True)


class PatternResponse(BaseModel):
    id: UUID
    key: str
    label: str

    model_config = ConfigDict(from_attributes=True)


class LinkedEvidence(BaseModel):
    evidence_id: UUID
    is_primary: bool


class TimelineEventResponse(BaseModel):
    id: UUID
    capture_id: Optional[UUID]
    type: TimelineEventType
    title: str
    description: str
    primary_timestamp: Optional[datetime]
    timestamp_precision: str
    duration_minutes: Optional[int]
    location: Optional[str]
    child_involved: bool
    agreement_violation: Optional[bool]
    safety_concern: Optional[bool]
    welfare_impact: str
    participants: List[ParticipantResponse] = []
    evidence_mentions: List[EvidenceMentionResponse] = []
    patterns: List[PatternResponse] = []
    evidence: List[LinkedEvidence] = []
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ActionItemResponse(BaseModel):
    id: UUID
    event_id: Optional[UUID]
    priority: str
    type: str
    description: str
    deadline: Optional[datetime]
    status: ActionItemStatus
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

"""The extraction contract.

Every field is required (nullable fields must be sent as ``null``), types are
not coerced, unknown keys are rejected and enum values are closed. A
response that does not validate is an ``ExtractionSchemaError``; nothing
here fills in a missing value.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

EventType = Literal["incident", "positive", "medical", "school", "communication", "legal"]
TimestampPrecision = Literal["exact", "day", "approximate", "unknown"]
WelfareImpact = Literal["none", "minor", "moderate", "significant", "positive", "unknown"]
PrimaryParticipant = Literal["co-parent", "child", "self", "other"]
EvidenceKind = Literal["text", "email", "photo", "document", "recording", "other"]
EvidenceStatus = Literal["have", "need_to_get", "need_to_create"]
ActionPriority = Literal["urgent", "high", "normal", "low"]
ActionType = Literal["document", "contact", "file", "obtain", "other"]


def _parse_iso(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    try:
        datetime.fromisoformat(value)
    except ValueError:
        raise ValueError(f"not an ISO-8601 timestamp: {value!r}")
    return value


class _Strict(BaseModel):
    model_config = ConfigDict(extra="forbid", strict=True)


class Participants(_Strict):
    primary: List[PrimaryParticipant] = Field(..., description="Primary participants")
    witnesses: List[str] = Field(..., description="Witnesses present")
    professionals: List[str] = Field(..., description="Professionals involved")


class CustodyRelevance(_Strict):
    agreement_violation: Optional[bool] = Field(..., description="Whether this violates a custody agreement; null if unknown")
    safety_concern: Optional[bool] = Field(..., description="Whether there are safety concerns; null if unknown")
    welfare_impact: WelfareImpact = Field(..., description="Impact on child welfare")


class EvidenceMentioned(_Strict):
    type: EvidenceKind = Field(..., description="Type of evidence")
    description: str = Field(..., description="Description of the evidence")
    status: EvidenceStatus = Field(..., description="Current status of the evidence")


class ExtractedEvent(_Strict):
    type: EventType = Field(..., description="Type of event")
    title: str = Field(..., min_length=1, description="Brief factual summary")
    description: str = Field(..., description="Detailed factual narrative")
    primary_timestamp: Optional[str] = Field(..., description="ISO-8601 timestamp or null if unknown")
    timestamp_precision: TimestampPrecision = Field(..., description="How precise the timestamp is")
    duration_minutes: Optional[int] = Field(..., ge=0, description="Duration in minutes if applicable")
    location: Optional[str] = Field(..., description="Location where event occurred")
    participants: Participants
    child_involved: bool = Field(..., description="Whether a child was involved")
    evidence_mentioned: List[EvidenceMentioned]
    patterns_noted: List[str]
    custody_relevance: CustodyRelevance

    @field_validator("primary_timestamp")
    @classmethod
    def check_timestamp(cls, value: Optional[str]) -> Optional[str]:
        return _parse_iso(value)

    @model_validator(mode="after")
    def check_precision(self) -> "ExtractedEvent":
        if self.primary_timestamp is None and self.timestamp_precision == "exact":
            raise ValueError("an exact timestamp_precision needs a primary_timestamp")
        return self


class ExtractedActionItem(_Strict):
    priority: ActionPriority = Field(..., description="Priority level")
    type: ActionType = Field(..., description="Type of action")
    description: str = Field(..., min_length=1, description="Description of the action item")
    deadline: Optional[str] = Field(..., description="ISO-8601 deadline or null")

    @field_validator("deadline")
    @classmethod
    def check_deadline(cls, value: Optional[str]) -> Optional[str]:
        return _parse_iso(value)


class ExtractionMetadata(_Strict):
    extraction_confidence: Optional[float] = Field(..., ge=0, le=1, description="Confidence score for extraction")
    ambiguities: List[str] = Field(..., description="Notes about ambiguous elements")


class ExtractionResult(_Strict):
    """Zero, one or many events from a single narrative."""
    events: List[ExtractedEvent] = Field(..., description="Extracted events")
    action_items: List[ExtractedActionItem] = Field(..., description="Action items identified")
    metadata: ExtractionMetadata

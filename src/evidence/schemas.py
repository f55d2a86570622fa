from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.evidence.models import EvidenceSourceType


# --- Structured output for per-item analysis ---

class KeyFact(BaseModel):
    fact: str = Field(..., description="A specific fact visible in the evidence")
    confidence: Literal["high", "medium", "low"] = Field(..., description="How confident we are in this fact")


class VisibleTimestamp(BaseModel):
    value: str = Field(..., description="The timestamp value as shown")
    iso: Optional[str] = Field(..., description="ISO-8601 representation if parseable")
    context: str = Field(..., description="What this timestamp refers to")


class Quote(BaseModel):
    speaker: str = Field(..., description="Who said this")
    text: str = Field(..., description="The exact quote")
    context: Optional[str] = Field(..., description="Context around the quote")


class EvidenceRelevance(BaseModel):
    child_related: bool = Field(..., description="Whether this involves or mentions children")
    agreement_related: bool = Field(..., description="Whether this relates to custody agreements")
    safety_related: bool = Field(..., description="Whether this relates to safety concerns")
    communication_type: Literal["text", "email", "document", "photo", "other", "none"] = Field(
        ..., description="Type of communication if applicable"
    )


class EvidenceAnalysis(BaseModel):
    """Structured, factual summary of one evidence item."""
    model_config = ConfigDict(extra="forbid")

    summary: str = Field(..., description="1-3 sentence factual description of what this evidence shows")
    key_facts: List[KeyFact] = Field(..., description="Specific facts extracted from the evidence")
    timestamps: List[VisibleTimestamp] = Field(..., description="Any timestamps visible in the evidence")
    quotes: List[Quote] = Field(..., description="Direct quotes visible in the evidence")
    people_mentioned: List[str] = Field(..., description="Names or identifiers of people mentioned")
    relevance: EvidenceRelevance
    suggested_tags: List[str] = Field(..., description="Tags for categorizing this evidence")


# --- API ---

class EvidenceItemResponse(BaseModel):
    evidence_id: UUID
    source_type: EvidenceSourceType
    original_filename: Optional[str]
    mime_type: Optional[str]
    user_annotation: Optional[str]
    summary: Optional[str]
    sort_order: int
    is_processed: bool
    processed_at: Optional[datetime]
    processing_error: Optional[str]

    @classmethod
    def from_link(cls, link) -> "EvidenceItemResponse":
        ev = link.evidence
        return cls(
            evidence_id=ev.id,
            source_type=ev.source_type,
            original_filename=ev.original_filename,
            mime_type=ev.mime_type,
            user_annotation=ev.user_annotation,
            summary=ev.summary,
            sort_order=link.sort_order,
            is_processed=link.is_processed,
            processed_at=link.processed_at,
            processing_error=link.processing_error,
        )

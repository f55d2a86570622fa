from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, UploadFile

from src.capture.dependencies import get_capture_service
from src.capture.models import CaptureStatus
from src.capture.schemas import (
    CaptureCreate,
    CaptureDetailResponse,
    CaptureResponse,
    CaptureUpdate,
    ConfirmResponse,
    JobResponse,
    SubmitResponse,
)
from src.capture.service import CaptureService
from src.evidence.models import EvidenceSourceType
from src.evidence.schemas import EvidenceItemResponse

router = APIRouter(prefix="/captures", tags=["captures"])


@router.post("", response_model=CaptureResponse, status_code=201)
async def create_capture(
    capture_in: CaptureCreate,
    service: CaptureService = Depends(get_capture_service),
):
    return await service.create_capture(**capture_in.model_dump())


@router.get("", response_model=List[CaptureResponse])
async def list_captures(
    status: Optional[CaptureStatus] = None,
    service: CaptureService = Depends(get_capture_service),
):
    return await service.list_captures(status)


@router.get("/{capture_id}", response_model=CaptureDetailResponse)
async def get_capture(
    capture_id: UUID,
    service: CaptureService = Depends(get_capture_service),
):
    """Capture with its evidence items and their processing status."""
    capture = await service.get_capture(capture_id)
    links = await service.list_evidence(capture_id)
    return CaptureDetailResponse(
        **CaptureResponse.model_validate(capture).model_dump(),
        evidence=[EvidenceItemResponse.from_link(link) for link in links],
    )


@router.patch("/{capture_id}", response_model=CaptureResponse)
async def update_capture(
    capture_id: UUID,
    capture_in: CaptureUpdate,
    service: CaptureService = Depends(get_capture_service),
):
    return await service.update_capture(capture_id, **capture_in.model_dump(exclude_unset=True))


@router.post("/{capture_id}/evidence", response_model=EvidenceItemResponse, status_code=201)
async def attach_evidence(
    capture_id: UUID,
    file: UploadFile = File(...),
    annotation: Optional[str] = Form(None),
    source_type: Optional[EvidenceSourceType] = Form(None),
    service: CaptureService = Depends(get_capture_service),
):
    """Stage an artifact on a draft capture. It is stored and analyzed on submit."""
    content = await file.read()
    link = await service.attach_evidence(
        capture_id,
        content=content,
        filename=file.filename,
        mime_type=file.content_type,
        source_type=source_type,
        annotation=annotation,
    )
    links = await service.list_evidence(capture_id)
    attached = next(l for l in links if l.id == link.id)
    return EvidenceItemResponse.from_link(attached)


@router.post("/{capture_id}/submit", response_model=SubmitResponse)
async def submit_capture(
    capture_id: UUID,
    service: CaptureService = Depends(get_capture_service),
):
    extraction = await service.submit_capture(capture_id)
    return SubmitResponse(capture_id=capture_id, status=CaptureStatus.REVIEW, extraction=extraction)


@router.post("/{capture_id}/confirm", response_model=ConfirmResponse)
async def confirm_capture(
    capture_id: UUID,
    service: CaptureService = Depends(get_capture_service),
):
    result = await service.confirm_capture(capture_id)
    return ConfirmResponse(
        capture_id=result.capture_id,
        event_ids=result.event_ids,
        action_item_ids=result.action_item_ids,
        linked_evidence_count=result.linked_evidence_count,
        already_committed=result.already_committed,
    )


@router.post("/{capture_id}/cancel", response_model=CaptureResponse)
async def cancel_capture(
    capture_id: UUID,
    service: CaptureService = Depends(get_capture_service),
):
    return await service.cancel_capture(capture_id)


@router.post("/{capture_id}/discard", response_model=CaptureResponse)
async def discard_extraction(
    capture_id: UUID,
    service: CaptureService = Depends(get_capture_service),
):
    return await service.discard_extraction(capture_id)


@router.get("/{capture_id}/job", response_model=JobResponse)
async def get_job(
    capture_id: UUID,
    service: CaptureService = Depends(get_capture_service),
):
    return await service.get_job(capture_id)

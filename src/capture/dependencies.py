from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth.dependencies import get_current_active_user
from src.auth.models import User
from src.capture.registry import CaptureJobRegistry
from src.capture.service import CaptureService
from src.database import get_db
from src.evidence.storage import get_blob_storage
from src.llm.provider import get_evidence_provider, get_extraction_provider


def get_capture_registry(request: Request) -> CaptureJobRegistry:
    return request.app.state.capture_registry


def get_storage():
    return get_blob_storage()


def get_extraction_provider_dep():
    return get_extraction_provider()


def get_evidence_provider_dep():
    return get_evidence_provider()


async def get_capture_service(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
    registry: CaptureJobRegistry = Depends(get_capture_registry),
    storage=Depends(get_storage),
    extraction_provider=Depends(get_extraction_provider_dep),
    evidence_provider=Depends(get_evidence_provider_dep),
) -> CaptureService:
    return CaptureService(
        db,
        current_user,
        extraction_provider=extraction_provider,
        evidence_provider=evidence_provider,
        storage=storage,
        registry=registry,
    )

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth.dependencies import get_current_active_user
from src.auth.models import User
from src.database import get_db
from src.timeline.models import ActionItemStatus
from src.timeline.schemas import ActionItemResponse, LinkedEvidence, TimelineEventResponse
from src.timeline.service import TimelineService

router = APIRouter(prefix="/timeline", tags=["timeline"])


@router.get("/events", response_model=List[TimelineEventResponse])
async def list_events(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """The acting user's timeline, newest first."""
    service = TimelineService(db, current_user.id)
    events = await service.list_events(limit=limit, offset=offset)
    links = await service.linked_evidence([e.id for e in events])
    responses = []
    for event in events:
        response = TimelineEventResponse.model_validate(event)
        response.evidence = [LinkedEvidence(**link) for link in links.get(event.id, [])]
        responses.append(response)
    return responses


@router.get("/action-items", response_model=List[ActionItemResponse])
async def list_action_items(
    status: Optional[ActionItemStatus] = None,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    service = TimelineService(db, current_user.id)
    return await service.list_action_items(status)

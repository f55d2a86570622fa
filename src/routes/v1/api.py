from fastapi import APIRouter

from src.capture.router import router as capture_router
from src.timeline.router import router as timeline_router

api_router = APIRouter()

api_router.include_router(capture_router)
api_router.include_router(timeline_router)

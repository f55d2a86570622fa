import os

# Point settings at an in-memory database before anything imports src.database.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Callable, Dict, List, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.main import app
from src.database import get_db, Base
from src.auth.models import User
from src.auth.security import create_access_token
from src.billing.models import Subscription, UsageCounter  # noqa: F401
from src.cases.models import Case  # noqa: F401
from src.capture.dependencies import (
    get_evidence_provider_dep,
    get_extraction_provider_dep,
    get_storage,
)
from src.capture.models import Capture  # noqa: F401
from src.capture.registry import CaptureJobRegistry
from src.capture.service import CaptureService
from src.evidence.models import Evidence, CaptureEvidence  # noqa: F401
from src.evidence.storage import StorageError
from src.timeline.models import TimelineEvent, CaptureCommit  # noqa: F401

FIXED_NOW = datetime(2024, 11, 20, 18, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return FIXED_NOW


# ---------------------------------------------------------------------------
# Extraction payload builders
# ---------------------------------------------------------------------------

def make_event(**overrides) -> Dict[str, Any]:
    event = {
        "type": "positive",
        "title": "Pickup on schedule",
        "description": "Co-parent picked up the child at 3:30pm as scheduled.",
        "primary_timestamp": "2024-11-20T15:30:00-06:00",
        "timestamp_precision": "exact",
        "duration_minutes": None,
        "location": "School",
        "participants": {"primary": ["co-parent", "child"], "witnesses": [], "professionals": []},
        "child_involved": True,
        "evidence_mentioned": [],
        "patterns_noted": [],
        "custody_relevance": {
            "agreement_violation": False,
            "safety_concern": False,
            "welfare_impact": "positive",
        },
    }
    event.update(overrides)
    return event


def make_action_item(**overrides) -> Dict[str, Any]:
    item = {
        "priority": "high",
        "type": "obtain",
        "description": "Obtain insurance card",
        "deadline": None,
    }
    item.update(overrides)
    return item


def make_extraction(events=None, action_items=None, confidence: Optional[float] = 0.9) -> Dict[str, Any]:
    return {
        "events": [make_event()] if events is None else events,
        "action_items": [] if action_items is None else action_items,
        "metadata": {"extraction_confidence": confidence, "ambiguities": []},
    }


def make_analysis(summary: str = "Screenshot of a text message about pickup.") -> Dict[str, Any]:
    return {
        "summary": summary,
        "key_facts": [{"fact": "Pickup at 3:30pm", "confidence": "high"}],
        "timestamps": [],
        "quotes": [],
        "people_mentioned": ["co-parent"],
        "relevance": {
            "child_related": True,
            "agreement_related": False,
            "safety_related": False,
            "communication_type": "text",
        },
        "suggested_tags": ["pickup"],
    }


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeProvider:
    """Records every call; answers from a list, a callable, or raises."""

    def __init__(self, responses=None, error: Optional[Exception] = None):
        self.responses: List[Any] = list(responses or [])
        self.error = error
        self.calls: List[Dict[str, Any]] = []
        self.on_call: Optional[Callable[[], Any]] = None

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def call(self, messages, schema):
        self.calls.append({"messages": list(messages), "schema": schema})
        if self.on_call is not None:
            await self.on_call()
        if self.error is not None:
            raise self.error
        if not self.responses:
            raise AssertionError("FakeProvider ran out of responses")
        response = self.responses[0] if len(self.responses) == 1 else self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response(messages) if callable(response) else response


class FakeStorage:
    """In-memory blob storage. ``fail_on`` holds 1-based put() call numbers that fail."""

    def __init__(self, fail_on=()):
        self.objects: Dict[str, bytes] = {}
        self.fail_on = set(fail_on)
        self.put_calls = 0

    async def put(self, data: bytes, path: str, content_type: Optional[str] = None) -> str:
        self.put_calls += 1
        if self.put_calls in self.fail_on:
            raise StorageError(f"simulated failure storing {path}")
        self.objects[path] = data
        return path

    async def signed_url(self, reference: str, ttl: int) -> str:
        return f"https://storage.test/{reference}?ttl={ttl}"


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(scope="function")
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(db_engine):
    return sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    async with session_factory() as session:
        yield session


async def _create_user(db: AsyncSession, email: str, full_name: str) -> User:
    user = User(email=email, full_name=full_name, timezone="America/Chicago", is_active=True)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest_asyncio.fixture
async def user_a(db_session) -> User:
    return await _create_user(db_session, "alex@example.com", "Alex Rivera")


@pytest_asyncio.fixture
async def user_b(db_session) -> User:
    return await _create_user(db_session, "blair@example.com", "Blair Chen")


@pytest.fixture
def extraction_provider() -> FakeProvider:
    return FakeProvider([make_extraction()])


@pytest.fixture
def evidence_provider() -> FakeProvider:
    return FakeProvider([make_analysis()])


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def registry() -> CaptureJobRegistry:
    return CaptureJobRegistry()


@pytest.fixture
def make_service(db_session, extraction_provider, evidence_provider, storage, registry):
    def _make(user: User, db: Optional[AsyncSession] = None) -> CaptureService:
        return CaptureService(
            db or db_session,
            user,
            extraction_provider=extraction_provider,
            evidence_provider=evidence_provider,
            storage=storage,
            registry=registry,
            clock=fixed_clock,
        )
    return _make


def auth_headers(user: User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}


@pytest_asyncio.fixture(scope="function")
async def async_client(db_session, extraction_provider, evidence_provider, storage) -> AsyncGenerator[AsyncClient, None]:
    """Client for testing API endpoints."""
    # Override the get_db dependency to use our test session
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_extraction_provider_dep] = lambda: extraction_provider
    app.dependency_overrides[get_evidence_provider_dep] = lambda: evidence_provider
    app.dependency_overrides[get_storage] = lambda: storage
    app.state.capture_registry = CaptureJobRegistry()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()

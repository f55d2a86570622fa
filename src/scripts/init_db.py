import asyncio
from src.database import engine, Base

# Import all models to ensure they are registered in Base.metadata
from src.auth.models import User
from src.billing.models import Subscription, UsageCounter
from src.cases.models import Case
from src.capture.models import Capture
from src.evidence.models import Evidence, CaptureEvidence
from src.timeline.models import TimelineEvent, Pattern, ActionItem, CaptureCommit

async def init_models():
    async with engine.begin() as conn:
        # await conn.run_sync(Base.metadata.drop_all) # Optional: Reset DB
        await conn.run_sync(Base.metadata.create_all)
    print("Database tables created.")

if __name__ == "__main__":
    asyncio.run(init_models())

from typing import Optional
from uuid import UUID

from sqlalchemy import desc
from sqlalchemy.ext.asyncio import AsyncSession

from src.cases.models import Case
from src.shared.tenancy import TenantScope


class CaseService:
    def __init__(self, db: AsyncSession, user_id: UUID):
        self.db = db
        self.scope = TenantScope(db, user_id)

    async def get_latest_case(self) -> Optional[Case]:
        """Most recently created case for the acting user, if any."""
        result = await self.db.execute(
            self.scope.select(Case).order_by(desc(Case.created_at)).limit(1)
        )
        return result.scalars().first()

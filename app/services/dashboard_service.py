from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from app.models.skill import SkillOffered, SkillWanted
from app.models.match import ConnectionStatus
from app.services.connection_service import ConnectionService
from app.db.session import store_guard
from typing import Dict
import uuid


class DashboardService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.connection_service = ConnectionService(session)

    async def _count_skills(self, model, user_id: uuid.UUID) -> int:
        async with store_guard(self.session, "skill count"):
            result = await self.session.execute(
                select(func.count(model.id)).where(model.user_id == user_id)
            )
            return result.scalar() or 0

    async def get_stats(self, user_id: uuid.UUID) -> Dict[str, int]:
        return {
            "skills_offered": await self._count_skills(SkillOffered, user_id),
            "skills_wanted": await self._count_skills(SkillWanted, user_id),
            "active_matches": await self.connection_service.count_for_user(
                user_id, status=ConnectionStatus.ACCEPTED.value
            ),
        }

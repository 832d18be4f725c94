from dataclasses import dataclass, field
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from app.models.skill import SkillOffered, SkillWanted
from app.db.session import store_guard
from app.core.errors import ValidationError, NotFoundError
from app.config.constants import (
    SKILL_KIND_OFFERED,
    SKILL_KIND_WANTED,
    SKILL_KINDS,
    MAX_SKILL_NAME_LENGTH,
    MAX_SEARCH_QUERY_LENGTH,
)
from typing import Dict, FrozenSet, Iterable, List, Optional, Set
import uuid
import logging

logger = logging.getLogger(__name__)


def normalize_skill(name: str) -> str:
    return (name or "").strip().casefold()


@dataclass(frozen=True)
class SkillIndex:
    """Case-folded, trimmed offered/wanted sets for one user. No synonym merging."""
    offered: FrozenSet[str] = field(default_factory=frozenset)
    wanted: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def from_names(cls, offered: Iterable[str] = (), wanted: Iterable[str] = ()) -> "SkillIndex":
        return cls(
            offered=frozenset(n for n in map(normalize_skill, offered) if n),
            wanted=frozenset(n for n in map(normalize_skill, wanted) if n),
        )


def _model_for(kind: str):
    if kind == SKILL_KIND_OFFERED:
        return SkillOffered
    if kind == SKILL_KIND_WANTED:
        return SkillWanted
    raise ValidationError(f"Unknown skill kind: {kind}")


class SkillService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _names(self, model, user_id: uuid.UUID) -> List[str]:
        async with store_guard(self.session, "skill read"):
            result = await self.session.execute(
                select(model.skill_name).where(model.user_id == user_id)
            )
            return list(result.scalars().all())

    async def offered(self, user_id: uuid.UUID) -> Set[str]:
        return set(SkillIndex.from_names(offered=await self._names(SkillOffered, user_id)).offered)

    async def wanted(self, user_id: uuid.UUID) -> Set[str]:
        return set(SkillIndex.from_names(wanted=await self._names(SkillWanted, user_id)).wanted)

    async def get_index(self, user_id: uuid.UUID) -> SkillIndex:
        return SkillIndex.from_names(
            offered=await self._names(SkillOffered, user_id),
            wanted=await self._names(SkillWanted, user_id),
        )

    async def get_skill_rows(self, user_id: uuid.UUID, kind: str) -> list:
        model = _model_for(kind)
        async with store_guard(self.session, "skill read"):
            result = await self.session.execute(
                select(model).where(model.user_id == user_id).order_by(model.created_at)
            )
            return result.scalars().all()

    async def get_raw_names(self, user_ids: Optional[Iterable[uuid.UUID]] = None) -> Dict[uuid.UUID, Dict[str, List[str]]]:
        """
        Display names grouped by user, original casing kept.

        Both tables are read independently and merged in memory on user_id.
        """
        ids = list(user_ids) if user_ids is not None else None
        if ids is not None and not ids:
            return {}
        grouped: Dict[uuid.UUID, Dict[str, List[str]]] = {}

        for kind, model in ((SKILL_KIND_OFFERED, SkillOffered), (SKILL_KIND_WANTED, SkillWanted)):
            stmt = select(model.user_id, model.skill_name)
            if ids is not None:
                stmt = stmt.where(model.user_id.in_(ids))
            async with store_guard(self.session, "skill read"):
                result = await self.session.execute(stmt)
                rows = result.all()
            for user_id, skill_name in rows:
                entry = grouped.setdefault(user_id, {SKILL_KIND_OFFERED: [], SKILL_KIND_WANTED: []})
                if skill_name not in entry[kind]:
                    entry[kind].append(skill_name)

        return grouped

    async def add_skill(self, user_id: uuid.UUID, skill_name: str, kind: str):
        model = _model_for(kind)
        clean_name = (skill_name or "").strip()
        if not clean_name:
            raise ValidationError("Skill name must not be empty")
        if len(clean_name) > MAX_SKILL_NAME_LENGTH:
            raise ValidationError(f"Skill name must be at most {MAX_SKILL_NAME_LENGTH} characters")

        row = model(user_id=user_id, skill_name=clean_name)
        async with store_guard(self.session, "skill insert"):
            self.session.add(row)
            await self.session.commit()
            await self.session.refresh(row)
        return row

    async def remove_skill(self, user_id: uuid.UUID, skill_id: uuid.UUID, kind: str) -> None:
        model = _model_for(kind)
        async with store_guard(self.session, "skill delete"):
            result = await self.session.execute(
                delete(model).where(model.id == skill_id, model.user_id == user_id)
            )
            if not result.rowcount:
                await self.session.rollback()
                raise NotFoundError("Skill not found")
            await self.session.commit()

    async def find_users_offering(self, skill: str, exclude_user_id: uuid.UUID) -> Dict[uuid.UUID, List[str]]:
        """Users whose offered skills contain ``skill`` (case-insensitive), with those skills."""
        query_str = (skill or "").strip()
        if not query_str:
            raise ValidationError("Skill must not be empty")
        if len(query_str) > MAX_SEARCH_QUERY_LENGTH:
            raise ValidationError("Skill query too long")

        # Escape LIKE wildcards so they match literally
        sanitized = query_str.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        stmt = select(SkillOffered.user_id, SkillOffered.skill_name).where(
            SkillOffered.skill_name.ilike(f"%{sanitized}%", escape="\\"),
            SkillOffered.user_id != exclude_user_id,
        )
        async with store_guard(self.session, "skill search"):
            result = await self.session.execute(stmt)
            rows = result.all()

        offering: Dict[uuid.UUID, List[str]] = {}
        for user_id, skill_name in rows:
            offering.setdefault(user_id, []).append(skill_name)
        return offering

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from app.models.profile import Profile
from app.schemas.profile import ProfileSummary
from app.services.skill_service import SkillService
from app.db.session import store_guard
from app.core.errors import ConflictError, ValidationError
from app.config.constants import (
    SKILL_KIND_OFFERED,
    SKILL_KIND_WANTED,
    MAX_FULL_NAME_LENGTH,
    MAX_BIO_LENGTH,
    MAX_LOCATION_LENGTH,
    MAX_AVATAR_URL_LENGTH,
    AVATAR_URL_SCHEMES,
)
from typing import Dict, Iterable, List, Optional
import uuid
import logging

logger = logging.getLogger(__name__)


def _optional_text(value: Optional[str], field: str, max_length: int) -> Optional[str]:
    text = (value or "").strip()
    if len(text) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return text or None


class ProfileService:
    """
    Access to user profiles.

    Profiles and skills are fetched by independent queries and merged in memory
    on ``user_id``; the store is never asked to join.
    """
    def __init__(self, session: AsyncSession):
        """
        Args:
            session: SQLAlchemy AsyncSession for database operations.
        """
        self.session = session
        self.skill_service = SkillService(session)

    async def get_profile(self, user_id: uuid.UUID) -> Optional[Profile]:
        async with store_guard(self.session, "profile read"):
            result = await self.session.execute(select(Profile).where(Profile.user_id == user_id))
            return result.scalar_one_or_none()

    async def get_profiles(
        self,
        user_ids: Optional[Iterable[uuid.UUID]] = None,
        exclude_user_id: Optional[uuid.UUID] = None,
    ) -> List[Profile]:
        """
        Args:
            user_ids: Restrict to these users. None means everybody.
            exclude_user_id: Usually the requester.

        Returns:
            Profiles in creation order, the scan order used by the matcher.
        """
        stmt = select(Profile)
        if user_ids is not None:
            ids = list(user_ids)
            if not ids:
                return []
            stmt = stmt.where(Profile.user_id.in_(ids))
        if exclude_user_id is not None:
            stmt = stmt.where(Profile.user_id != exclude_user_id)
        stmt = stmt.order_by(Profile.created_at, Profile.id)

        async with store_guard(self.session, "profile read"):
            result = await self.session.execute(stmt)
            return result.scalars().all()

    @staticmethod
    def merge(profile: Profile, skill_names: Optional[Dict[str, List[str]]] = None) -> ProfileSummary:
        names = skill_names or {}
        return ProfileSummary(
            user_id=profile.user_id,
            full_name=profile.full_name,
            bio=profile.bio,
            location=profile.location,
            avatar_url=profile.avatar_url,
            skills_offered=list(names.get(SKILL_KIND_OFFERED, [])),
            skills_wanted=list(names.get(SKILL_KIND_WANTED, [])),
        )

    async def get_summary(self, user_id: uuid.UUID) -> ProfileSummary:
        profile = await self.get_profile(user_id)
        grouped = await self.skill_service.get_raw_names([user_id])
        if profile is None:
            # Users may have skills before they fill in a profile
            names = grouped.get(user_id, {})
            return ProfileSummary(
                user_id=user_id,
                skills_offered=names.get(SKILL_KIND_OFFERED, []),
                skills_wanted=names.get(SKILL_KIND_WANTED, []),
            )
        return self.merge(profile, grouped.get(user_id))

    async def get_summaries(self, user_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, ProfileSummary]:
        ids = list(user_ids)
        profiles = await self.get_profiles(ids)
        grouped = await self.skill_service.get_raw_names(ids)
        return {p.user_id: self.merge(p, grouped.get(p.user_id)) for p in profiles}

    async def upsert_profile(
        self,
        user_id: uuid.UUID,
        full_name: str,
        bio: Optional[str] = None,
        location: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> Profile:
        """
        Create the caller's profile or overwrite its editable fields.

        Blank optional fields are stored as NULL. A profile row is what makes a
        user visible to the matcher.

        Raises:
            ValidationError: blank name, oversized field or non-http avatar URL.
            ConflictError: a concurrent first save for the same user won.
        """
        name = (full_name or "").strip()
        if not name:
            raise ValidationError("Full name must not be empty")
        if len(name) > MAX_FULL_NAME_LENGTH:
            raise ValidationError(f"Full name must be at most {MAX_FULL_NAME_LENGTH} characters")
        clean_bio = _optional_text(bio, "Bio", MAX_BIO_LENGTH)
        clean_location = _optional_text(location, "Location", MAX_LOCATION_LENGTH)
        clean_avatar = _optional_text(avatar_url, "Avatar URL", MAX_AVATAR_URL_LENGTH)
        if clean_avatar and not clean_avatar.lower().startswith(AVATAR_URL_SCHEMES):
            raise ValidationError("Avatar URL must start with http:// or https://")

        profile = await self.get_profile(user_id)
        created = profile is None
        if created:
            profile = Profile(id=uuid.uuid4(), user_id=user_id, full_name=name)

        async with store_guard(self.session, "profile write"):
            profile.full_name = name
            profile.bio = clean_bio
            profile.location = clean_location
            profile.avatar_url = clean_avatar
            try:
                if created:
                    self.session.add(profile)
                await self.session.commit()
            except IntegrityError:
                await self.session.rollback()
                raise ConflictError("Profile was created concurrently, retry the update")
            await self.session.refresh(profile)

        logger.info(f"Profile {'created' if created else 'updated'} for {user_id}")
        return profile

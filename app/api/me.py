"""Endpoints for the caller's own dashboard, profile and skill lists."""
import logging
import uuid
from typing import Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel, field_validator
from app.db.session import AsyncSessionLocal
from app.api.auth import require_user
from app.services.dashboard_service import DashboardService
from app.services.profile_service import ProfileService
from app.services.skill_service import SkillService
from app.core.errors import NotFoundError
from app.config.constants import SKILL_KINDS, SKILL_KIND_OFFERED, SKILL_KIND_WANTED

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/me", tags=["me"])


class AddSkillRequest(BaseModel):
    skill_name: str
    kind: str

    @field_validator("kind")
    @classmethod
    def check_kind(cls, v: str) -> str:
        if v not in SKILL_KINDS:
            raise ValueError(f"kind must be one of {', '.join(SKILL_KINDS)}")
        return v


class ProfileUpdateRequest(BaseModel):
    full_name: str
    bio: Optional[str] = None
    location: Optional[str] = None
    avatar_url: Optional[str] = None


def _profile_out(profile) -> dict:
    return {
        "user_id": str(profile.user_id),
        "full_name": profile.full_name,
        "bio": profile.bio,
        "location": profile.location,
        "avatar_url": profile.avatar_url,
        "updated_at": profile.updated_at.isoformat() if profile.updated_at else None,
    }


def _skill_out(row) -> dict:
    return {"id": str(row.id), "skill_name": row.skill_name}


@router.get("/stats")
async def get_stats(user_id: uuid.UUID = Depends(require_user)):
    async with AsyncSessionLocal() as session:
        return await DashboardService(session).get_stats(user_id)


@router.get("/profile")
async def get_profile(user_id: uuid.UUID = Depends(require_user)):
    async with AsyncSessionLocal() as session:
        profile = await ProfileService(session).get_profile(user_id)
    if profile is None:
        raise NotFoundError("Profile not created yet")
    return _profile_out(profile)


@router.put("/profile")
async def update_profile(req: ProfileUpdateRequest, user_id: uuid.UUID = Depends(require_user)):
    async with AsyncSessionLocal() as session:
        profile = await ProfileService(session).upsert_profile(
            user_id,
            req.full_name,
            bio=req.bio,
            location=req.location,
            avatar_url=req.avatar_url,
        )
    return _profile_out(profile)


@router.get("/skills")
async def get_skills(user_id: uuid.UUID = Depends(require_user)):
    async with AsyncSessionLocal() as session:
        skill_service = SkillService(session)
        offered = await skill_service.get_skill_rows(user_id, SKILL_KIND_OFFERED)
        wanted = await skill_service.get_skill_rows(user_id, SKILL_KIND_WANTED)

    return {
        "offered": [_skill_out(s) for s in offered],
        "wanted": [_skill_out(s) for s in wanted],
    }


@router.post("/skills", status_code=201)
async def add_skill(req: AddSkillRequest, user_id: uuid.UUID = Depends(require_user)):
    async with AsyncSessionLocal() as session:
        row = await SkillService(session).add_skill(user_id, req.skill_name, req.kind)
    return {"kind": req.kind, **_skill_out(row)}


@router.delete("/skills/{kind}/{skill_id}")
async def remove_skill(kind: str, skill_id: uuid.UUID, user_id: uuid.UUID = Depends(require_user)):
    async with AsyncSessionLocal() as session:
        await SkillService(session).remove_skill(user_id, skill_id, kind)
    return {"status": "ok"}

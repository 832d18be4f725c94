"""Candidate discovery, AI mentor search and match reasons."""
import logging
import uuid
from collections import Counter
from typing import List
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from app.db.session import AsyncSessionLocal
from app.api.auth import require_user
from app.schemas.matching import Candidate, ScoredCandidate
from app.services.match_service import MatchService
from app.services.reason_service import ReasonService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/matches", tags=["matches"])


class FindMentorsRequest(BaseModel):
    learner_skill: str


class ReasonRequest(BaseModel):
    user_id: uuid.UUID


def _candidate_out(c: Candidate) -> dict:
    return c.model_dump(mode="json")


def _mentor_out(c: ScoredCandidate) -> dict:
    return {
        "mentorId": str(c.candidate_user_id),
        "mentorName": c.full_name,
        "bio": c.bio or "",
        "location": c.location or "",
        "avatarUrl": c.avatar_url,
        "skillsOffered": c.skills_offered,
        "skillsWanted": c.skills_wanted,
        "matchPercentage": c.match_percentage,
        "explanation": c.explanation,
        "gradedBy": c.graded_by,
    }


@router.get("")
async def list_matches(user_id: uuid.UUID = Depends(require_user)):
    async with AsyncSessionLocal() as session:
        groups = await MatchService(session).list_candidates(user_id)

    return {
        "potential": [_candidate_out(c) for c in groups.potential],
        "existing": [_candidate_out(c) for c in groups.existing],
    }


@router.post("/ai")
async def find_ai_matches(req: FindMentorsRequest, user_id: uuid.UUID = Depends(require_user)):
    async with AsyncSessionLocal() as session:
        mentors: List[ScoredCandidate] = await MatchService(session).find_mentors(user_id, req.learner_skill)

    graded_by = Counter(m.graded_by for m in mentors)
    return {
        "matches": [_mentor_out(m) for m in mentors],
        "graded_by_counts": dict(graded_by),
    }


@router.post("/reason")
async def generate_reason(req: ReasonRequest, user_id: uuid.UUID = Depends(require_user)):
    async with AsyncSessionLocal() as session:
        reason = await ReasonService(session).generate_reason(user_id, req.user_id)
    return {"reason": reason}

from pydantic import BaseModel, Field
from typing import List, Optional, Literal
import uuid

from app.config.constants import GRADED_BY_AI, GRADED_BY_FALLBACK


class Candidate(BaseModel):
    """Unscored user surfaced by the overlap matcher."""
    user_id: uuid.UUID
    full_name: str = ""
    bio: Optional[str] = None
    location: Optional[str] = None
    avatar_url: Optional[str] = None
    skills_offered: List[str] = Field(default_factory=list)
    skills_wanted: List[str] = Field(default_factory=list)
    they_can_teach_me: bool = False
    i_can_teach_them: bool = False

    # Populated for users that already have a connection row with the requester
    connection_id: Optional[uuid.UUID] = None
    status: Optional[str] = None
    reason: Optional[str] = None


class CandidateGroups(BaseModel):
    potential: List[Candidate] = Field(default_factory=list)
    existing: List[Candidate] = Field(default_factory=list)


class ScoreResult(BaseModel):
    match_percentage: int = Field(ge=0, le=100)
    explanation: str
    graded_by: Literal["ai", "fallback"] = GRADED_BY_AI

    @property
    def is_fallback(self) -> bool:
        return self.graded_by == GRADED_BY_FALLBACK


class ScoredCandidate(BaseModel):
    """Ephemeral per-query result; only its explanation survives if the user connects."""
    candidate_user_id: uuid.UUID
    full_name: str = ""
    bio: Optional[str] = None
    location: Optional[str] = None
    avatar_url: Optional[str] = None
    skills_offered: List[str] = Field(default_factory=list)
    skills_wanted: List[str] = Field(default_factory=list)
    match_percentage: int = Field(ge=0, le=100)
    explanation: str
    graded_by: Literal["ai", "fallback"] = GRADED_BY_AI

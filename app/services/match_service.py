from sqlalchemy.ext.asyncio import AsyncSession
from app.models.match import Connection
from app.schemas.profile import ProfileSummary
from app.schemas.matching import Candidate, CandidateGroups, ScoredCandidate
from app.services.skill_service import SkillIndex, SkillService
from app.services.profile_service import ProfileService
from app.services.connection_service import ConnectionService
from app.services.scoring_service import ScoringService
from app.core.errors import ValidationError
from app.config.constants import SKILL_KIND_OFFERED, SKILL_KIND_WANTED
from typing import Iterable, List, Optional, Sequence, Tuple
import uuid
import logging

logger = logging.getLogger(__name__)


def they_can_teach_me(my_index: SkillIndex, their_index: SkillIndex) -> bool:
    """Their offered skills meet my wanted skills exactly (after case-folding)."""
    return not my_index.wanted.isdisjoint(their_index.offered)


def i_can_teach_them(my_index: SkillIndex, their_index: SkillIndex) -> bool:
    """
    Some skill I offer contains, or is contained in, a skill they want.

    Substring containment in both directions lets "guitar" meet "guitar lessons".
    """
    return any(
        wanted in offered or offered in wanted
        for offered in my_index.offered
        for wanted in their_index.wanted
    )


def find_candidates(
    me_id: uuid.UUID,
    my_index: SkillIndex,
    others: Sequence[Tuple[ProfileSummary, SkillIndex]],
    connections: Iterable[Connection] = (),
) -> CandidateGroups:
    """
    Compute candidate pairs for ``me_id`` in scan order.

    Pure function. Users that already share a connection row with me, in any
    status, are returned in ``existing`` instead of ``potential`` so the caller
    can show the pending/accepted state rather than a connect action.
    """
    by_other = {}
    for connection in connections:
        if connection.has_participant(me_id):
            by_other[connection.other_user_id(me_id)] = connection

    groups = CandidateGroups()
    for summary, their_index in others:
        if summary.user_id == me_id:
            continue

        teach_me = they_can_teach_me(my_index, their_index)
        teach_them = i_can_teach_them(my_index, their_index)
        if not (teach_me or teach_them):
            continue

        candidate = Candidate(
            user_id=summary.user_id,
            full_name=summary.full_name,
            bio=summary.bio,
            location=summary.location,
            avatar_url=summary.avatar_url,
            skills_offered=summary.skills_offered,
            skills_wanted=summary.skills_wanted,
            they_can_teach_me=teach_me,
            i_can_teach_them=teach_them,
        )

        connection = by_other.get(summary.user_id)
        if connection is not None:
            candidate.connection_id = connection.id
            candidate.status = connection.status
            candidate.reason = connection.reason
            groups.existing.append(candidate)
        else:
            groups.potential.append(candidate)

    return groups


class MatchService:
    def __init__(self, session: AsyncSession, scoring: Optional[ScoringService] = None):
        self.session = session
        self.skill_service = SkillService(session)
        self.profile_service = ProfileService(session)
        self.connection_service = ConnectionService(session)
        self._scoring = scoring

    @property
    def scoring(self) -> ScoringService:
        if self._scoring is None:
            self._scoring = ScoringService()
        return self._scoring

    async def list_candidates(self, user_id: uuid.UUID) -> CandidateGroups:
        """
        Overlap candidates for the user, split into potential and existing.

        Independent reads, merged in memory:
        profiles (all but me) x skills_offered x skills_wanted on user_id,
        then connections keyed on the other participant's user_id.
        """
        grouped = await self.skill_service.get_raw_names()
        mine = grouped.get(user_id, {})
        my_index = SkillIndex.from_names(mine.get(SKILL_KIND_OFFERED, []), mine.get(SKILL_KIND_WANTED, []))

        profiles = await self.profile_service.get_profiles(exclude_user_id=user_id)
        others = []
        for profile in profiles:
            names = grouped.get(profile.user_id, {})
            summary = ProfileService.merge(profile, names)
            others.append((summary, SkillIndex.from_names(summary.skills_offered, summary.skills_wanted)))

        connections = await self.connection_service.list_for_user(user_id)
        groups = find_candidates(user_id, my_index, others, connections)
        logger.info(
            f"Candidates for {user_id}: {len(groups.potential)} potential, {len(groups.existing)} existing"
        )
        return groups

    async def find_mentors(self, user_id: uuid.UUID, learner_skill: str) -> List[ScoredCandidate]:
        """
        AI mentor search: everyone offering a skill containing ``learner_skill``,
        graded by the scoring oracle and sorted best first.
        """
        skill = (learner_skill or "").strip()
        if not skill:
            raise ValidationError("learner_skill is required")

        offering = await self.skill_service.find_users_offering(skill, exclude_user_id=user_id)
        if not offering:
            logger.info(f"No users offering '{skill}'")
            return []

        mentor_ids = list(offering.keys())
        summaries = await self.profile_service.get_summaries(mentor_ids)
        # Keep the order in which the offering rows were scanned
        mentors: List[ProfileSummary] = [summaries[m] for m in mentor_ids if m in summaries]
        if not mentors:
            return []

        learner = await self.profile_service.get_summary(user_id)
        return await self.scoring.score_many(learner, skill, mentors)

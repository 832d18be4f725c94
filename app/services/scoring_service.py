from app.services.oracle_service import OracleService
from app.services.prompts import build_score_prompt, SCORING_SYSTEM_PROMPT
from app.services.skill_service import normalize_skill
from app.schemas.profile import ProfileSummary
from app.schemas.matching import ScoreResult, ScoredCandidate
from app.core.config import settings
from app.core.errors import OracleUnavailable, OracleRateLimited, OracleQuotaExceeded
from app.config.constants import (
    MIN_MATCH_PERCENTAGE,
    MAX_MATCH_PERCENTAGE,
    FALLBACK_BASE_SCORE,
    FALLBACK_OVERLAP_BONUS,
    FALLBACK_MAX_SCORE,
    FALLBACK_EXPLANATION,
    DEFAULT_EXPLANATION,
    GRADED_BY_AI,
    GRADED_BY_FALLBACK,
)
from typing import Any, Dict, List, Sequence
import asyncio
import math
import logging

logger = logging.getLogger(__name__)


def clamp_percentage(value: float) -> int:
    return int(max(MIN_MATCH_PERCENTAGE, min(MAX_MATCH_PERCENTAGE, round(value))))


def parse_score(payload: Dict[str, Any]) -> ScoreResult:
    """
    Turn an oracle payload into a clamped ScoreResult.

    Raises:
        OracleUnavailable: when the score is missing or not a finite number.
    """
    raw = payload.get("score")
    if raw is None:
        raw = payload.get("matchPercentage")
    if raw is None or isinstance(raw, bool):
        raise OracleUnavailable("Oracle response has no score")
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise OracleUnavailable(f"Oracle score is not numeric: {raw!r}")
    if not math.isfinite(value):
        raise OracleUnavailable("Oracle score is not finite")

    explanation = payload.get("explanation")
    if not isinstance(explanation, str) or not explanation.strip():
        explanation = DEFAULT_EXPLANATION

    return ScoreResult(
        match_percentage=clamp_percentage(value),
        explanation=explanation.strip(),
        graded_by=GRADED_BY_AI,
    )


def fallback_score(learner: ProfileSummary, learner_skill: str, mentor: ProfileSummary) -> ScoreResult:
    """
    Deterministic substitute used when the oracle is unavailable.

    Base score plus a bonus for every overlapping skill in either direction,
    capped below a perfect AI grade.
    """
    skill = normalize_skill(learner_skill)
    learner_wanted = {normalize_skill(s) for s in learner.skills_wanted} - {""}
    learner_offered = {normalize_skill(s) for s in learner.skills_offered} - {""}
    mentor_offered = {normalize_skill(s) for s in mentor.skills_offered} - {""}
    mentor_wanted = {normalize_skill(s) for s in mentor.skills_wanted} - {""}

    teach_overlap = sum(
        1 for o in mentor_offered
        if o in learner_wanted or (skill and (skill in o or o in skill))
    )
    learn_overlap = sum(
        1 for o in learner_offered
        if any(w in o or o in w for w in mentor_wanted)
    )

    value = min(FALLBACK_MAX_SCORE, FALLBACK_BASE_SCORE + FALLBACK_OVERLAP_BONUS * (teach_overlap + learn_overlap))
    return ScoreResult(
        match_percentage=clamp_percentage(value),
        explanation=FALLBACK_EXPLANATION.format(skill=learner_skill.strip()),
        graded_by=GRADED_BY_FALLBACK,
    )


class ScoringService:
    def __init__(self, oracle: OracleService = None, max_concurrency: int = None):
        self.oracle = oracle or OracleService()
        self.max_concurrency = max_concurrency or settings.ORACLE_MAX_CONCURRENCY

    async def score(self, learner: ProfileSummary, learner_skill: str, mentor: ProfileSummary) -> ScoreResult:
        """
        Grade one learner/mentor pair.

        OracleUnavailable is absorbed into a fallback score; rate-limit and
        quota errors propagate so the user sees them.
        """
        prompt = build_score_prompt(learner, learner_skill, mentor)
        try:
            payload = await self.oracle.complete_json(prompt, system_prompt=SCORING_SYSTEM_PROMPT)
            return parse_score(payload)
        except OracleUnavailable as e:
            logger.warning(f"Falling back to heuristic score for mentor {mentor.user_id}: {e.message}")
            return fallback_score(learner, learner_skill, mentor)

    async def score_many(
        self,
        learner: ProfileSummary,
        learner_skill: str,
        mentors: Sequence[ProfileSummary],
    ) -> List[ScoredCandidate]:
        """
        Grade all mentors concurrently, then sort by percentage descending.

        Ties keep scan order. Completion order is irrelevant since sorting
        happens only after every call has finished.
        """
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _bounded(mentor: ProfileSummary) -> ScoreResult:
            async with semaphore:
                return await self.score(learner, learner_skill, mentor)

        results = await asyncio.gather(*(_bounded(m) for m in mentors), return_exceptions=True)

        surfaced = [r for r in results if isinstance(r, BaseException)]
        if surfaced:
            # Quota is terminal, so it wins over a transient rate limit
            for error in surfaced:
                if isinstance(error, OracleQuotaExceeded):
                    raise error
            for error in surfaced:
                if isinstance(error, OracleRateLimited):
                    raise error
            raise surfaced[0]

        scored = [
            (index, ScoredCandidate(
                candidate_user_id=mentor.user_id,
                full_name=mentor.full_name,
                bio=mentor.bio,
                location=mentor.location,
                avatar_url=mentor.avatar_url,
                skills_offered=mentor.skills_offered,
                skills_wanted=mentor.skills_wanted,
                match_percentage=result.match_percentage,
                explanation=result.explanation,
                graded_by=result.graded_by,
            ))
            for index, (mentor, result) in enumerate(zip(mentors, results))
        ]
        scored.sort(key=lambda item: (-item[1].match_percentage, item[0]))
        return [candidate for _, candidate in scored]

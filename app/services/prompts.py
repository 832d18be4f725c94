"""Prompt templates for the scoring oracle."""
import json

from app.config.constants import (
    RUBRIC_SKILL_EXPERTISE,
    RUBRIC_MUTUAL_BENEFIT,
    RUBRIC_COMPATIBILITY,
    RUBRIC_PROXIMITY,
    RUBRIC_EXPERIENCE,
    MAX_MENTOR_BIO_LENGTH,
)
from app.schemas.profile import ProfileSummary

SCORING_SYSTEM_PROMPT = (
    "You are an expert AI matching system for a skill-sharing platform. "
    "You grade learner/mentor pairs with a fixed 100-point rubric and answer with JSON only."
)

REASON_SYSTEM_PROMPT = (
    "You are a friendly matchmaker for a skill exchange platform. "
    "Keep responses concise and encouraging."
)


def build_score_prompt(learner: ProfileSummary, learner_skill: str, mentor: ProfileSummary) -> str:
    learner_profile = {
        "bio": learner.bio or "",
        "location": learner.location or "",
        "skillsOffered": learner.skills_offered,
        "skillsWanted": learner.skills_wanted,
    }
    mentor_bio = (mentor.bio or "No bio provided")[:MAX_MENTOR_BIO_LENGTH]

    return f"""Analyze compatibility between a learner and a potential mentor using a 100-point scoring system.

**LEARNER PROFILE:**
- Desired skill: {learner_skill}
- Additional profile: {json.dumps(learner_profile, ensure_ascii=False)}

**MENTOR PROFILE:**
- Name: {mentor.full_name}
- Bio: {mentor_bio}
- Location: {mentor.location or "Not specified"}
- Skills they teach: {json.dumps(mentor.skills_offered, ensure_ascii=False)}
- Skills they want to learn: {json.dumps(mentor.skills_wanted, ensure_ascii=False)}

**SCORING CRITERIA (Total: 100 points):**

1. **SKILL EXPERTISE ({RUBRIC_SKILL_EXPERTISE} points max):**
   - Does the mentor list "{learner_skill}" in the skills they teach? (+20 points)
   - Does the bio indicate expertise or experience in "{learner_skill}"? (+10 points)
   - Does the bio mention teaching, mentoring or sharing knowledge? (+10 points)

2. **MUTUAL BENEFIT ({RUBRIC_MUTUAL_BENEFIT} points max):**
   - Does the learner have skills the mentor wants to learn? (+15 points)
   - Is there overlap between the learner's offered skills and the mentor's wanted skills? (+15 points)

3. **COMPATIBILITY ({RUBRIC_COMPATIBILITY} points max):**
   - Similar interests mentioned in bio (+5 points)
   - Complementary personality or learning styles (+5 points)
   - Similar teaching/learning philosophy (+5 points)

4. **LOCATION/PROXIMITY ({RUBRIC_PROXIMITY} points max):**
   - Same city/area = {RUBRIC_PROXIMITY} points
   - Same region/state = {RUBRIC_PROXIMITY // 2} points
   - Different location = 0 points (online learning still possible)

5. **EXPERIENCE MATCHING ({RUBRIC_EXPERIENCE} points max):**
   - Mentor experience level suitable for the learner's needs (+3 points)
   - Beginner-friendly indicators (+2 points)

**INSTRUCTIONS:**
- Focus on the potential for a positive learning exchange
- Consider online learning even for distant locations
- A good match doesn't need to be perfect in all categories

**OUTPUT FORMAT:**
Return ONLY valid JSON with no markdown, preamble, or additional text:
{{
  "score": <number 0-100>,
  "explanation": "<2-3 sentence explanation of the match quality and key reasons>"
}}"""


def build_reason_prompt(user_1: ProfileSummary, user_2: ProfileSummary) -> str:
    def _skills(names):
        return ", ".join(names) or "None listed"

    return f"""Explain why these two people would make great skill swap partners.

User 1 ({user_1.full_name or "User 1"}):
- Can teach: {_skills(user_1.skills_offered)}
- Wants to learn: {_skills(user_1.skills_wanted)}

User 2 ({user_2.full_name or "User 2"}):
- Can teach: {_skills(user_2.skills_offered)}
- Wants to learn: {_skills(user_2.skills_wanted)}

Write a short, friendly, and encouraging explanation (1-2 sentences) about why these two would be great skill swap partners. Focus on the complementary skills they can exchange. Be specific about which skills match up."""

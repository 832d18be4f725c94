"""
Application Constants

This module contains all magic strings and numbers used throughout the application.
Centralizing constants makes the codebase more maintainable and easier to update.
"""

# ============================================================================
# Skill Constants
# ============================================================================

SKILL_KIND_OFFERED = "offered"
SKILL_KIND_WANTED = "wanted"
SKILL_KINDS = (SKILL_KIND_OFFERED, SKILL_KIND_WANTED)

MAX_SKILL_NAME_LENGTH = 100

# ============================================================================
# Profile Constants
# ============================================================================

MAX_FULL_NAME_LENGTH = 255
MAX_LOCATION_LENGTH = 255
MAX_AVATAR_URL_LENGTH = 500
MAX_BIO_LENGTH = 2000
AVATAR_URL_SCHEMES = ("http://", "https://")

# ============================================================================
# Scoring Rubric (points, sums to 100)
# ============================================================================

RUBRIC_SKILL_EXPERTISE = 40
RUBRIC_MUTUAL_BENEFIT = 30
RUBRIC_COMPATIBILITY = 15
RUBRIC_PROXIMITY = 10
RUBRIC_EXPERIENCE = 5

MIN_MATCH_PERCENTAGE = 0
MAX_MATCH_PERCENTAGE = 100

# ============================================================================
# Fallback Scoring
# ============================================================================

# Deterministic substitute when the oracle is unavailable:
# base + bonus per overlapping skill, capped
FALLBACK_BASE_SCORE = 50
FALLBACK_OVERLAP_BONUS = 10
FALLBACK_MAX_SCORE = 90
FALLBACK_EXPLANATION = "Offers {skill} skills that match your interests."

DEFAULT_MATCH_REASON = "These users have complementary skills that could lead to a great exchange!"
DEFAULT_EXPLANATION = "No explanation provided"

GRADED_BY_AI = "ai"
GRADED_BY_FALLBACK = "fallback"

# ============================================================================
# Oracle Constants
# ============================================================================

ORACLE_PROVIDER_GEMINI = "gemini"
ORACLE_PROVIDER_OPENAI = "openai"

# HTTP status signals from the oracle
ORACLE_STATUS_RATE_LIMITED = 429
ORACLE_STATUS_PAYMENT_REQUIRED = 402

# Provider messages that turn a 429 into quota exhaustion
ORACLE_QUOTA_MARKERS = ("insufficient_quota", "exceeded your current quota", "billing", "usage limit")

MAX_MENTOR_BIO_LENGTH = 2000

# ============================================================================
# Chat Constants
# ============================================================================

MAX_MESSAGE_LENGTH = 4000
MESSAGE_CHANNEL_PREFIX = "messages"
LOCAL_FEED_QUEUE_SIZE = 1000

# Fallback polling interval for clients without a live feed
CHAT_REFETCH_INTERVAL_SECONDS = 5

# ============================================================================
# Search Constants
# ============================================================================

MAX_SEARCH_QUERY_LENGTH = 100

"""
Error taxonomy for the matching engine.

Every error carries a stable ``code`` and a ``retryable`` flag so the API layer
can render it without knowing the concrete class.
"""


class SkillSwapError(Exception):
    code = "error"
    retryable = False

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


# ----------------------------------------------------------------------------
# Declined operations: rejected before any state change
# ----------------------------------------------------------------------------

class ValidationError(SkillSwapError):
    code = "validation_error"


class EmptyContentError(ValidationError):
    code = "empty_content"


class PermissionDeniedError(ValidationError):
    code = "permission_denied"


class NotAuthenticatedError(SkillSwapError):
    code = "not_authenticated"


class NotFoundError(SkillSwapError):
    code = "not_found"


class ConflictError(SkillSwapError):
    code = "conflict"


class InvalidTransitionError(ConflictError):
    code = "invalid_transition"


class NotAcceptedError(ConflictError):
    code = "not_accepted"


# ----------------------------------------------------------------------------
# Oracle failures
# ----------------------------------------------------------------------------

class OracleError(SkillSwapError):
    code = "oracle_error"

    def __init__(self, message: str = "", status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class OracleUnavailable(OracleError):
    """Network error, timeout, 5xx or unparseable payload. Recovered by fallback."""
    code = "oracle_unavailable"


class OracleRateLimited(OracleError):
    code = "oracle_rate_limited"
    retryable = True


class OracleQuotaExceeded(OracleError):
    code = "oracle_quota_exceeded"


# ----------------------------------------------------------------------------
# Live feed
# ----------------------------------------------------------------------------

class LiveFeedUnavailable(SkillSwapError):
    """The live-update channel is down. Chat history still works."""
    code = "live_feed_unavailable"
    retryable = True


# ----------------------------------------------------------------------------
# Persistence
# ----------------------------------------------------------------------------

class StoreError(SkillSwapError):
    code = "store_error"

# utils/errors.py
"""
Error taxonomy shared by the session pipeline and the HTTP layer.

Every error carries a ``kind`` so callers can tell validation problems
(nothing was written), consistency failures (the transaction was rolled
back, safe to retry) and missing data apart.
"""

from typing import Any, Optional


class PipelineError(Exception):
    kind = "error"
    status_code = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        return {
            "success": False,
            "error": self.message,
            "kind": self.kind,
            "details": self.details,
        }


# -------------------------------
# Validation (always before any write)
# -------------------------------

class ValidationError(PipelineError):
    kind = "validation"
    status_code = 400


class EmptyInputError(ValidationError):
    pass


class MalformedSampleError(ValidationError):
    pass


class InvalidOrderError(ValidationError):
    pass


class InvalidScoreError(ValidationError):
    pass


class MeanScoreMismatchError(ValidationError):
    pass


class SampleCountError(ValidationError):
    pass


class InvalidPayloadError(ValidationError):
    @classmethod
    def from_pydantic(cls, exc):
        details = [
            {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg")}
            for err in exc.errors()
        ]
        return cls("Validation failed", details)


class DuplicateAccountError(ValidationError):
    status_code = 409


# -------------------------------
# Store-level failures
# -------------------------------

class ConsistencyError(PipelineError):
    kind = "consistency"
    status_code = 500


# -------------------------------
# Missing data
# -------------------------------

class NotFoundError(PipelineError):
    kind = "not_found"
    status_code = 404


class UserNotFoundError(NotFoundError):
    pass


class SessionNotFoundError(NotFoundError):
    pass


class AuthError(PipelineError):
    kind = "auth"
    status_code = 401

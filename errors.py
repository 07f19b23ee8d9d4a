"""Typed failures returned by allocation operations.

Every operation raises one of these at its boundary. Only
``StoreUnavailable`` is transient; the rest are permanent for the given
input and must not be retried unchanged.
"""

from __future__ import annotations


class AllocationError(Exception):
    kind = "AllocationError"
    retryable = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, object]:
        return {"kind": self.kind, "message": self.message, "retryable": self.retryable}


class DuplicateApplication(AllocationError):
    kind = "DuplicateApplication"


class QuotaExceeded(AllocationError):
    kind = "QuotaExceeded"


class UnderQualified(AllocationError):
    kind = "UnderQualified"


class AlreadyAdmittedAtInstitution(AllocationError):
    kind = "AlreadyAdmittedAtInstitution"


class PolicyViolation(AllocationError):
    kind = "PolicyViolation"


class NotFound(AllocationError):
    kind = "NotFound"


class Unauthorized(AllocationError):
    kind = "Unauthorized"


class StoreUnavailable(AllocationError):
    kind = "StoreUnavailable"
    retryable = True

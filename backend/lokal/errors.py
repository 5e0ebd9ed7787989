"""Domain error taxonomy shared by services, the CQRS buses, and routers."""

from __future__ import annotations


class LokalError(Exception):
    """Base class for errors surfaced to API callers with a stable code."""

    code = "internal_error"
    status_code = 500

    def __init__(self, message: str, *, details: dict[str, object] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class NotFoundError(LokalError):
    """Referenced branch, translation, key, or project does not exist."""

    code = "not_found"
    status_code = 404

    def __init__(self, resource: str, *, details: dict[str, object] | None = None) -> None:
        super().__init__(f"{resource} not found", details=details)
        self.resource = resource


class ForbiddenError(LokalError):
    """Actor lacks the project role required for the operation."""

    code = "forbidden"
    status_code = 403


class ValidationError(LokalError):
    """Malformed input rejected at an API or bus boundary."""

    code = "validation_error"
    status_code = 422


class InvalidMergeError(LokalError):
    """Branches cannot be compared or merged (same branch, different spaces)."""

    code = "invalid_merge"
    status_code = 409


class MergeConflictStaleError(LokalError):
    """Target branch changed after the diff was computed; the caller must re-diff."""

    code = "merge_stale"
    status_code = 409


class UnresolvedConflictError(LokalError):
    """Merge attempted while some conflicting keys have no resolution."""

    code = "unresolved_conflicts"
    status_code = 409

    def __init__(self, keys: list[str]) -> None:
        super().__init__(
            f"{len(keys)} conflict(s) require a resolution before merging",
            details={"keys": keys},
        )
        self.keys = keys


class EvaluationError(LokalError):
    """AI quality evaluation failed or returned an unusable response."""

    code = "evaluation_failed"
    status_code = 502

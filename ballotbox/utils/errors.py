"""Custom exception hierarchy for the BallotBox API."""

from __future__ import annotations


class AppError(Exception):
    """Base application error with a stable machine-readable code."""

    def __init__(self, message: str, code: str, status_code: int = 400) -> None:
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> dict[str, str]:
        """Serialize the error in the API standard shape."""
        return {"error": self.message, "code": self.code}


class ValidationError(AppError):
    """Raised for malformed input the caller can correct."""

    def __init__(self, reason: str) -> None:
        super().__init__(message=reason, code="VALIDATION_ERROR", status_code=400)


class NotFoundError(AppError):
    """Raised when a requested resource does not exist."""

    def __init__(self, resource: str) -> None:
        super().__init__(message=f"{resource} not found", code="NOT_FOUND", status_code=404)


class ForbiddenError(AppError):
    """Raised when the user lacks permission for the action."""

    def __init__(self, reason: str = "You don't have permission") -> None:
        super().__init__(message=reason, code="FORBIDDEN", status_code=403)


class ConflictError(AppError):
    """Raised on duplicate/conflicting operations."""

    def __init__(self, reason: str, code: str = "CONFLICT") -> None:
        super().__init__(message=reason, code=code, status_code=409)


class UnauthorizedError(AppError):
    """Raised when the caller is not authenticated."""

    def __init__(self, reason: str = "Unauthorized") -> None:
        super().__init__(message=reason, code="UNAUTHORIZED", status_code=401)


class InvalidTransitionError(ConflictError):
    """Raised when an election cannot move from its current status."""

    def __init__(self, current: str, target: str) -> None:
        super().__init__(
            reason=f"Election cannot move from {current} to {target}",
            code="INVALID_TRANSITION",
        )
        self.current = current
        self.target = target


InvalidTransition = InvalidTransitionError


class ImmutableStateError(ConflictError):
    """Raised when editing an election that has already started or finished."""

    def __init__(self, status: str) -> None:
        super().__init__(
            reason=f"Cannot update an election that is {status}",
            code="IMMUTABLE_STATE",
        )


class HasVotesError(ConflictError):
    """Raised when deleting an election that has recorded votes."""

    def __init__(self) -> None:
        super().__init__("Cannot delete election that has votes", code="HAS_VOTES")


class ElectionNotOpenError(AppError):
    """Raised when a vote arrives outside an open voting window."""

    def __init__(self, reason: str = "Election is not open for voting") -> None:
        super().__init__(message=reason, code="ELECTION_NOT_OPEN", status_code=400)


class ElectionNotFoundError(ElectionNotOpenError):
    """Missing elections are never open; reported as 404."""

    def __init__(self) -> None:
        super().__init__("Election not found")
        self.code = "NOT_FOUND"
        self.status_code = 404


class IneligibleVoterError(AppError):
    """Raised when the voter is unknown, inactive, or unverified."""

    def __init__(self, reason: str = "Voter is not eligible to vote") -> None:
        super().__init__(message=reason, code="INELIGIBLE_VOTER", status_code=403)


class DuplicateVoteError(ConflictError):
    """Raised when a voter already has a committed vote."""

    def __init__(self, reason: str = "You have already voted") -> None:
        super().__init__(reason, code="DUPLICATE_VOTE")


class CandidateNotFoundError(AppError):
    """Raised when the candidate does not belong to the election."""

    def __init__(self) -> None:
        super().__init__(
            message="Candidate not found", code="CANDIDATE_NOT_FOUND", status_code=404
        )


class ResultsUnavailableError(AppError):
    """Raised when results are hidden until the election completes."""

    def __init__(self) -> None:
        super().__init__(
            message="Results are not available yet",
            code="RESULTS_UNAVAILABLE",
            status_code=403,
        )


class PastDeadlineError(AppError):
    """Raised when a voting deadline is not in the future."""

    def __init__(self) -> None:
        super().__init__(
            message="Voting deadline must be in the future",
            code="PAST_DEADLINE",
            status_code=400,
        )


class StorageError(AppError):
    """Raised for unexpected persistence failures; detail stays in the logs."""

    def __init__(self) -> None:
        super().__init__(
            message="Storage request failed", code="STORAGE_ERROR", status_code=500
        )

"""
Custom exception classes and error handling.

Every failure the core can raise carries an HTTP status and a stable
error code so the API layer can render it without translation.
"""
from dataclasses import dataclass, asdict
from fastapi import HTTPException, status
from typing import Optional, Dict, Any, List


class APIException(HTTPException):
    """Base API exception with consistent structure."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.detail, "error_code": self.error_code}


@dataclass(frozen=True)
class ValidationIssue:
    """One violated rule on one field."""
    field: str
    rule: str  # required | max_length | range | format | cross_field | business_rule
    message: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


class ValidationError(APIException):
    """
    Input rejected by the validation layer.

    Carries every issue found, not just the first, so a client can show
    all problems at once. Always recoverable by correcting the input.
    """

    def __init__(self, issues: List[ValidationIssue]):
        self.issues = list(issues)
        super().__init__(
            status_code=422,
            detail="; ".join(issue.message for issue in self.issues) or "Validation failed",
            error_code="VALIDATION_ERROR"
        )

    @property
    def fields(self) -> List[str]:
        return [issue.field for issue in self.issues]

    def has(self, field: str, rule: Optional[str] = None) -> bool:
        """True if an issue was recorded for field (and rule, when given)."""
        return any(
            issue.field == field and (rule is None or issue.rule == rule)
            for issue in self.issues
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["errors"] = [issue.to_dict() for issue in self.issues]
        return data


class NotFoundError(APIException):
    """Resource not found."""

    def __init__(self, resource: str, identifier: Any):
        self.resource = resource
        self.identifier = str(identifier)
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found: {identifier}",
            error_code="NOT_FOUND"
        )


class ConflictError(APIException):
    """Operation not allowed in the record's current state."""

    def __init__(self, detail: str):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            error_code="CONFLICT"
        )


class PersistenceError(APIException):
    """
    The store was unavailable or rejected the write.

    Raised only after the bounded retries are exhausted; the operation is
    rolled back and the caller may retry it from scratch.
    """

    def __init__(self, detail: str, attempts: int = 1):
        self.attempts = attempts
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail,
            error_code="PERSISTENCE_ERROR"
        )

from typing import Any, Dict, Optional

from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    kind = "ServiceError"

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        *,
        entity: Optional[str] = None,
        entity_id: Any = None,
        rule: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.entity = entity
        self.entity_id = entity_id
        self.rule = rule

    def to_detail(self) -> Dict[str, Any]:
        """Structured payload for HTTPException.detail."""
        detail: Dict[str, Any] = {"error": self.kind, "message": self.message}
        if self.entity is not None:
            detail["entity"] = self.entity
        if self.entity_id is not None:
            detail["entity_id"] = str(self.entity_id)
        if self.rule is not None:
            detail["rule"] = self.rule
        return detail


class ValidationError(ServiceError):
    """Malformed or insufficient input (wrong unit count, self-match)."""

    kind = "ValidationError"

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST, **kwargs)


class NotFoundError(ServiceError):
    kind = "NotFoundError"

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND, **kwargs)


class ConflictError(ServiceError):
    """Precondition violated against the current stored state."""

    kind = "ConflictError"

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT, **kwargs)


class EmptyRosterError(ServiceError):
    """One or both sides have no eligible students at pairing time."""

    kind = "EmptyRosterError"

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(message, 422, **kwargs)


class InfrastructureError(ServiceError):
    """Persistence failure. Nothing was committed; safe for the caller to retry."""

    kind = "InfrastructureError"

    def __init__(self, message: str = "Storage is temporarily unavailable", **kwargs: Any) -> None:
        super().__init__(message, status.HTTP_503_SERVICE_UNAVAILABLE, **kwargs)

"""Domain errors raised by the service core and the storage adapter."""
from typing import Any, Dict, Optional


class ServiceCRMError(Exception):
    """Base class for errors surfaced to API callers."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.field = field
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "type": type(self).__name__,
            "field": self.field,
            "details": self.details,
        }


class ValidationError(ServiceCRMError):
    """Malformed or out-of-range input. `field` names the offending field."""


class NotFoundError(ValidationError):
    """
    A referenced customer, service entry or reminder id does not exist.

    Subclasses ValidationError: an id that fails to resolve is invalid input
    for the operation that referenced it. Raised before any write happens.
    """

    def __init__(self, entity: str, entity_id: Any, field: Optional[str] = None):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            f"{entity} {entity_id} not found",
            field=field,
            details={"entity": entity, "id": entity_id},
        )


class UnauthorizedError(ServiceCRMError):
    """The caller's role does not allow the requested write."""

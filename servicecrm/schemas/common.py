"""Shared value types."""
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from servicecrm.core.enum_utils import normalize_to_uppercase, enum_values
from servicecrm.models.customer import ServiceKind


VALID_SERVICE_KINDS = set(enum_values(ServiceKind))


class ServiceType(BaseModel):
    """
    Canonical service classification.

    `label` is the free-text payload of OTHER and is required for it; the
    fixed kinds carry no label.
    """
    model_config = ConfigDict(frozen=True)

    kind: ServiceKind = ServiceKind.MAINTENANCE
    label: Optional[str] = None

    @field_validator("kind", mode="before")
    @classmethod
    def normalize_kind(cls, v):
        return normalize_to_uppercase(v, VALID_SERVICE_KINDS)

    @model_validator(mode="after")
    def check_label(self):
        if self.kind == ServiceKind.OTHER:
            if not self.label or not self.label.strip():
                raise ValueError("label is required for service type OTHER")
        elif self.label is not None:
            raise ValueError(f"label is only allowed for service type OTHER, not {self.kind.value}")
        return self

    @classmethod
    def from_columns(cls, kind: str, label: Optional[str]) -> "ServiceType":
        """Rebuild from the two storage columns."""
        if kind == ServiceKind.OTHER.value:
            return cls(kind=ServiceKind.OTHER, label=label or "Other")
        return cls(kind=ServiceKind(kind))

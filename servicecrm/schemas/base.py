"""
Base Schema Classes for Pydantic Models

RULE: All response schemas that read from ORM rows MUST inherit from
BaseResponseSchema. Record snapshots handed to the pure core are plain
BaseResponseSchema subclasses too, so an ORM row converts with
`Record.model_validate(row)`.
"""

from pydantic import BaseModel, ConfigDict


class BaseResponseSchema(BaseModel):
    """
    Base class for response schemas and record snapshots read from ORM models.

    Usage:
        class ReminderRecord(BaseResponseSchema):
            id: int
            description: str
    """
    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class BaseCreateSchema(BaseModel):
    """
    Base class for create/input schemas.

    Unknown fields are ignored (forward compatibility with older clients).
    """
    model_config = ConfigDict(
        extra='ignore',
    )

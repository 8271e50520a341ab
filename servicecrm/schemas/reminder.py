"""Reminder schemas."""
from typing import Optional

from pydantic import BaseModel

from servicecrm.schemas.base import BaseResponseSchema, BaseCreateSchema
from servicecrm.schemas.customer import CustomerRecord


class ReminderRecord(BaseResponseSchema):
    id: Optional[int] = None
    customer_id: int
    owner_id: Optional[int] = None
    reminder_date: int
    description: str = ""
    sent_status: bool = False


class ReminderCreate(BaseCreateSchema):
    customer_id: int
    reminder_date: int
    description: str = ""


class ReminderSentUpdate(BaseCreateSchema):
    sent_status: bool


class MarkServiceDone(BaseCreateSchema):
    customer_id: int
    service_done_date: int


class ServiceCompletion(BaseModel):
    """Records produced by marking a service done; the caller persists both."""
    reminder: ReminderRecord
    customer: CustomerRecord


class ReminderResponse(ReminderRecord):
    id: int
    customer_name: Optional[str] = None
    whatsapp_number: Optional[str] = None

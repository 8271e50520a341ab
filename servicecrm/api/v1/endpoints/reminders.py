"""Reminder API endpoints."""
from typing import List, Optional

from fastapi import APIRouter, Query, status

from servicecrm.api.deps import CurrentUser, Now, Store
from servicecrm.schemas.reminder import (
    MarkServiceDone,
    ReminderCreate,
    ReminderResponse,
    ReminderSentUpdate,
)
from servicecrm.services import reminder_service as lifecycle
from servicecrm.services.customer_service import reminder_record


router = APIRouter(tags=["Reminders"])


@router.get("", response_model=List[ReminderResponse])
async def list_reminders(
    store: Store,
    current_user: CurrentUser,
    customer_id: Optional[int] = Query(None),
    pending_only: bool = Query(False, description="Only reminders not yet sent"),
):
    records = [reminder_record(row) for row in await store.get_reminders(customer_id)]
    if pending_only:
        records = lifecycle.pending_reminders(records)
    return await store.reminder_responses(records)


@router.get("/today", response_model=List[ReminderResponse])
async def todays_reminders(store: Store, current_user: CurrentUser, now: Now):
    records = lifecycle.todays_reminders(await store.get_reminder_records(), now)
    return await store.reminder_responses(records)


@router.get("/upcoming", response_model=List[ReminderResponse])
async def upcoming_reminders(
    store: Store,
    current_user: CurrentUser,
    now: Now,
    days: Optional[int] = Query(None, ge=1, le=365),
):
    """Reminders after today, within the next `days` days (default 7)."""
    records = lifecycle.upcoming_reminders(await store.get_reminder_records(), now, days)
    return await store.reminder_responses(records)


@router.post("", response_model=ReminderResponse, status_code=status.HTTP_201_CREATED)
async def create_reminder(data: ReminderCreate, store: Store, current_user: CurrentUser):
    row = await store.create_reminder(data, current_user)
    return (await store.reminder_responses([reminder_record(row)]))[0]


@router.post("/mark-done", response_model=ReminderResponse, status_code=status.HTTP_201_CREATED)
async def mark_service_done(data: MarkServiceDone, store: Store, current_user: CurrentUser):
    """Schedule the follow-up reminder one service interval after the completed service."""
    row = await store.mark_service_as_done(data.customer_id, data.service_done_date, current_user)
    return (await store.reminder_responses([reminder_record(row)]))[0]


@router.patch("/{reminder_id}/sent", response_model=ReminderResponse)
async def set_reminder_sent(
    reminder_id: int,
    data: ReminderSentUpdate,
    store: Store,
    current_user: CurrentUser,
):
    row = await store.set_reminder_sent_status(reminder_id, data.sent_status, current_user)
    return (await store.reminder_responses([reminder_record(row)]))[0]

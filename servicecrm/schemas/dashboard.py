"""Dashboard schemas."""
from typing import List, Optional

from pydantic import BaseModel

from servicecrm.schemas.customer import WarrantyStatusCounts
from servicecrm.schemas.revenue import AMCRevenue, RevenueSummary
from servicecrm.schemas.reminder import ReminderResponse


class UpcomingService(BaseModel):
    customer_id: int
    customer_name: str
    next_service_date: int
    whatsapp_number: Optional[str] = None


class DashboardOverview(BaseModel):
    """Headline figures for the staff dashboard, all derived at request time."""
    total_customers: int
    warranty: WarrantyStatusCounts
    revenue: RevenueSummary
    amc: AMCRevenue
    unpaid_services_count: int
    unpaid_amount: int
    due_this_month_count: int
    todays_reminders: List[ReminderResponse]
    upcoming_reminders: List[ReminderResponse]
    upcoming_services: List[UpcomingService]

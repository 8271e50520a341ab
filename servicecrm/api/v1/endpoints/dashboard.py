"""Dashboard API endpoints."""
from fastapi import APIRouter

from servicecrm.api.deps import CurrentUser, Now, Store
from servicecrm.core.money import from_nanos
from servicecrm.core.phone import to_whatsapp_number
from servicecrm.models.customer import WarrantyStatus
from servicecrm.schemas.customer import WarrantyStatusCounts
from servicecrm.schemas.dashboard import DashboardOverview, UpcomingService
from servicecrm.services import derivation_service as derivation
from servicecrm.services import reminder_service as lifecycle
from servicecrm.services import revenue_service as revenue


router = APIRouter(tags=["Dashboard"])


@router.get("/overview", response_model=DashboardOverview)
async def dashboard_overview(store: Store, current_user: CurrentUser, now: Now):
    """Get dashboard overview: warranty split, revenue, AMC position and what is due."""
    customers = await store.get_customer_records()
    services = await store.get_service_records()
    reminders = await store.get_reminder_records()
    amc_details = await store.get_amc_details_records()

    counts = derivation.count_by_warranty_status(customers, now)
    unpaid = revenue.unpaid_services(services)
    today = from_nanos(now)
    upcoming = sorted(derivation.upcoming_services(customers, now), key=lambda c: c.next_service_date)

    return DashboardOverview(
        total_customers=len(customers),
        warranty=WarrantyStatusCounts(
            in_warranty=counts[WarrantyStatus.IN_WARRANTY],
            out_warranty=counts[WarrantyStatus.OUT_WARRANTY],
        ),
        revenue=revenue.revenue_summary(services, now),
        amc=revenue.aggregate_amc_revenue(amc_details, now),
        unpaid_services_count=len(unpaid),
        unpaid_amount=sum(s.amount for s in unpaid),
        due_this_month_count=len(derivation.customers_due_in_month(customers, today.year, today.month)),
        todays_reminders=await store.reminder_responses(lifecycle.todays_reminders(reminders, now)),
        upcoming_reminders=await store.reminder_responses(lifecycle.upcoming_reminders(reminders, now)),
        upcoming_services=[
            UpcomingService(
                customer_id=c.id,
                customer_name=c.name,
                next_service_date=c.next_service_date,
                whatsapp_number=to_whatsapp_number(c.contact),
            )
            for c in upcoming
        ],
    )

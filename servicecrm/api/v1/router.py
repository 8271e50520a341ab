from fastapi import APIRouter

from servicecrm.api.v1.endpoints import (
    customers,
    services,
    reminders,
    amc,
    revenue,
    imports,
    dashboard,
)


api_router = APIRouter(prefix="/api/v1")


# ==================== Customers & Services ====================
api_router.include_router(
    customers.router,
    prefix="/customers",
)
api_router.include_router(
    services.router,
    prefix="/services",
)

# ==================== Reminders ====================
api_router.include_router(
    reminders.router,
    prefix="/reminders",
)

# ==================== AMC ====================
api_router.include_router(
    amc.router,
    prefix="/amc",
)

# ==================== Revenue & Dashboard ====================
api_router.include_router(
    revenue.router,
    prefix="/revenue",
)
api_router.include_router(
    dashboard.router,
    prefix="/dashboard",
)

# ==================== Imports ====================
api_router.include_router(
    imports.router,
    prefix="/imports",
)

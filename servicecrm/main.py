from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from servicecrm.config import settings
from servicecrm.api.v1.router import api_router
from servicecrm.core.exceptions import (
    NotFoundError,
    ServiceCRMError,
    UnauthorizedError,
    ValidationError,
)
from servicecrm.database import init_db, async_session_factory


logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("servicecrm")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    - Create tables that do not exist yet
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    await init_db()

    yield

    logger.info("Shutting down...")


OPENAPI_TAGS = [
    {"name": "Customers", "description": "Customers, installed appliances and warranty status"},
    {"name": "Services", "description": "Service visits and payment status"},
    {"name": "Reminders", "description": "Service reminders and mark-as-done scheduling"},
    {"name": "AMC", "description": "Annual Maintenance Contracts"},
    {"name": "Revenue", "description": "Monthly, fiscal quarter, yearly and per-customer revenue"},
    {"name": "Dashboard", "description": "Headline figures for staff"},
    {"name": "Imports", "description": "Spreadsheet customer import with row-level validation"},
]

API_DESCRIPTION = """
## Appliance Service CRM API

Customer, service, reminder and AMC management for an appliance service business.

### Conventions

- Timestamps are integer nanoseconds since the Unix epoch.
- Money is integer paise (1 rupee = 100 paise).
- Month, quarter and year boundaries follow the business timezone (default Asia/Kolkata).
- Fiscal quarters follow the Indian fiscal year: Q1 = Apr-Jun ... Q4 = Jan-Mar.

### Authentication

All `/api/v1` endpoints require a JWT bearer token.

### Error Codes

| Code | Description |
|------|-------------|
| 401 | Unauthorized - Invalid/expired token |
| 403 | Forbidden - Role does not allow the write |
| 404 | Not Found - Referenced record doesn't exist |
| 422 | Unprocessable Entity - Validation failed |
"""

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=API_DESCRIPTION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=OPENAPI_TAGS,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router)


def _error_response(request: Request, exc: ServiceCRMError, status_code: int) -> JSONResponse:
    content = exc.to_dict()
    content["path"] = str(request.url.path)
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return _error_response(request, exc, 404)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return _error_response(request, exc, 422)


@app.exception_handler(UnauthorizedError)
async def unauthorized_handler(request: Request, exc: UnauthorizedError):
    return _error_response(request, exc, 403)


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint with database validation."""
    from sqlalchemy import text
    from sqlalchemy.exc import SQLAlchemyError
    from datetime import datetime, timezone

    health_status = {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "database": "unknown"
        }
    }

    # Check database connectivity
    try:
        async with async_session_factory() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
            health_status["checks"]["database"] = "connected"
    except (SQLAlchemyError, OSError) as e:
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = f"error: {str(e)}"

    # Return 503 if unhealthy
    if health_status["status"] == "unhealthy":
        return JSONResponse(status_code=503, content=health_status)

    return health_status


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }

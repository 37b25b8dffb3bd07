import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import clinicdesk.models  # noqa: F401  (registers every table on Base.metadata)
from clinicdesk.config import settings
from clinicdesk.middleware.exceptions import register_exception_handlers
from clinicdesk.routers import (
    activity,
    appointments,
    auth,
    clients,
    clinics,
    health,
    notifications,
    orders,
    payments,
    products,
    reports,
    users,
)
from clinicdesk.utils.cache import close_redis

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info(f"ClinicDesk starting ({settings.environment})")
    yield
    await close_redis()
    logger.info("ClinicDesk stopped")


app = FastAPI(
    title="ClinicDesk",
    description="Clinic & patient management: clients, appointments, orders and payments",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware ───────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)
app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(users.router, prefix="/api/users", tags=["users"])
app.include_router(clinics.router, prefix="/api/clinics", tags=["clinics"])
app.include_router(clients.router, prefix="/api/clients", tags=["clients"])
app.include_router(products.router, prefix="/api/products", tags=["products"])
app.include_router(appointments.router, prefix="/api/appointments", tags=["appointments"])
app.include_router(orders.router, prefix="/api/orders", tags=["orders"])
app.include_router(payments.router, prefix="/api/payments", tags=["payments"])
app.include_router(reports.router, prefix="/api/reports", tags=["reports"])
app.include_router(activity.router, prefix="/api/activity", tags=["activity"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["notifications"])

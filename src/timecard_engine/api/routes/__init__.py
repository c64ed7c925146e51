"""API routes."""

from timecard_engine.api.routes.attestation import router as attestation_router
from timecard_engine.api.routes.clock import router as clock_router
from timecard_engine.api.routes.health import router as health_router
from timecard_engine.api.routes.pay_period import router as pay_period_router
from timecard_engine.api.routes.time_entry import router as time_entry_router

__all__ = [
    "attestation_router",
    "clock_router",
    "health_router",
    "pay_period_router",
    "time_entry_router",
]

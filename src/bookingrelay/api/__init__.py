"""API route aggregation.

All routers registered here get mounted in main.py. Everything here is
operational surface; clients talk to the relay over /ws.
"""

from fastapi import APIRouter

from bookingrelay.api.health import router as health_router
from bookingrelay.api.subscriptions import router as subscriptions_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(subscriptions_router, tags=["subscriptions"])

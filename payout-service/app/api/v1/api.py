# app/api/v1/api.py

from fastapi import APIRouter
from app.api.v1.endpoints import (
    admin,
    connect_webhooks,
    earnings,
    health,
    internals,
    payout_destinations,
    payout_profiles,
    step_up,
    withdrawals,
)

# This is the main router for the v1 API.
# It will include all the specific endpoint routers.
api_router = APIRouter()

api_router.include_router(withdrawals.router)
api_router.include_router(payout_destinations.router)
api_router.include_router(step_up.router)
api_router.include_router(earnings.router)
api_router.include_router(payout_profiles.router)
api_router.include_router(admin.router)
api_router.include_router(internals.router)
api_router.include_router(connect_webhooks.router)
api_router.include_router(health.router)

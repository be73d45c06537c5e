# app/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.api.v1.api import api_router
from app.core.config import settings
from app.core.errors import PayoutError
from app.core.limiter import limiter
from app.scheduler import init_scheduler, shutdown_scheduler

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Payout service starting up...")
    if settings.SCHEDULER_ENABLED:
        init_scheduler()
    yield
    logger.info("Payout service shutting down...")
    shutdown_scheduler()


app = FastAPI(
    title="GlobalConnect Payout Microservice",
    version="1.0.0",
    description="""
        **GlobalConnect Payout Service**

        Organizer earnings, settlement and withdrawals.

        ## Features

        * **Earnings Ledger**: Per-event gross, fees, net and withdrawable balance
        * **Settlement**: 7-day hold after the event ends, admin lock/unlock
        * **Withdrawals**: Manual bank and MonCash payouts, instant prefunded MonCash
        * **Payout Rails**: Haiti (bank / MonCash) and card-gateway (US/CA) profiles
        * **Bank Destinations**: Encrypted saved accounts behind email step-up
        * **Audit Export**: Per-ticket CSV with a price breakdown

        ## Authentication

        Organizer endpoints require JWT authentication via the `Authorization: Bearer <token>` header.
        Internal and admin endpoints require the `X-Internal-Api-Key` header.
        """,
    lifespan=lifespan,
)

origins = [
    "http://localhost:3000",
    # You would add your production frontend URL here as well
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(PayoutError)
async def payout_error_handler(request: Request, exc: PayoutError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code} {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "INTERNAL_ERROR",
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred",
        },
    )


app.include_router(api_router, prefix="/api/v1")


@app.get("/")
def read_root():
    return {"status": "Payout Service is running"}

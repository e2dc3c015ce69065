import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from mangum import Mangum

from addresses.api import router as addresses_router
from core import configure_logging
from ledger.api import router as ledger_router
from orders.api import router as orders_router
from promos.api import router as promos_router
from referrals.api import router as referrals_router
from storage import StorageError
from subscriptions.api import router as subscriptions_router

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Bubble Box Ordering API",
    description="Credits, promo codes, referrals and order accounting for laundry delivery",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(ledger_router)
app.include_router(promos_router)
app.include_router(referrals_router)
app.include_router(orders_router)
app.include_router(addresses_router)
app.include_router(subscriptions_router)


@app.exception_handler(StorageError)
def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    logger.error(f"Storage failure on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Something went wrong. Please try again."},
    )


@app.get("/health", tags=["System"])
def health_check():
    return {"status": "healthy", "service": "bubblebox-ordering"}


handler = Mangum(app)

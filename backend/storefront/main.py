"""
# `storefront/main.py` - application entry point

- Builds the FastAPI app, CORS from `settings.allowed_origins` (list or `*`).
- Routers: `/cart`, `/orders`, `/payments`, `/wishlist`.
- Storefront errors become JSON `{"detail": ...}` with the error's status code.
- Background scheduler (APScheduler `AsyncIOScheduler`): `sweep_orphaned_orders_once`
  every `ORPHAN_SWEEP_MINUTES` (disabled when 0).
"""
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storefront.config import settings
from storefront.core.errors import StorefrontError
from storefront.routers import carts, orders, payments, wishlist
from storefront.services.orders_sync import sweep_orphaned_orders_once

logging.basicConfig(
    level=getattr(logging, (settings.log_level or "INFO").upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("storefront")

scheduler = AsyncIOScheduler()

app = FastAPI(
    title="Storefront Cart & Checkout API",
    description="Cart, checkout and payment reconciliation for the storefront.",
    version="1.0.0",
    redirect_slashes=False,
)

allow_origins = [origin.strip() for origin in settings.allowed_origins.split(',')] if settings.allowed_origins else ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(carts.router)
app.include_router(orders.router)
app.include_router(payments.router)
app.include_router(wishlist.router)


@app.exception_handler(StorefrontError)
async def _storefront_error(request: Request, exc: StorefrontError):
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s (%s)", request.method, request.url.path, exc.detail, exc.cause)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail, "error": type(exc).__name__})


@app.get("/")
def read_root():
    return {"message": "Storefront backend running"}


@app.on_event("startup")
async def _startup_scheduler():
    if settings.orphan_sweep_minutes <= 0:
        return
    scheduler.add_job(
        sweep_orphaned_orders_once,
        "interval",
        minutes=settings.orphan_sweep_minutes,
        id="orphan-orders-sweep",
        replace_existing=True,
    )
    if not scheduler.running:
        scheduler.start()


@app.on_event("shutdown")
async def _shutdown_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=False)


# Run the app directly with uvicorn (for development)
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("storefront.main:app", host="0.0.0.0", port=8000, reload=True)

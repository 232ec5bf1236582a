import logging
import pathlib
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

logger = logging.getLogger(__name__)

from app.api import (
    auth,
    customers,
    documents,
    finance,
    invoices,
    navigation,
    operations,
    orders,
    production,
    reports,
)
from app.config import settings
from app.database import SessionLocal, init_db
from app.services.auth_service import ensure_default_admin
from app.services.order_lock_service import auto_lock_completed_orders


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    init_db()
    db = SessionLocal()
    try:
        ensure_default_admin(db)
        # Orders that passed the auto-lock window while the server was down
        auto_lock_completed_orders(db)
    finally:
        db.close()
    yield


app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="Finance, documents, operations, sales and analytics for Hatvoni",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Return JSON for unhandled exceptions so frontend can parse error."""
    logger.error("Unhandled error: %s\n%s", exc, traceback.format_exc())
    return JSONResponse(status_code=500, content={"detail": str(exc)})


app.include_router(auth.router, prefix="/api/v1")
app.include_router(navigation.router, prefix="/api/v1")
app.include_router(finance.router, prefix="/api/v1")
app.include_router(documents.router, prefix="/api/v1")
app.include_router(operations.router, prefix="/api/v1")
app.include_router(production.router, prefix="/api/v1")
app.include_router(customers.router, prefix="/api/v1")
app.include_router(orders.router, prefix="/api/v1")
app.include_router(invoices.router, prefix="/api/v1")
app.include_router(reports.router, prefix="/api/v1")


# Mount persistent uploads directory (survives deploys)
_upload_dir = pathlib.Path(settings.UPLOAD_DIR)
_upload_dir.mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=_upload_dir), name="uploads")


@app.get("/api/v1/config")
def get_config():
    """Expose public config for the frontend."""
    return {
        "app_name": settings.APP_NAME,
        "base_url": settings.BASE_URL.rstrip("/"),
        "order_auto_lock_hours": settings.ORDER_AUTO_LOCK_HOURS,
        "order_unlock_window_days": settings.ORDER_UNLOCK_WINDOW_DAYS,
    }


@app.get("/health")
def health():
    return {"status": "ok"}

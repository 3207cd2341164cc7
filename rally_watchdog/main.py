import logging
import time
from contextlib import asynccontextmanager

# --- ENV SETUP ---
from dotenv import load_dotenv
load_dotenv()

# --- FASTAPI IMPORTS ---
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

# --- LOCAL MODULES ---
from rally_watchdog.core.config import get_settings
from rally_watchdog.core.errors import RallyWatchdogError, RateLimitError, StoreError, ValidationError
from rally_watchdog.services.mongodb_service import close_store, init_store
from rally_watchdog.services.notifier_service import close_notifier

# --- ROUTES ---
from rally_watchdog.api.drivers import router as drivers_router
from rally_watchdog.api.identity import router as identity_router
from rally_watchdog.api.reports import router as reports_router
from rally_watchdog.api.warnings import router as warnings_router

settings = get_settings()

# --- LOGGING SETUP ---
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)


# --- TIMING MIDDLEWARE ---
class TimingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(process_time)
        return response


# --- LIFESPAN CONTEXT MANAGER ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Starting Rally Watchdog backend...")
    store = await init_store(settings)
    if store is None:
        logger.error("❌ MongoDB unavailable at startup; requests will retry the connection")
    if not settings.notifier_configured:
        logger.warning("⚠️ SMS notifier not configured; dispatched warnings will be recorded as skipped")

    yield

    logger.info("🔄 Shutting down...")
    await close_notifier()
    await close_store()
    logger.info("✅ All services closed gracefully")


# --- APP INITIALIZATION ---
app = FastAPI(title="Rally Watchdog API", lifespan=lifespan)

# --- MIDDLEWARE ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(TimingMiddleware)


# --- REQUEST LOGGING ---
@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(f"📥 {request.method} {request.url.path}")
    return await call_next(request)


# --- ERROR HANDLERS ---
@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    # Malformed bodies get the same shape as field validation in the services
    fields = {}
    for error in exc.errors():
        loc = error.get("loc") or ("body",)
        fields.setdefault(str(loc[-1]), error.get("msg", "Invalid value"))
    logger.info(f"Request rejected on {request.url.path}, invalid fields: {', '.join(fields)}")
    return JSONResponse(status_code=422, content=ValidationError(fields).to_dict())


@app.exception_handler(RateLimitError)
async def rate_limit_error_handler(request: Request, exc: RateLimitError):
    headers = {}
    if exc.retry_after_seconds is not None:
        headers["Retry-After"] = str(exc.retry_after_seconds)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    logger.error(f"💥 Store failure on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.code, "message": "Database unavailable"},
    )


@app.exception_handler(RallyWatchdogError)
async def domain_error_handler(request: Request, exc: RallyWatchdogError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# --- ROUTER MOUNTING ---
app.include_router(identity_router, prefix="/api")
app.include_router(reports_router, prefix="/api")
app.include_router(warnings_router, prefix="/api")
app.include_router(drivers_router, prefix="/api")


@app.get("/api/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("rally_watchdog.main:app", host="0.0.0.0", port=8000)

import logging
import time
import traceback
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from playoga.api.checkout import router as checkout_router
from playoga.api.subscription import router as subscription_router
from playoga.core.config import Settings, is_production, is_razorpay_configured, settings
from playoga.core.database import engine, init_db
from playoga.core.rate_limit import client_ip, limiter
from playoga.logging import setup_logging
from playoga.models import ErrorLog, SecurityLog

setup_logging()
log = logging.getLogger("playoga")


def _cors_origins_list() -> list[str]:
    if not settings.cors_origins or settings.cors_origins.strip() == "*":
        return ["*"]
    return [o.strip() for o in settings.cors_origins.split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    log.info("Razorpay configured: %s", "yes" if is_razorpay_configured() else "NO (set RAZORPAY_KEY_ID / RAZORPAY_KEY_SECRET)")
    if is_production() and settings.secret_key == Settings.model_fields["secret_key"].default:
        log.error("SECRET_KEY is the built-in default in production; identity provider tokens will not verify")
    yield


app = FastAPI(
    title="Playoga API",
    description="Subscription checkout: coupons, Razorpay orders, payment verification",
    lifespan=lifespan,
)
app.state.limiter = limiter


def _error_response(request: Request, status_code: int, detail: str) -> JSONResponse:
    rid = getattr(request.state, "request_id", None)
    body = {"error": detail, "status_code": status_code}
    if rid:
        body["request_id"] = rid
    return JSONResponse(status_code=status_code, content=body)


def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    try:
        with Session(engine) as db:
            db.add(SecurityLog(event="rate_limit", ip=client_ip(request), endpoint=request.url.path, detail="Rate limit exceeded"))
            db.commit()
    except Exception as e:
        log.warning("SecurityLog rate_limit write failed: %s", e)
    return _error_response(request, 429, "Too many requests. Please wait a minute.")


def _validation_error_message(exc: RequestValidationError) -> str:
    errs = exc.errors()
    if not errs:
        return "Invalid request."
    first = errs[0]
    loc = list(first.get("loc") or [])
    field = str(loc[-1]) if loc else None
    if first.get("type") == "missing" or first.get("type") == "string_too_short":
        if field and field.startswith("razorpay_"):
            return "Payment details are incomplete."
        if field == "body":
            return "Request body is missing."
    return first.get("msg") or "Invalid request."


def _jsonable_errors(errs) -> list[dict]:
    # ctx may hold exception instances; keep the serializable parts
    return [{"loc": list(e.get("loc") or []), "msg": e.get("msg"), "type": e.get("type")} for e in errs]


@app.exception_handler(RequestValidationError)
def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errs = exc.errors()
    log.warning(
        "Request validation error (422): path=%s method=%s detail=%s",
        request.url.path,
        request.method,
        errs,
    )
    rid = getattr(request.state, "request_id", None)
    body = {"error": _validation_error_message(exc), "status_code": 422, "detail": _jsonable_errors(errs)}
    if rid:
        body["request_id"] = rid
    return JSONResponse(status_code=422, content=body)


app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)


@app.exception_handler(HTTPException)
def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    response = _error_response(request, exc.status_code, exc.detail if isinstance(exc.detail, str) else str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


def _record_unhandled(request: Request, exc: Exception) -> JSONResponse:
    """Logs and persists an unexpected error; the client only gets a generic 500."""
    log.error("Unhandled exception: path=%s %s", request.url.path, exc, exc_info=exc)
    try:
        with Session(engine) as db:
            db.add(ErrorLog(
                endpoint=request.url.path,
                method=request.method,
                error_message=str(exc)[:2000],
                stack_trace="".join(traceback.format_exception(exc))[:10000],
            ))
            db.commit()
    except SQLAlchemyError as e:
        log.warning("ErrorLog write failed: %s", e)
    return _error_response(request, 500, "Internal server error")


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    # Only reached for errors outside request_id_and_latency
    return _record_unhandled(request, exc)


@app.middleware("http")
async def request_id_and_latency(request: Request, call_next):
    request.state.request_id = str(uuid.uuid4())
    start = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception as exc:
        # Answered here so the 500 still passes back through CORSMiddleware
        response = _record_unhandled(request, exc)
    latency_ms = (time.perf_counter() - start) * 1000
    response.headers["X-Request-ID"] = request.state.request_id
    log.info(
        "request_id=%s method=%s path=%s status=%s latency_ms=%.2f",
        request.state.request_id,
        request.method,
        request.url.path,
        response.status_code,
        latency_ms,
    )
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(checkout_router)
app.include_router(subscription_router)


@app.get("/health")
def health():
    database = "ok"
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        log.warning("Health check database error: %s", e)
        database = "error"
    return {
        "status": "ok",
        "environment": settings.environment,
        "database": database,
        "payment_gateway_configured": is_razorpay_configured(),
    }

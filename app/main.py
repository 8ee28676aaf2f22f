import logging
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root wherever uvicorn is started from
_PROJ_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJ_ROOT / ".env")

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlmodel import Session

from app.api.coupons import router as coupons_router
from app.api.orders import router as orders_router
from app.api.webhooks import router as webhooks_router
from app.core.config import get_supported_payment_methods, settings
from app.core.database import engine, init_db
from app.core.exceptions import DomainError
from app.core.rate_limit import limiter
from app.logging import setup_logging
from app.services.email_sender import EmailNotifier
from app.services.payments import build_payment_gateway

setup_logging(level=logging.INFO)
log = logging.getLogger("shopcore")

_HTTP_CODES = {
    401: "E_UNAUTHORIZED",
    403: "E_ACCESS_DENIED",
    404: "E_NOT_FOUND",
    405: "E_METHOD_NOT_ALLOWED",
}


def _cors_origins_list() -> list[str]:
    if not settings.cors_origins or settings.cors_origins.strip() == "*":
        return ["*"]
    return [o.strip() for o in settings.cors_origins.split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    # Fails startup when an enabled payment method has no provider
    app.state.payment_gateway = build_payment_gateway(settings, get_supported_payment_methods())
    app.state.notifier = EmailNotifier()
    log.info("Shopcore started: environment=%s", settings.environment)
    yield


app = FastAPI(
    title="Shopcore API",
    description="Orders, coupons and payments",
    lifespan=lifespan,
)
app.state.limiter = limiter


def _error_response(request: Request, status_code: int, message: str, code: str) -> JSONResponse:
    body = {"success": False, "message": message, "code": code}
    rid = getattr(request.state, "request_id", None)
    if rid:
        body["requestId"] = rid
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(DomainError)
def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    log.info("Domain error: path=%s code=%s message=%s", request.url.path, exc.code, exc.message)
    return _error_response(request, exc.status_code, exc.message, exc.code)


@app.exception_handler(RequestValidationError)
def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errs = exc.errors()
    log.warning(
        "Request validation error (422): path=%s method=%s detail=%s",
        request.url.path,
        request.method,
        errs,
    )
    first = errs[0] if errs else {}
    field = ".".join(str(p) for p in (first.get("loc") or [])[1:])
    message = first.get("msg") or "Invalid request."
    if field:
        message = f"{field}: {message}"
    return _error_response(request, 422, message, "VALIDATION_ERROR")


def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    log.warning("Rate limit exceeded: path=%s limit=%s", request.url.path, exc.detail)
    return _error_response(request, 429, "Too many requests. Please wait a minute.", "E_TOO_MANY_REQUESTS")


app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)


@app.exception_handler(HTTPException)
def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    response = _error_response(request, exc.status_code, message, _HTTP_CODES.get(exc.status_code, "E_HTTP_ERROR"))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(Exception)
def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("Unhandled exception: path=%s %s", request.url.path, exc)
    return _error_response(request, 500, "Unexpected server error.", "E_INTERNAL_SERVER_ERROR")


@app.middleware("http")
async def request_id_and_latency(request: Request, call_next):
    request.state.request_id = str(uuid.uuid4())
    start = time.perf_counter()
    response = await call_next(request)
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
app.include_router(orders_router)
app.include_router(coupons_router)
app.include_router(webhooks_router)


@app.get("/health")
def health():
    try:
        with Session(engine) as db:
            db.exec(text("SELECT 1"))
        database = "ok"
    except Exception as e:
        log.warning("Health check database error: %s", e)
        database = "error"
    return {"status": "ok", "database": database}

from __future__ import annotations
import uuid
from contextlib import asynccontextmanager
import stripe
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
from lifekit.config import settings
from lifekit.errors import DependencyFailure, HTTP_STATUS_KINDS, ServiceError, ValidationError
from lifekit.logging_setup import configure_logging
from lifekit.routes.system import router as system_router
from lifekit.routes.bookings import router as bookings_router
from lifekit.routes.wallet import router as wallet_router
from lifekit.routes.stripe_webhooks import router as stripe_router
from lifekit.routes.reviews import router as reviews_router
from lifekit.routes.notifications import router as notifications_router
from lifekit.routes.chats import router as chats_router
import structlog

configure_logging()
log = structlog.get_logger()

@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info("startup", env=settings.environment, version=settings.app_version, git_sha=settings.git_sha)
    yield
    log.info("shutdown")

app = FastAPI(
    title=f"{settings.app_display_name} API",
    version=settings.app_version,
    lifespan=lifespan,
    description=f"{settings.app_display_name} API for service bookings, escrow wallets and reviews",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.environment == "dev" else settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(system_router)
app.include_router(bookings_router)
app.include_router(wallet_router)
app.include_router(stripe_router)
app.include_router(reviews_router)
app.include_router(notifications_router)
app.include_router(chats_router)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        log.error("request_failed", path=request.url.path, kind=exc.kind, message=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    kind = HTTP_STATUS_KINDS.get(exc.status_code, "http_error")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {"kind": kind, "message": str(exc.detail)}},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{loc}: {first.get('msg', 'invalid request')}" if loc else first.get("msg", "invalid request")
    return JSONResponse(status_code=400, content=ValidationError(message).to_dict())


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    log.error("storage_error", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=500, content=DependencyFailure("Storage unavailable").to_dict())


@app.exception_handler(stripe.StripeError)
async def stripe_error_handler(request: Request, exc: stripe.StripeError):
    log.error("payment_processor_error", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=500, content=DependencyFailure("Payment processor unavailable").to_dict())


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = rid
    structlog.contextvars.bind_contextvars(request_id=rid, method=request.method, path=request.url.path)
    try:
        response: Response = await call_next(request)
    finally:
        structlog.contextvars.clear_contextvars()
    response.headers["X-Request-ID"] = rid
    return response

from __future__ import annotations

import logging
import time
import uuid

from fastapi import APIRouter, FastAPI, Request, HTTPException
from fastapi.exception_handlers import http_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from sqlalchemy.exc import OperationalError, ProgrammingError
from starlette.responses import JSONResponse

from scribo.auth.deps import SESSION_COOKIE
from scribo.core.config import settings
from scribo.core.errors import AppError
from scribo.core.logging import set_request_id, setup_logging

# Import models to populate SQLAlchemy metadata
import scribo.db.models  # noqa: F401

from scribo.auth.router import router as auth_router
from scribo.modules.campaigns.router import router as campaigns_router
from scribo.modules.forms.router import router as forms_router
from scribo.modules.submissions.router import router as submissions_router
from scribo.modules.public.router import router as public_router


setup_logging(settings.LOG_LEVEL, settings.LOG_JSON)
logger = logging.getLogger("scribo")

app = FastAPI(title=settings.APP_NAME)

# CORS (Access-Control-Allow-*) - configurable
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins(),
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
)

# Compression for JSON listings and exports
app.add_middleware(GZipMiddleware, minimum_size=800)


@app.middleware("http")
async def add_request_context(request: Request, call_next):
    rid = request.headers.get("x-request-id") or uuid.uuid4().hex
    set_request_id(rid)
    start = time.perf_counter()
    try:
        resp = await call_next(request)
    finally:
        set_request_id(None)
    resp.headers["X-Request-ID"] = rid
    resp.headers["X-Process-Time-ms"] = f"{(time.perf_counter() - start) * 1000:.2f}"
    return resp


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    resp = await call_next(request)
    resp.headers["X-Content-Type-Options"] = "nosniff"
    resp.headers["X-Frame-Options"] = "SAMEORIGIN"
    resp.headers["Referrer-Policy"] = "same-origin"
    return resp


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, **exc.extra})


@app.exception_handler(HTTPException)
async def http_exc_handler(request: Request, exc: HTTPException):
    resp = await http_exception_handler(request, exc)
    if exc.status_code == 401:
        resp.delete_cookie(SESSION_COOKIE)
    return resp


@app.exception_handler(Exception)
async def unhandled_exc_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception", exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


api = APIRouter(prefix="/api")
api.include_router(auth_router)
api.include_router(campaigns_router)
api.include_router(forms_router)
api.include_router(submissions_router)
api.include_router(public_router)
app.include_router(api)


@app.on_event("startup")
def on_startup():
    # Schema migrations are handled by scribo.scripts.migrate.
    if settings.AUTO_SEED_FIELDS:
        from scribo.db.session import session_scope
        from scribo.scripts.seed import seed_field_types

        try:
            with session_scope() as db:
                created = seed_field_types(db)
        except (OperationalError, ProgrammingError) as exc:
            logger.warning("Field catalog not seeded (run scribo.scripts.migrate first): %s", exc)
            return
        if created:
            logger.info("Seeded %d field types", created)


@app.get("/health", response_class=JSONResponse)
def health():
    return {"status": "ok", "app": settings.APP_NAME}

"""
stackit.api.main — FastAPI application entry point
=====================================================

Run with::

    uvicorn stackit.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.staticfiles import StaticFiles

load_dotenv()

from stackit.api.auth import router as auth_router  # noqa: E402
from stackit.api.deps import get_config, get_engine  # noqa: E402
from stackit.api.rate_limit import configure_rate_limiter  # noqa: E402
from stackit.api.routes.admin import router as admin_router  # noqa: E402
from stackit.api.routes.answers import router as answers_router  # noqa: E402
from stackit.api.routes.notifications import router as notifications_router  # noqa: E402
from stackit.api.routes.questions import router as questions_router  # noqa: E402
from stackit.api.routes.uploads import router as uploads_router  # noqa: E402
from stackit.api.routes.users import router as users_router  # noqa: E402
from stackit.api.routes.votes import router as votes_router  # noqa: E402
from stackit.database.engine import init_db  # noqa: E402
from stackit.errors import StackItError  # noqa: E402
from stackit.services.upload_service import UPLOAD_DIR, ensure_upload_dir  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — schema, master admin, rate limiter."""
    cfg = get_config()
    engine = get_engine()
    init_db(engine)
    configure_rate_limiter(
        engine=engine,
        max_requests=cfg.rate_limit.max_mutations,
        window_seconds=cfg.rate_limit.window_seconds,
    )
    logger.info("%s API started — engine ready (%s)", cfg.site_name, engine.url.database)
    yield
    logger.info("%s API shutting down", cfg.site_name)


app = FastAPI(
    title="StackIt API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Error envelope — {"error": code, "message": text}
# ---------------------------------------------------------------------------
@app.exception_handler(StackItError)
async def stackit_error_handler(request: Request, exc: StackItError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    details = [
        {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", "")}
        for err in errors
    ]
    message = details[0]["msg"] if details else "Invalid request"
    return JSONResponse(
        status_code=422,
        content={"error": "validation", "message": message, "details": details},
    )


# Mount routers
app.include_router(auth_router, prefix="/api")
app.include_router(questions_router, prefix="/api")
app.include_router(answers_router, prefix="/api")
app.include_router(votes_router, prefix="/api")
app.include_router(notifications_router, prefix="/api")
app.include_router(users_router, prefix="/api")
app.include_router(uploads_router, prefix="/api")
app.include_router(admin_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}


# Serve uploaded files as static assets.  StaticFiles checks the directory
# when mounted, so it has to exist before the first upload.
ensure_upload_dir()
app.mount(
    "/api/uploads",
    StaticFiles(directory=str(UPLOAD_DIR)),
    name="uploads",
)

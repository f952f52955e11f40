from __future__ import annotations

import logging
import os
import time

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse

from app.adapters.package_store import InMemoryPackageStore
from app.adapters.postgres_store import PostgresPackageStore
from app.routers import health, projects

app = FastAPI(title="Package Metadata API", version="1.0.0")
logger = logging.getLogger("packages.api.slow")
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    logger.addHandler(handler)
logger.propagate = False
logger.setLevel(logging.INFO)


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name, "1" if default else "").strip().lower()
    return raw in {"1", "true", "yes", "on"}


def _slow_request_ms_threshold() -> float:
    raw = os.getenv("API_SLOW_REQUEST_MS", "1500").strip()
    try:
        return max(25.0, float(raw))
    except ValueError:
        return 1500.0


def _route_signature(request: Request) -> tuple[str, str]:
    route = request.scope.get("route")
    route_path = str(getattr(route, "path", "") or "") if route is not None else ""
    raw_path = request.url.path
    return route_path or raw_path, raw_path


def _correlation_id(request: Request) -> str:
    for key in ("x-request-id", "x-amzn-trace-id", "cf-ray"):
        value = request.headers.get(key)
        if value:
            return value
    return "none"


def _apply_runtime_response_headers(response: Response, request: Request, elapsed_ms: float) -> None:
    response.headers["x-packages-runtime-ms"] = f"{max(0.1, float(elapsed_ms)):.4f}"
    correlation_id = _correlation_id(request)
    if correlation_id != "none":
        response.headers["x-packages-request-id"] = correlation_id


def _build_store():
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        # Production: PostgreSQL
        return PostgresPackageStore(database_url)
    # Development/Testing: in-memory store with optional JSON persistence
    return InMemoryPackageStore(persist_path=os.getenv("PACKAGE_STORE_PATH"))


# Configure CORS
allowed_origins_str = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000")
allowed_origins = [origin.strip() for origin in allowed_origins_str.split(",") if origin.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.package_store = _build_store()


@app.get("/", include_in_schema=False)
async def root():
    """Redirect to API documentation."""
    return RedirectResponse(url="/docs")


app.include_router(health.router, prefix="/api", tags=["health"])
app.include_router(projects.router, prefix="/api", tags=["projects"])


@app.middleware("http")
async def log_slow_requests(request: Request, call_next):
    start = time.perf_counter()
    status_code: int | None = None
    exc_name: str | None = None
    response = None
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    except Exception as exc:
        status_code = 500
        exc_name = exc.__class__.__name__
        raise
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000.0
        request_path, raw_path = _route_signature(request)
        if response is not None:
            _apply_runtime_response_headers(response, request, elapsed_ms)
        if (
            elapsed_ms >= _slow_request_ms_threshold()
            or _env_flag("API_LOG_ALL_REQUESTS", False)
            or (status_code or 500) >= 500
        ):
            logger.warning(
                "slow_api_request method=%s path=%s raw_path=%s status=%s elapsed_ms=%.2f correlation=%s exception=%s",
                request.method,
                request_path,
                raw_path,
                status_code,
                elapsed_ms,
                _correlation_id(request),
                exc_name or "none",
            )

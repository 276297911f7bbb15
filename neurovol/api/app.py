"""FastAPI application for the NeuroVol service."""

from __future__ import annotations

import json
import time
import tomllib
import uuid
from pathlib import Path
from typing import Awaitable, Callable

from fastapi import FastAPI, Request, Response

from neurovol.normative.loader import get_alias_resolver, get_reference_store
from neurovol.pipeline.orchestrator import ExtractionOrchestrator
from neurovol.utils.config import get_settings
from neurovol.utils.logger import get_logger, set_correlation_id

from .models import HealthResponse
from .routes import router

logger = get_logger(__name__)


def _load_version() -> str:
    pyproject_path = Path(__file__).resolve().parents[2] / "pyproject.toml"
    if not pyproject_path.exists():
        return "0.1.0"

    try:
        data = tomllib.loads(pyproject_path.read_text(encoding="utf-8"))
    except (tomllib.TOMLDecodeError, OSError):
        return "0.1.0"

    return data.get("project", {}).get("version", "0.1.0")


APP_VERSION = _load_version()


def create_app() -> FastAPI:
    """Build the application with its reference tables and pipeline."""

    settings = get_settings()
    application = FastAPI(title=settings.APP_NAME, version=APP_VERSION)

    application.state.version = APP_VERSION
    application.state.reference_store = get_reference_store()
    application.state.alias_resolver = get_alias_resolver()
    application.state.orchestrator = ExtractionOrchestrator(
        store=application.state.reference_store,
        resolver=application.state.alias_resolver,
    )

    @application.middleware("http")
    async def request_context_middleware(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        """Attach a trace identifier and emit structured JSON logs for each request."""

        trace_id = request.headers.get("x-trace-id") or str(uuid.uuid4())
        request.state.trace_id = trace_id
        set_correlation_id(trace_id)
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception:
            duration = time.perf_counter() - start_time
            logger.exception(
                json.dumps(
                    {
                        "event": "request_error",
                        "trace_id": trace_id,
                        "method": request.method,
                        "path": request.url.path,
                        "duration_ms": round(duration * 1000, 2),
                    }
                )
            )
            raise
        finally:
            set_correlation_id(None)

        duration = time.perf_counter() - start_time
        logger.info(
            json.dumps(
                {
                    "event": "request_complete",
                    "trace_id": trace_id,
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": status_code,
                    "duration_ms": round(duration * 1000, 2),
                }
            )
        )

        response.headers.setdefault("X-Trace-Id", trace_id)
        return response

    application.include_router(router)

    @application.get("/healthz", response_model=HealthResponse, tags=["system"])
    async def health_check(request: Request) -> HealthResponse:
        """Readiness endpoint reporting whether reference data is loaded."""

        store = getattr(request.app.state, "reference_store", None)
        structures = len(store.structures) if store is not None else 0
        return HealthResponse(
            status="healthy" if structures else "unhealthy",
            version=request.app.state.version,
            structures=structures,
        )

    @application.get("/version", tags=["system"])
    async def version(request: Request) -> dict[str, str]:
        """Return the service version derived from pyproject or fallback."""
        return {"version": request.app.state.version}

    return application


app = create_app()

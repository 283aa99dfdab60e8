"""Debug HTTP endpoints exposing runtime and system stats as plain text."""

from __future__ import annotations

import logging
import re
from time import sleep

from fastapi import APIRouter, FastAPI
from fastapi.responses import PlainTextResponse, Response

from .. import __version__
from ..collector.runtime import RuntimeCollector
from ..collector.system import SystemCollector
from ..config import HttpConfig
from .expvar import VarRegistry, default_registry

logger = logging.getLogger(__name__)

_INTEGER = re.compile(r"[+-]?[0-9]+")


def parse_seconds(raw: str | None, default: int = 30, maximum: int | None = None) -> int:
    """Normalize the ``seconds`` query value.

    Only plain decimal integers are accepted. Missing, unparsable and
    non-positive values fall back to *default*; values above *maximum* are
    clamped.
    """
    seconds = int(raw) if raw is not None and _INTEGER.fullmatch(raw) else 0
    if seconds <= 0:
        seconds = default
    if maximum is not None and seconds > maximum:
        seconds = maximum
    return seconds


def render_stats(seconds: int) -> str:
    """Sample runtime and system stats over *seconds* and render ``key=value`` lines.

    Both collectors are primed first so CPU percentages and network deltas
    cover the waiting window.
    """
    runtime = RuntimeCollector()
    system = SystemCollector()
    try:
        system.sample_once()
        sleep(seconds)
        lines = []
        for snapshot in (runtime.sample_once(), system.sample_once()):
            lines.extend(f"{key}={value}" for key, value in sorted(snapshot.values().items()))
    finally:
        runtime.close()
        system.close()
    return "".join(line + "\n" for line in lines)


def create_router(config: HttpConfig | None = None, registry: VarRegistry | None = None) -> APIRouter:
    """Build the ``/debug`` router for mounting into a host application."""
    config = config or HttpConfig()
    registry = registry if registry is not None else default_registry
    router = APIRouter(prefix="/debug", tags=["debug"])

    @router.get("/stats/", response_class=PlainTextResponse, summary="Runtime and system stats")
    def stats(seconds: str | None = None) -> PlainTextResponse:
        # sync handler: FastAPI runs it in the threadpool, so sleeping is fine
        wait = parse_seconds(seconds, config.default_seconds, config.max_seconds)
        logger.debug("Collecting debug stats over %ds", wait)
        return PlainTextResponse(
            render_stats(wait),
            headers={"X-Content-Type-Options": "nosniff"},
        )

    @router.get("/vars", summary="Exported variables as JSON")
    def variables() -> Response:
        return Response(registry.to_json(), media_type="application/json")

    return router


def create_app(config: HttpConfig | None = None, registry: VarRegistry | None = None) -> FastAPI:
    app = FastAPI(
        title="app-metrics",
        description="Runtime and system metrics debug endpoints.",
        version=__version__,
    )
    app.include_router(create_router(config, registry))
    return app

"""FastAPI application entrypoint."""
from __future__ import annotations

from typing import Optional

from fastapi import FastAPI, Response

from firecnc.supervisor import metrics
from firecnc.supervisor.system import Supervisor, SupervisorRuntime
from firecnc.supervisor.persistence import DuckDBStore
from firecnc.utils.logging import setup_logging
from services.api.config import get_state_db_path, get_supervisor_config
from services.api.health import readiness_check
from services.api.routers import system


def _default_runtime() -> SupervisorRuntime:
    supervisor = Supervisor(get_supervisor_config(), store=DuckDBStore(get_state_db_path()))
    return SupervisorRuntime(supervisor)


def create_app(runtime: Optional[SupervisorRuntime] = None) -> FastAPI:
    setup_logging()
    app = FastAPI(title="fireCNC Supervisor API", version="0.1.0")
    app.state.runtime = runtime

    @app.on_event("startup")
    async def startup_event():
        if app.state.runtime is None:
            app.state.runtime = _default_runtime()
        app.state.runtime.start()

    @app.on_event("shutdown")
    async def shutdown_event():
        if app.state.runtime is not None:
            app.state.runtime.stop()

    app.include_router(system.router, prefix="/system", tags=["system"])

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/ready")
    def ready():
        return readiness_check(app.state.runtime)

    @app.get("/metrics")
    def prometheus_metrics():
        payload, content_type = metrics.render_latest()
        return Response(content=payload, media_type=content_type)

    return app


app = create_app()

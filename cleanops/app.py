import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cleanops.infrastructure import get_logger, setup_logging
from cleanops.routes import dashboard, employees, jobs, ledger, tasks
from cleanops.workers.ledger import get_ledger_worker

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    outcomes = await get_ledger_worker().drain()
    if outcomes:
        logger.info("Drained pending ledger writes", count=len(outcomes))


def create_app() -> FastAPI:
    setup_logging()

    app = FastAPI(title="Cleaning Operations Console API", version="0.1.0", lifespan=lifespan)

    origins_env = os.getenv("API_CORS_ORIGINS", "")
    origins = [origin.strip() for origin in origins_env.split(",") if origin.strip()]
    if not origins:
        origins = ["http://localhost:3000", "http://127.0.0.1:3000"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    for module in (jobs, tasks, employees, dashboard, ledger):
        app.include_router(module.router, prefix="/api")

    @app.get("/api/health", tags=["health"])
    async def health() -> dict:
        return {"status": "ok"}

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        return JSONResponse(
            {
                "message": "Cleaning Operations Console API",
                "docs": "/docs",
                "health": "/api/health",
            }
        )

    return app


app = create_app()

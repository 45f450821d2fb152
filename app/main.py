from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import AppConfig
from app.routes import health, studyplan
from app.services.gemini_client import GeminiClient
from app.services.identity import IdentityProvider
from app.services.plan_store import PlanStore, StoreError, build_store
from app.services.sessions import SessionRegistry
from app.utils.error_handler import log_exceptions
from app.utils.logger import logger


def create_app(
    config: Optional[AppConfig] = None,
    store: Optional[PlanStore] = None,
    client: Optional[GeminiClient] = None,
    provider: Optional[IdentityProvider] = None,
    **controller_options,
) -> FastAPI:
    config = config or AppConfig.from_env()

    # ---------------------------------------------------------------
    # Startup: store handle + session registry, built once
    # ---------------------------------------------------------------
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        plan_store = store
        if plan_store is None:
            try:
                plan_store = build_store(config.store_config)
            except StoreError as e:
                # Sessions will be refused with 503 until this is fixed
                logger.error(f"[MAIN] Store unavailable: {e}")

        app.state.sessions = SessionRegistry(
            config,
            plan_store,
            client or GeminiClient(config),
            provider=provider,
            **controller_options,
        )
        logger.info("Backend started")
        yield

    app = FastAPI(
        title="ENEM Study Planner API",
        version="0.1.0",
        lifespan=lifespan,
    )

    # ---------------------------------------------------------------
    # Global error logging middleware
    # ---------------------------------------------------------------
    app.middleware("http")(log_exceptions)

    # ---------------------------------------------------------------
    # CORS settings
    # ---------------------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---------------------------------------------------------------
    # Routers
    # ---------------------------------------------------------------
    app.include_router(health.router,    prefix="/health",    tags=["Health"])
    app.include_router(studyplan.router, prefix="/studyplan", tags=["StudyPlan"])

    @app.get("/")
    async def root():
        return {
            "status": "ok",
            "message": "ENEM Study Planner API is running",
            "version": "0.1.0",
        }

    return app


app = create_app()

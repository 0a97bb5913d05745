"""FastAPI application: service wiring in the lifespan, routers per resource."""

import logging
from collections.abc import AsyncGenerator
from contextlib import AsyncExitStack, asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stillnoob.api.deps import set_dependencies, verify_api_key
from stillnoob.api.routes import analysis, characters, health, public, reports, scan
from stillnoob.config import get_settings
from stillnoob.db.engine import create_db_engine, create_session_factory, init_db
from stillnoob.pipeline.analysis import configure_analysis_cache
from stillnoob.pipeline.scanner import ReportScanner
from stillnoob.raiderio.client import RaiderIOClient
from stillnoob.wcl.factory import WCLFactory

logger = logging.getLogger(__name__)

CORS_ORIGINS = ["http://localhost:5173", "http://localhost:8000"]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    async with AsyncExitStack() as services:
        engine = create_db_engine(settings)
        await init_db(engine)
        services.push_async_callback(engine.dispose)
        session_factory = create_session_factory(engine)
        # Credentials in the URL stay out of the log
        logger.info("Database ready: %s", settings.db.url.rsplit("@", 1)[-1])

        configure_analysis_cache(
            settings.analysis.cache_ttl_seconds, settings.analysis.cache_max_entries,
        )

        wcl_factory = WCLFactory(settings)
        await wcl_factory.start()
        services.push_async_callback(wcl_factory.stop)

        raiderio = RaiderIOClient.from_settings(settings)
        await raiderio.start()
        services.push_async_callback(raiderio.stop)

        set_dependencies(session_factory, wcl_factory=wcl_factory, raiderio=raiderio)

        scanner = ReportScanner(settings, session_factory, wcl_factory, raiderio)
        scan.set_scanner(scanner)
        health.set_health_deps(session_factory=session_factory, scanner=scanner)
        await scanner.start()
        services.push_async_callback(scanner.stop)

        logger.info(
            "StillNoob API up (WCL %s, scanner %s)",
            "configured" if settings.wcl.has_credentials else "not configured",
            "enabled" if scanner.enabled else "disabled",
        )
        yield
    logger.info("StillNoob API shut down")


def create_app() -> FastAPI:
    app = FastAPI(title="StillNoob", version=health.VERSION, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["X-API-Key", "Content-Type"],
    )

    app.include_router(health.router)
    app.include_router(public.router)
    for module in (characters, reports, analysis, scan):
        app.include_router(module.router, dependencies=[Depends(verify_api_key)])
    return app

import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from codeexec.core.config import Settings, get_settings
from codeexec.core.logging import setup_logging
from codeexec.api.routers import execute as r_execute
from codeexec.services.execution import ExecutionCoordinator
from codeexec.services.sandbox import ContainerOrchestrator
from codeexec.store.fallback import build_store, describe_store


def build_coordinator(settings: Settings) -> ExecutionCoordinator:
    return ExecutionCoordinator(
        store=build_store(settings),
        orchestrator=ContainerOrchestrator(settings),
        settings=settings,
    )


def create_app(
    settings: Settings | None = None,
    coordinator: ExecutionCoordinator | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    started = time.monotonic()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        svc = coordinator or build_coordinator(settings)
        await svc.initialize()
        app.state.coordinator = svc
        yield
        await svc.shutdown()

    app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(r_execute.router, prefix=settings.API_PREFIX)

    @app.get("/health")
    async def health():
        svc = getattr(app.state, "coordinator", None)
        return {
            "status": "OK",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": time.monotonic() - started,
            "environment": settings.ENVIRONMENT,
            "store": describe_store(svc.store) if svc else None,
        }

    @app.get(settings.API_PREFIX)
    async def index():
        return {
            "message": "Code Execution Backend API",
            "version": settings.APP_VERSION,
            "endpoints": {
                "health": "/health",
                "execute": f"{settings.API_PREFIX}/execute (POST)",
                "status": f"{settings.API_PREFIX}/status/:id (GET)",
            },
        }

    return app


settings = get_settings()
setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)
app = create_app(settings)

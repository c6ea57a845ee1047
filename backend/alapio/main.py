# alapio/main.py

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.engine import Engine

from alapio.api import messages, realtime, users
from alapio.config import Settings, settings as default_settings
from alapio.core.errors import StorageError
from alapio.core.rate_limit import limiter
from alapio.infra.database import build_engine, build_session_factory, check_connection, init_db
from alapio.realtime.gateway import Gateway
from alapio.utils.logger import setup_logger

logger = logging.getLogger(__name__)


def create_app(settings: Settings = None, engine: Engine = None) -> FastAPI:
    settings = settings or default_settings
    engine = engine or build_engine(settings.database_url, settings.sql_echo)
    session_factory = build_session_factory(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_db(engine)
        logger.info("🚀 Alapio backend ready")
        yield
        engine.dispose()

    app = FastAPI(
        title="Alapio Backend",
        version="1.0.0",
        description="Real-time one-to-one chat: directory, history and presence",
        lifespan=lifespan,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.gateway = Gateway(
        session_factory,
        max_message_bytes=settings.max_message_bytes,
        idle_timeout=settings.idle_timeout_seconds,
    )

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.error(f"❌ Storage error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={"error": str(exc)})

    # Register routers
    app.include_router(users.router, tags=["Users"])
    app.include_router(messages.router, tags=["Messages"])
    app.include_router(realtime.router, tags=["Realtime"])

    @app.get("/health")
    def health_check():
        if not check_connection(engine):
            return JSONResponse(status_code=503, content={"status": "degraded", "database": "unavailable"})
        return {"status": "ok", "database": "ok"}

    return app


setup_logger(default_settings.log_level)

app = create_app()


def run():
    import uvicorn

    uvicorn.run(
        app,
        host=default_settings.host,
        port=default_settings.port,
        ws_max_size=default_settings.max_message_bytes,
        log_level=default_settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from officetrack.core.config import Settings, get_settings
from officetrack.core.database import build_engine, build_session_factory
from officetrack.core.exceptions import OfficeTrackError
from officetrack.core.security import TokenGate
from officetrack.middleware.identity import IdentityMiddleware
from officetrack.services.audit import AuditSink

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    engine = build_engine(settings)
    session_factory = build_session_factory(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await engine.dispose()

    app = FastAPI(
        title=settings.APP_NAME,
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.token_gate = TokenGate(settings)
    app.state.audit = AuditSink(session_factory)

    # Middleware (outermost first)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(IdentityMiddleware)

    @app.exception_handler(OfficeTrackError)
    async def handle_domain_error(request: Request, exc: OfficeTrackError):
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "success": False,
                "message": exc.detail,
                "error": type(exc).__name__,
            },
        )

    @app.exception_handler(SQLAlchemyError)
    async def handle_storage_error(request: Request, exc: SQLAlchemyError):
        logger.exception("Storage error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "message": "Internal storage error",
                "error": "StorageError",
            },
        )

    # ── Routers ───────────────────────────────────────────────────────────────
    from officetrack.api.v1.auth import router as auth_router
    from officetrack.api.v1.time_entries import router as time_entries_router
    from officetrack.api.v1.leave import router as leave_router
    from officetrack.api.v1.leave_types import router as leave_types_router

    app.include_router(auth_router, prefix="/api/v1")
    app.include_router(time_entries_router, prefix="/api/v1")
    app.include_router(leave_router, prefix="/api/v1")
    app.include_router(leave_types_router, prefix="/api/v1")

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "service": settings.APP_NAME}

    return app


app = create_app()

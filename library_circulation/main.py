import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from library_circulation.api import routes
from library_circulation.core.config import Settings, configure_logging
from library_circulation.core.database import Base, make_engine, make_session_factory
from library_circulation.core.errors import (
    CirculationError,
    Conflict,
    InvalidRequest,
    MemberNotFound,
    StoreUnavailable,
)
from library_circulation.services.circulation import CirculationService

logger = logging.getLogger("elibrary")

ERROR_STATUS = {
    MemberNotFound: 404,
    InvalidRequest: 422,
    Conflict: 409,
    StoreUnavailable: 503,
}


def status_for(exc: CirculationError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return 400


async def circulation_error_handler(request: Request, exc: CirculationError):
    return JSONResponse(status_code=status_for(exc), content={"detail": str(exc), "error": exc.kind})


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings)
    engine = make_engine(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Creating database tables (if not present)...")
        Base.metadata.create_all(bind=engine)
        yield
        engine.dispose()

    app = FastAPI(title="Library Circulation Service", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = make_session_factory(engine)
    app.state.circulation = CirculationService(app.state.session_factory,
                                               max_attempts=settings.borrow_attempts)
    app.add_exception_handler(CirculationError, circulation_error_handler)
    app.include_router(routes.router)

    @app.get("/health")
    def health():
        return {"status": "ok", "time": datetime.now(timezone.utc).isoformat()}

    return app


app = create_app()

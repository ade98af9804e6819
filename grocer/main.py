from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError
from starlette.middleware.sessions import SessionMiddleware

from .config import Settings
from .database import Database
from .errors import GrocerError, InternalError
from .logs import configure_logging
from .routers import ROUTERS
from .services import build_services

logger = structlog.get_logger(__name__)


# -------------------------
# Error translation
# -------------------------

def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    loc = [str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path")]
    field = ".".join(loc) if loc else "body"
    if first.get("type") == "missing":
        return f"Missing required field: {field}"
    if first.get("type") == "json_invalid":
        return "Invalid JSON in request body"
    return f"Invalid value for field '{field}': {first.get('msg')}"


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(GrocerError)
    async def grocer_error_handler(request: Request, exc: GrocerError):
        if isinstance(exc, InternalError):
            logger.error("internal_error", path=request.url.path, error=exc.message)
        return JSONResponse(status_code=exc.status_code, content={"message": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"message": _validation_message(exc)})

    @app.exception_handler(PyMongoError)
    async def store_error_handler(request: Request, exc: PyMongoError):
        logger.exception("store_error", path=request.url.path)
        return JSONResponse(status_code=500, content={"message": "Internal server error"})


# -------------------------
# App factory
# -------------------------

def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level, settings.log_json)
    database = database or Database(settings.database_url, settings.database_name)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database.connect()
        try:
            yield
        finally:
            database.close()

    app = FastAPI(title="Grocer Market API", lifespan=lifespan)
    app.state.settings = settings
    app.state.database = database
    app.state.services = build_services(database, settings)

    if settings.session_secret and settings.jwt_secret:
        app.add_middleware(SessionMiddleware, secret_key=settings.session_secret, same_site="lax")
    else:
        logger.warning("sessions_disabled", reason="no signing secret configured")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _install_error_handlers(app)
    for router in ROUTERS:
        app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port)

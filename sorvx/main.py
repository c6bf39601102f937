"""Sorvx AI chat backend - FastAPI app entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from sorvx.core.config import get_settings
from sorvx.core.errors import ChatbotError
from sorvx.core.log import setup_logging
from sorvx.db.base import Base
from sorvx.db.session import engine
from sorvx.routers import auth, chat

settings = get_settings()
setup_logging(settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # create tables (async); migrations live in alembic/
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("%s started", settings.app_name)

    yield
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    description="Chat with a hosted model; accounts with email password reset",
    lifespan=lifespan,
)

app.include_router(auth.router)
app.include_router(chat.router)


@app.exception_handler(ChatbotError)
async def chatbot_error_handler(request: Request, exc: ChatbotError):
    # Operator detail (exc args) stays in the log; the client gets the public message only.
    log = logger.error if exc.status_code >= 500 else logger.info
    log("%s %s -> %s %s: %s", request.method, request.url.path, exc.status_code, type(exc).__name__, exc)
    return JSONResponse({"error": exc.public_message}, status_code=exc.status_code)


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Unhandled database error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse({"error": "Service temporarily unavailable"}, status_code=503)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse({"error": "Invalid data"}, status_code=400)


@app.get("/health")
async def health():
    return {"status": "ok"}

"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from pageturner.api.auth_routes import router as auth_router
from pageturner.api.book_routes import router as books_router
from pageturner.api.chat_routes import router as chat_router
from pageturner.api.recommendation_routes import router as recommendation_router
from pageturner.api.search_routes import router as search_router
from pageturner.api.user_routes import router as user_router
from pageturner.core.config import settings
from pageturner.core.errors import (
    AppError,
    app_error_handler,
    http_error_handler,
    unhandled_error_handler,
)
from pageturner.infrastructure.database.connection import (
    create_engine,
    create_session_maker,
    init_db,
)
from pageturner.infrastructure.llm.services import build_llm_service
from pageturner.services.session_feedback import SessionFeedbackStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting PageTurner (provider=%s)", settings.llm_provider)
    engine = create_engine(settings.database_url)
    await init_db(engine)
    logger.info("Database initialized")
    app.state.session_maker = create_session_maker(engine)
    app.state.llm_service = build_llm_service(settings)
    app.state.feedback_store = SessionFeedbackStore()
    yield
    await engine.dispose()
    logger.info("Shutting down PageTurner")


app = FastAPI(
    title="PageTurner",
    description="Book discovery: title search, generated recommendations and reading lists",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(StarletteHTTPException, http_error_handler)
app.add_exception_handler(Exception, unhandled_error_handler)

app.include_router(auth_router)
app.include_router(search_router)
app.include_router(books_router)
app.include_router(recommendation_router)
app.include_router(chat_router)
app.include_router(user_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from lectern.config import settings
from lectern.database import dispose_db, init_db
from lectern.middleware import OriginCheckMiddleware, RequestSizeLimitMiddleware, limiter
from lectern.routes import ai, extraction, health
from lectern.services.ai.generation import close_clients
from lectern.services.posthog import shutdown_posthog

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    logger.info(f"Lectern API ready (origins: {', '.join(settings.cors_origins)})")
    yield
    await close_clients()
    shutdown_posthog()
    await dispose_db()


app = FastAPI(
    title="Lectern API",
    description="Page transcription and ghost-text completion for the course editor",
    version="0.1.0",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(RequestSizeLimitMiddleware)
app.add_middleware(OriginCheckMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(ai.router, prefix="/api/ai", tags=["ai"])
app.include_router(extraction.router, prefix="/api", tags=["extraction"])
app.include_router(health.router, prefix="/api/health", tags=["health"])

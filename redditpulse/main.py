from contextlib import asynccontextmanager
import asyncio

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from sqlalchemy import select, func
from sqlmodel import SQLModel

from redditpulse.api.routes import analytics, categories, category_requests, posts, scraper
from redditpulse.api.deps import AsyncDbDep
from redditpulse.core.settings import settings
from redditpulse.core.logger import logger
from redditpulse.db.database import async_engine
from redditpulse.db.models import Post


# ------------------------------------------------------------------
# Lifespan: create tables in dev
# ------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Reddit Pulse starting...")

    if settings.env == "dev":
        try:
            async with async_engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)
            logger.info("Dev tables created")
        except Exception:
            logger.error("Error creating dev tables", exc_info=True)
            raise

    yield

    try:
        await async_engine.dispose()
        logger.info("DB engine disposed")
    except Exception:
        logger.error("Error disposing engine", exc_info=True)


# ------------------------------------------------------------------
# FastAPI App
# ------------------------------------------------------------------
app = FastAPI(
    title="Reddit Pulse API",
    version="1.0.0",
    description="Subreddit post classification and analytics",
    lifespan=lifespan,
    docs_url="/docs" if settings.env != "prod" else None,
    redoc_url="/redoc" if settings.env != "prod" else None,
)


# ------------------------------------------------------------------
# CORS
# ------------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ------------------------------------------------------------------
# Global exception handler
# ------------------------------------------------------------------
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "status": "error",
            "data": None,
            "message": "Internal server error",
        },
    )


# ------------------------------------------------------------------
# Health check
# ------------------------------------------------------------------
CHECK_TIMEOUT = 5


@app.get("/health", tags=["system"])
async def health(db: AsyncDbDep):
    try:
        async with asyncio.timeout(CHECK_TIMEOUT):
            total = await db.scalar(select(func.count(Post.id)))

        return {
            "status": "ok",
            "db": "up",
            "subreddit": settings.subreddit,
            "total_posts": total,
        }

    except Exception as e:
        logger.error("Health check failed", exc_info=True)
        detail = str(e) if settings.env != "prod" else "unreachable"

        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "down",
                "db": "unreachable",
                "detail": detail,
            },
        )


# ------------------------------------------------------------------
# Readiness check
# ------------------------------------------------------------------
@app.get("/ready", tags=["system"])
async def ready(db: AsyncDbDep):
    try:
        async with asyncio.timeout(CHECK_TIMEOUT):
            await db.execute(select(1))

        return {"status": "ready"}

    except Exception as e:
        logger.error("Readiness check failed", exc_info=True)
        detail = str(e) if settings.env != "prod" else "not_ready"

        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "detail": detail},
        )


# ------------------------------------------------------------------
# Prometheus
# ------------------------------------------------------------------
app.mount("/metrics", make_asgi_app())


# ------------------------------------------------------------------
# Mount API routes
# ------------------------------------------------------------------
app.include_router(posts.router, prefix="/api", tags=["Posts"])
app.include_router(categories.router, prefix="/api", tags=["Categories"])
app.include_router(analytics.router, prefix="/api/analytics", tags=["Analytics"])
app.include_router(scraper.router, prefix="/api/scraper", tags=["Scraper"])
app.include_router(category_requests.router, prefix="/api", tags=["Category requests"])

"""
Outreach - AI key rotation and bulk email campaigns
Main FastAPI Application
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from outreach.config import get_settings

logger = logging.getLogger(__name__)


def _is_serverless() -> bool:
    """Check if running in serverless environment"""
    return bool(os.environ.get("VERCEL") or os.environ.get("AWS_LAMBDA_FUNCTION_NAME"))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler"""
    # Tables are managed externally in serverless deployments
    if not _is_serverless():
        from outreach.utils import init_db, close_db
        await init_db()
        yield
        await close_db()
    else:
        yield


def create_app() -> FastAPI:
    """Factory function to create FastAPI app"""
    settings = get_settings()

    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    application = FastAPI(
        title="Outreach API",
        description="""
        AI key rotation and bulk email campaigns

        ## Features
        - Multiple API keys per provider (OpenAI, Groq, Anthropic, Gemini)
        - Least-used key rotation with rate-limit cooldowns
        - Automatic provider fallback
        - AI-enhanced bulk email sends with live progress
        """,
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc" if settings.is_development else None,
    )

    # CORS middleware
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Global exception handler
    @application.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle unexpected errors"""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        settings = get_settings()
        if settings.DEBUG:
            return JSONResponse(
                status_code=500,
                content={
                    "detail": str(exc),
                    "type": type(exc).__name__,
                },
            )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    # Import and include API routes
    from outreach.api.routes import api_router
    application.include_router(api_router, prefix=f"/api/{settings.API_VERSION}")

    # Health check
    @application.get("/health")
    async def health_check():
        """Health check endpoint"""
        settings = get_settings()
        return {
            "status": "healthy",
            "version": "1.0.0",
            "environment": settings.APP_ENV,
        }

    @application.get("/")
    async def root():
        """Root endpoint"""
        return {
            "name": "Outreach API",
            "version": "1.0.0",
            "docs": "/docs",
        }

    return application


# Create the app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()

    uvicorn.run(
        "outreach.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.is_development,
        workers=1 if settings.is_development else settings.WORKERS,
    )

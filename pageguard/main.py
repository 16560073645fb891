"""
pageguard FastAPI Application
Prompt-injection scanning and sanitisation service
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pageguard import __version__
from pageguard.config import settings
from pageguard.routes import router
from pageguard.session import ScanSession

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.debug else logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    logger.info(f"Starting pageguard service on {settings.host}:{settings.port}")
    if getattr(app.state, "session", None) is None:
        app.state.session = ScanSession.from_settings(settings)
    session = app.state.session
    if session.classifier is not None:
        logger.info(f"Semantic analysis: in-process ({settings.embedding_provider})")
    elif settings.uses_remote_analysis():
        logger.info(f"Semantic analysis: remote ({settings.analysis_url})")
    else:
        logger.info("Semantic analysis: disabled")

    yield

    # Shutdown
    logger.info("Shutting down pageguard service")


# Create FastAPI application
app = FastAPI(
    title="pageguard",
    description="Prompt-injection detection and sanitisation for web documents",
    version=__version__,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router, prefix="/api")


# Health check endpoint (no auth required)
@app.get("/health")
async def health_check():
    """Basic health check endpoint"""
    session = getattr(app.state, "session", None)
    return {
        "status": "healthy",
        "service": "pageguard",
        "version": __version__,
        "semantic_enabled": bool(session is not None and session.classifier is not None),
        "remote_analysis": settings.uses_remote_analysis(),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "pageguard.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )

"""FastAPI application factory."""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..config import settings
from ..mapping.storage import TemplateStorage
from .routes import router

# Global template storage instance
_template_storage: Optional[TemplateStorage] = None


def get_template_storage() -> TemplateStorage:
    """Get the global template storage instance."""
    global _template_storage
    if _template_storage is None:
        _template_storage = TemplateStorage()
    return _template_storage


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    # Startup
    storage = get_template_storage()
    await storage.initialize()
    yield
    # Shutdown
    await storage.close()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Booking Mapper",
        description="Platform-aware booking import mapping engine",
        version="0.1.0",
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # API routes
    app.include_router(router, prefix="/api")

    return app

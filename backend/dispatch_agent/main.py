from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from typing import Optional
import logging

from .api.routes import api_router
from .core.config import Settings, get_settings
from .core.errors import RecordInUse, RecordStoreError
from .db import build_store
from .services.openai_client import OpenAIClient
from .services.retell_client import RetellClient

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),
        ]
    )


def create_app(settings: Optional[Settings] = None, store=None, generator=None, provider=None) -> FastAPI:
    """Build the application with its process-wide clients.

    Any client passed in replaces the one built from settings.
    """
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(title=settings.APP_NAME)
    app.state.settings = settings
    app.state.store = store if store is not None else build_store(settings)
    app.state.generator = generator if generator is not None else OpenAIClient(settings)
    app.state.provider = provider if provider is not None else RetellClient(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RecordInUse)
    async def record_in_use_handler(request: Request, exc: RecordInUse):
        return JSONResponse(status_code=409, content={"detail": "Agent config is still referenced by call logs"})

    @app.exception_handler(RecordStoreError)
    async def record_store_error_handler(request: Request, exc: RecordStoreError):
        logger.error(f"Record store error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={"detail": "Record store error"})

    app.include_router(api_router, prefix="/api")

    @app.get("/")
    async def root():
        return {"status": "ok"}

    return app


app = create_app()

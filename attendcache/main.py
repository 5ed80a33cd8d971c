from fastapi import FastAPI
from contextlib import asynccontextmanager
from typing import Optional
from attendcache.api.cache import router as cache_router
from attendcache.config.settings import settings
from attendcache.services.session import CacheContext
from attendcache.utils.log import app_logger


def create_app(context: Optional[CacheContext] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup logic
        app.state.cache_context = (context or CacheContext.from_settings(settings)).init()
        yield
        # Shutdown logic
        app.state.cache_context.teardown()

    app = FastAPI(lifespan=lifespan)

    # include routes
    app.include_router(cache_router)
    return app


app_logger.set_level(settings.LOG_LEVEL.upper())
app = create_app()

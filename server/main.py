from contextlib import asynccontextmanager
import asyncio
import logging
import os

from fastapi import FastAPI
from dotenv import load_dotenv

# Load the root .env file; in Docker the variables come from docker-compose.yml
env_file = os.path.join(os.path.dirname(__file__), '..', '.env')
if os.path.exists(env_file):
    load_dotenv(env_file)
else:
    load_dotenv(override=False)

from app.core.config import settings
from app.core.middleware import setup_middleware, setup_exception_handlers
from app.core.redis import initialize_redis, close_redis, is_redis_available
from app.features.cache.service import cache_service
from app.features.cache.invalidation import (
    subscribe_to_cache_invalidation,
    unsubscribe_from_cache_invalidation,
)
from app.features.system.routes import system_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await initialize_redis()

    # Multi-instance deployments share invalidations over pub/sub
    await subscribe_to_cache_invalidation()

    cleanup_task = asyncio.create_task(
        cache_service.run_memory_cleanup(settings.MEMORY_CACHE_CLEANUP_INTERVAL)
    )

    logger.info(f"🚀 {settings.APP_NAME} started ({settings.ENVIRONMENT})")
    logger.info(f"💓 Health check: http://{settings.HOST}:{settings.PORT}/system/health")
    logger.info(
        f"🔴 Redis: {'connected' if is_redis_available() else 'not available (using memory fallback)'}"
    )

    try:
        yield
    finally:
        logger.info("Shutting down gracefully...")
        cleanup_task.cancel()
        try:
            await cleanup_task
        except asyncio.CancelledError:
            pass
        await unsubscribe_from_cache_invalidation()
        await close_redis()


app = FastAPI(lifespan=lifespan, **settings.get_app_config())

setup_middleware(app)

setup_exception_handlers(app)

app.include_router(system_router)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)

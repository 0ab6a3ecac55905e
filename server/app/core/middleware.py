from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
import logging
import time

logger = logging.getLogger(__name__)

# Polled by load balancers, logged at DEBUG only
QUIET_PATHS = ('/system/health',)


def setup_middleware(app: FastAPI):
    """
    Configure application middleware
    """
    from .config import settings

    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next):
        start_time = time.time()
        client_host = request.client.host if request.client else "unknown"
        quiet = request.url.path in QUIET_PATHS

        if quiet:
            logger.debug(f"Incoming request: {request.method} {request.url.path} from {client_host}")
        else:
            logger.info(f"Incoming request: {request.method} {request.url.path} from {client_host}")

        response = await call_next(request)

        process_time = time.time() - start_time

        if response.status_code >= 500:
            logger.error(
                f"❌ Request {request.method} {request.url.path} failed | "
                f"Status: {response.status_code} | Time: {process_time:.4f}s"
            )
        elif response.status_code >= 400:
            logger.warning(
                f"⚠️ Request {request.method} {request.url.path} client error | "
                f"Status: {response.status_code} | Time: {process_time:.4f}s"
            )
        elif quiet:
            logger.debug(
                f"✅ Request {request.method} {request.url.path} | "
                f"Status: {response.status_code} | Time: {process_time:.4f}s"
            )
        else:
            logger.info(
                f"✅ Request {request.method} {request.url.path} succeeded | "
                f"Status: {response.status_code} | Time: {process_time:.4f}s"
            )

        return response

    app.add_middleware(
        CORSMiddleware,
        **settings.get_cors_config()
    )

    app.add_middleware(
        TrustedHostMiddleware,
        **settings.get_trusted_hosts_config()
    )


def setup_exception_handlers(app: FastAPI):
    """
    Configure global exception handlers
    """

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error: {str(exc)}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"}
        )

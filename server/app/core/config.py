import os
from typing import List
import logging


class Settings:
    """
    Application settings
    """

    # === GENERAL ===
    APP_NAME: str = "Palytt Backend API"
    APP_DESCRIPTION: str = "Cache and Redis infrastructure for the Palytt API"
    APP_VERSION: str = "1.0.0"

    # === SERVER ===
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))
    DEBUG: bool = os.getenv("DEBUG", "False").lower() == "true"
    ENVIRONMENT: str = os.getenv("ENVIRONMENT") or os.getenv("NODE_ENV", "development")

    # === REDIS ===
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379")
    REDIS_CONNECTION_PREFIX: str = "palytt"

    # === CACHE ===
    MEMORY_CACHE_MAX_SIZE: int = int(os.getenv("MEMORY_CACHE_MAX_SIZE", "1000"))
    MEMORY_CACHE_CLEANUP_INTERVAL: int = int(os.getenv("MEMORY_CACHE_CLEANUP_INTERVAL", "60"))
    CACHE_INVALIDATION_CHANNEL: str = "cache:invalidate"
    STALE_CACHE_CLEANUP_INTERVAL: int = int(os.getenv("STALE_CACHE_CLEANUP_INTERVAL", "3600"))

    # === CORS ===
    CORS_ORIGINS: List[str] = os.getenv("CORS_ORIGINS", "*").split(",")
    CORS_ALLOW_CREDENTIALS: bool = (
        os.getenv("CORS_ALLOW_CREDENTIALS", "True").lower() == "true"
    )
    CORS_ALLOW_METHODS: List[str] = os.getenv(
        "CORS_ALLOW_METHODS", "*"
    ).split(",")
    CORS_ALLOW_HEADERS: List[str] = os.getenv(
        "CORS_ALLOW_HEADERS", "*"
    ).split(",")

    # === SECURITY ===
    TRUSTED_HOSTS: List[str] = os.getenv("TRUSTED_HOSTS", "*").split(",")

    # === LOGGING ===
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    def setup_logging(self):
        """
        Configure application logging
        """
        logging.basicConfig(
            level=getattr(logging, self.LOG_LEVEL.upper()),
            format=self.LOG_FORMAT
        )

        if self.DEBUG:
            logging.getLogger("uvicorn").setLevel(logging.DEBUG)
            logging.getLogger("uvicorn.access").setLevel(logging.DEBUG)
        else:
            # redis-py logs every retried command at DEBUG/WARNING
            logging.getLogger("redis").setLevel(logging.WARNING)

    def get_cors_config(self) -> dict:
        """
        CORS middleware configuration
        """
        return {
            "allow_origins": self.CORS_ORIGINS,
            "allow_credentials": self.CORS_ALLOW_CREDENTIALS,
            "allow_methods": self.CORS_ALLOW_METHODS,
            "allow_headers": self.CORS_ALLOW_HEADERS,
        }

    def get_trusted_hosts_config(self) -> dict:
        """
        Trusted hosts middleware configuration
        """
        return {
            "allowed_hosts": self.TRUSTED_HOSTS
        }

    def get_app_config(self) -> dict:
        """
        FastAPI application configuration
        """
        return {
            "title": self.APP_NAME,
            "description": self.APP_DESCRIPTION,
            "version": self.APP_VERSION,
            "debug": self.DEBUG
        }


# Global settings instance
settings = Settings()

# Configure logging on import
settings.setup_logging()

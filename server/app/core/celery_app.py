"""
Celery configuration for background maintenance jobs
"""
from celery import Celery
import logging

from .config import settings

logger = logging.getLogger(__name__)

redis_url = settings.REDIS_URL
stale_cache_cleanup_interval = settings.STALE_CACHE_CLEANUP_INTERVAL

logger.info(f"Celery configuration:")
logger.info(f"  Redis URL: {redis_url}")
logger.info(
    f"  Stale cache cleanup interval: {stale_cache_cleanup_interval} seconds "
    f"({stale_cache_cleanup_interval/60:.1f} minutes)"
)

celery_app = Celery(
    "palytt",
    broker=redis_url,
    backend=redis_url,
    include=[
        "app.features.cache.tasks",
    ]
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    broker_connection_retry_on_startup=True,
    broker_connection_retry=True,
    broker_connection_max_retries=10,
    broker_connection_retry_delay=1.0,

    # Cleanup jobs run one at a time on their own queue
    task_routes={
        "app.features.cache.tasks.cleanup_stale_cache_task": {"queue": "cleanup_queue"},
        "app.features.cache.tasks.invalidate_pattern_task": {"queue": "cleanup_queue"},
    },

    beat_schedule={
        "cleanup-stale-cache": {
            "task": "app.features.cache.tasks.cleanup_stale_cache_task",
            "schedule": float(stale_cache_cleanup_interval),
        },
    },

    task_default_retry_delay=60,
    task_max_retries=3,

    worker_prefetch_multiplier=1,
    task_acks_late=True,
    worker_disable_rate_limits=True,

    # Completed job results are kept for 24 hours
    result_expires=24 * 3600,

    worker_log_format='[%(asctime)s: %(levelname)s/%(processName)s] %(message)s',
    worker_task_log_format='[%(asctime)s: %(levelname)s/%(processName)s][%(task_name)s(%(task_id)s)] %(message)s',
)

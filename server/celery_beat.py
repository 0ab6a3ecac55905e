#!/usr/bin/env python3
"""
Start Celery beat (scheduler) for periodic cache maintenance
"""
import os
import sys

sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from app.core.celery_app import celery_app

if __name__ == "__main__":
    celery_app.start([
        "beat",
        "--loglevel=info",
        "--scheduler=celery.beat:PersistentScheduler",
        f"--schedule={os.getenv('CELERY_BEAT_SCHEDULE_FILE', '/app/beat_data/celerybeat-schedule')}",
    ])

#!/usr/bin/env python3
"""
Start a Celery worker for cache maintenance jobs
"""
import os
import sys

sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from app.core.celery_app import celery_app

if __name__ == "__main__":
    celery_app.worker_main([
        "worker",
        "--loglevel=info",
        "--concurrency=1",  # cleanup jobs run one at a time
        "--queues=cleanup_queue",
    ])

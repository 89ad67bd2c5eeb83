"""
Celery Application Configuration
Queue-based extraction and optimization analysis
"""

import asyncio

from celery import Celery
from kombu import Queue, Exchange

from app.config import get_settings

settings = get_settings()

# Create Celery app
celery_app = Celery(
    "citation_engine",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "app.workers.tasks.citation_tasks",
        "app.workers.tasks.optimization_tasks",
    ]
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    result_expires=86400,  # 24 hours

    # Extraction is idempotent per result, so redelivery is safe
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=600,
    task_soft_time_limit=540,

    worker_prefetch_multiplier=1,

    task_default_retry_delay=30,
    task_max_retries=3,

    task_queues=(
        Queue("default", Exchange("default"), routing_key="default"),
        Queue("parsing", Exchange("parsing"), routing_key="parse"),
        Queue("optimization", Exchange("optimization"), routing_key="optimize"),
    ),

    task_default_queue="default",
    task_default_exchange="default",
    task_default_routing_key="default",

    task_routes={
        "app.workers.tasks.citation_tasks.*": {"queue": "parsing"},
        "app.workers.tasks.optimization_tasks.*": {"queue": "optimization"},
    },
)


def run_async(coro):
    """Run async function in sync context"""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()

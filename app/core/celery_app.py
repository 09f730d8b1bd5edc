"""
Celery application configuration.

Celery handles:
- Identity lifecycle events delivered over the broker
- Dispatching invitation requests to the identity system
- Retry logic
"""

import logging

from celery import Celery
from celery.signals import task_failure, task_success

from app.config import settings

logger = logging.getLogger(__name__)

# Create Celery app
celery_app = Celery(
    "storeadmin",
    broker=str(settings.redis_url),
    backend=str(settings.redis_url),
    include=[
        "app.features.identity.tasks",
    ]
)

# Celery configuration
celery_app.conf.update(
    # Task execution
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Task routing
    task_routes={
        "identity.*": {"queue": "identity"},
    },

    # Result backend
    result_expires=3600,  # Results expire after 1 hour

    # Task execution settings
    task_acks_late=True,  # Acknowledge after task completes
    task_reject_on_worker_lost=True,  # Requeue if worker dies
    task_time_limit=60,
    task_soft_time_limit=45,

    # Worker settings
    worker_prefetch_multiplier=4,
    worker_max_tasks_per_child=1000,

    # Retry settings
    task_default_max_retries=3,
    task_default_retry_delay=10,

    # Monitoring
    worker_send_task_events=True,
    task_send_sent_event=True,
)


# Task event handlers
@task_success.connect
def task_success_handler(sender=None, result=None, **kwargs):
    """Log successful task completion."""
    logger.info(f"Task succeeded: {sender.name}")


@task_failure.connect
def task_failure_handler(sender=None, exception=None, **kwargs):
    """Log task failures."""
    logger.error(f"Task failed: {sender.name} - {exception}")

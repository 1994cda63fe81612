"""
Background job definitions.
"""
from datetime import datetime, timezone

from redis import Redis
from rq import Queue
from rq_scheduler import Scheduler

from storefront.core.config import settings
from storefront.core.logging import get_logger

logger = get_logger(__name__)

IDEMPOTENCY_PURGE_INTERVAL_SECONDS = 3600


def get_queue(name: str = "default") -> Queue:
    """Get RQ queue."""
    redis_conn = Redis.from_url(settings.REDIS_URL)
    return Queue(name, connection=redis_conn)


def get_scheduler() -> Scheduler:
    """Get RQ scheduler."""
    redis_conn = Redis.from_url(settings.REDIS_URL)
    return Scheduler(connection=redis_conn)


# ============= JOB FUNCTIONS =============

def purge_idempotency_records_job() -> int:
    """Delete idempotency records whose TTL has passed."""
    from storefront.db.session import get_db_context
    from storefront.services.idempotency import IdempotencyCache

    with get_db_context() as db:
        removed = IdempotencyCache(db).purge_expired()

    logger.info(f"Purged {removed} expired idempotency records")
    return removed


# ============= QUEUE HELPERS =============

def enqueue_idempotency_purge():
    """Queue an immediate idempotency purge."""
    queue = get_queue("low")
    return queue.enqueue(purge_idempotency_records_job)


def setup_scheduled_jobs():
    """Setup scheduled jobs."""
    scheduler = get_scheduler()

    scheduler.schedule(
        scheduled_time=datetime.now(timezone.utc),
        func=purge_idempotency_records_job,
        interval=IDEMPOTENCY_PURGE_INTERVAL_SECONDS,
        repeat=None,
        queue_name="low",
    )

    logger.info("Scheduled jobs configured")

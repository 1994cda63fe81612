"""
Background worker using RQ (Redis Queue).

Run with ``python -m storefront.workers.worker``; pass ``--with-scheduler``
to also register the periodic jobs.
"""
import sys

from redis import Redis
from rq import Worker, Queue

from storefront.core.config import settings
from storefront.core.logging import setup_logging, get_logger
from storefront.workers.jobs import setup_scheduled_jobs

setup_logging()
logger = get_logger(__name__)


def run_worker(with_scheduler: bool = False):
    """Start the RQ worker."""
    redis_conn = Redis.from_url(settings.REDIS_URL)

    if with_scheduler:
        setup_scheduled_jobs()

    worker = Worker(
        queues=[
            Queue("high", connection=redis_conn),
            Queue("default", connection=redis_conn),
            Queue("low", connection=redis_conn),
        ],
        connection=redis_conn,
        name="storefront-worker",
    )
    logger.info("Starting storefront worker...")
    worker.work()


if __name__ == "__main__":
    run_worker(with_scheduler="--with-scheduler" in sys.argv[1:])

#!/usr/bin/env python3
"""
RQ Worker for background matching tasks.

Processes dispatch and digest tasks enqueued by BackgroundTaskRunner.

Usage:
    python -m notification.worker
    python -m notification.worker --burst
    python -m notification.worker --queues matching --verbose
"""

import os
import sys
import argparse
import logging
from typing import List, Optional

from redis import Redis
from rq import Worker

logger = logging.getLogger(__name__)

DEFAULT_QUEUE = "matching"


def start_worker(burst: bool = False, queues: Optional[List[str]] = None, redis_url: Optional[str] = None):
    """Start the RQ worker."""
    redis_url = redis_url or os.environ.get('REDIS_URL', 'redis://localhost:6379/0')

    if queues is None:
        queues = [DEFAULT_QUEUE]

    logger.info(f"Starting RQ worker on queues: {', '.join(queues)} (burst={burst})")

    try:
        redis_conn = Redis.from_url(redis_url)
        redis_conn.ping()
        logger.info("Connected to Redis")

        worker = Worker(queues, connection=redis_conn)
        worker.work(burst=burst)
    except KeyboardInterrupt:
        logger.info("Worker stopped")
    except Exception as e:
        logger.error(f"Worker error: {e}")
        sys.exit(1)


def main():
    parser = argparse.ArgumentParser(description='Matching background worker')
    parser.add_argument('--burst', action='store_true', help='Process all and exit')
    parser.add_argument('--queues', nargs='+', default=[DEFAULT_QUEUE])
    parser.add_argument('--verbose', action='store_true')

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    start_worker(burst=args.burst, queues=args.queues)


if __name__ == '__main__':
    main()

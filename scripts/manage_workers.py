"""
Worker management utilities for the identity event queue.
"""

import subprocess
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))


def start_worker(concurrency: int = 2, queues: str = "identity"):
    """Start a Celery worker consuming identity lifecycle events."""
    cmd = [
        "celery", "-A", "app.core.celery_app",
        "worker",
        "--loglevel=info",
        f"--concurrency={concurrency}",
        f"--queues={queues}",
    ]

    print(f"Starting worker with command: {' '.join(cmd)}")
    subprocess.run(cmd)


def purge_queue(queue: str = "identity"):
    """Purge all tasks from a queue."""
    cmd = [
        "celery", "-A", "app.core.celery_app",
        "purge",
        "-Q", queue,
        "-f",  # Force, no confirmation
    ]

    print(f"Purging queue: {queue}")
    subprocess.run(cmd)


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Manage Celery workers")
    parser.add_argument("command", choices=["worker", "purge"])
    parser.add_argument("--concurrency", type=int, default=2)
    parser.add_argument("--queues", default="identity")
    parser.add_argument("--queue", default="identity", help="Queue to purge")

    args = parser.parse_args()

    if args.command == "worker":
        start_worker(args.concurrency, args.queues)
    elif args.command == "purge":
        purge_queue(args.queue)

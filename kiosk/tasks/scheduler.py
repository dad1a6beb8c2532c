# kiosk/tasks/scheduler.py
"""
In-process alternative to Celery beat: each job runs on its own daemon
thread every `interval` seconds. Used by the API process for the memory
cache sweep, and runnable on its own:

    python -m kiosk.tasks.scheduler
"""
import signal
import threading
from dataclasses import dataclass
from typing import Callable, List

from kiosk.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class Job:
    name: str
    interval: float
    func: Callable[[], object]
    run_at_start: bool = False


class IntervalScheduler:
    def __init__(self):
        self.jobs: List[Job] = []
        self._stop = threading.Event()
        self._threads: List[threading.Thread] = []

    def add_job(self, name: str, interval: float, func: Callable[[], object], run_at_start: bool = False) -> Job:
        job = Job(name=name, interval=interval, func=func, run_at_start=run_at_start)
        self.jobs.append(job)
        return job

    def run_job(self, job: Job) -> bool:
        """One execution; a failing job is logged and tried again next tick."""
        try:
            job.func()
            return True
        except Exception as e:
            logger.exception(f"Job {job.name} failed: {e}")
            return False

    def _loop(self, job: Job):
        if job.run_at_start:
            self.run_job(job)
        while not self._stop.wait(job.interval):
            self.run_job(job)

    def start(self):
        self._stop.clear()
        for job in self.jobs:
            t = threading.Thread(target=self._loop, args=(job,), name=f"job-{job.name}", daemon=True)
            t.start()
            self._threads.append(t)
            logger.info(f"Scheduled {job.name} every {job.interval:g}s")

    def stop(self, timeout: float = 5.0):
        self._stop.set()
        for t in self._threads:
            t.join(timeout)
        self._threads.clear()

    @property
    def running(self) -> bool:
        return any(t.is_alive() for t in self._threads)

    def wait(self):
        self._stop.wait()


def build_worker_scheduler() -> IntervalScheduler:
    from kiosk.services.gateway_client import build_gateway
    from kiosk.tasks.cleanup import cleanup_payment_intents
    from kiosk.tasks.expire import expire_pending_orders
    from kiosk.utils.settings import (
        CLEANUP_INTENTS_INTERVAL_SECONDS,
        EXPIRE_ORDERS_INTERVAL_SECONDS,
        MP_DEVICE_ID,
    )

    gateway = build_gateway()
    scheduler = IntervalScheduler()
    scheduler.add_job(
        "cleanup-payment-intents",
        CLEANUP_INTENTS_INTERVAL_SECONDS,
        lambda: cleanup_payment_intents(gateway, MP_DEVICE_ID or None),
    )
    scheduler.add_job(
        "expire-pending-orders",
        EXPIRE_ORDERS_INTERVAL_SECONDS,
        expire_pending_orders,
        run_at_start=True,
    )
    return scheduler


def main():
    scheduler = build_worker_scheduler()

    def _shutdown(signum, frame):
        logger.info(f"Signal {signum} received, stopping workers")
        scheduler.stop()

    signal.signal(signal.SIGTERM, _shutdown)
    signal.signal(signal.SIGINT, _shutdown)

    scheduler.start()
    scheduler.wait()
    logger.info("Workers stopped")


if __name__ == "__main__":
    main()

# kiosk/services/poller.py
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from kiosk.domain.errors import GatewayUnavailable
from kiosk.domain.statuses import TERMINAL_STATUSES, GatewayStatus
from kiosk.utils.logging import get_logger

logger = get_logger(__name__)


class PollState(str, Enum):
    WATCHING = "watching"
    RESOLVED = "resolved"
    TIMED_OUT = "timed_out"
    CANCELED = "canceled"


@dataclass
class PollOutcome:
    state: PollState
    status: GatewayStatus | None = None
    attempts: int = 0


class PaymentPoller:
    """
    Watches one payment until it is approved, fails, times out or the
    watcher is canceled. `check` returns the current GatewayStatus.

    The interval grows by `backoff` after every unchanged answer, up to
    `max_interval`. A gateway outage only costs an attempt.
    """

    def __init__(
        self,
        check: Callable[[], GatewayStatus],
        interval: float = 3.0,
        max_interval: float = 15.0,
        backoff: float = 1.5,
        timeout: float = 300.0,
        sleep: Callable[[float], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.check = check
        self.interval = interval
        self.max_interval = max_interval
        self.backoff = backoff
        self.timeout = timeout
        self.clock = clock
        self.state = PollState.WATCHING
        self._canceled = threading.Event()
        self._sleep = sleep or self._canceled.wait

    def cancel(self):
        self._canceled.set()

    def run(self) -> PollOutcome:
        deadline = self.clock() + self.timeout
        delay = self.interval
        attempts = 0
        last: GatewayStatus | None = None

        while True:
            if self._canceled.is_set():
                return self._finish(PollState.CANCELED, last, attempts)

            attempts += 1
            try:
                last = self.check()
            except GatewayUnavailable as e:
                logger.warning(f"Status poll #{attempts} failed, still watching: {e}")
            else:
                if last in TERMINAL_STATUSES:
                    return self._finish(PollState.RESOLVED, last, attempts)

            if self.clock() + delay > deadline:
                return self._finish(PollState.TIMED_OUT, last, attempts)

            self._sleep(delay)
            delay = min(delay * self.backoff, self.max_interval)

    def _finish(self, state: PollState, status: GatewayStatus | None, attempts: int) -> PollOutcome:
        self.state = state
        logger.info(f"Payment poll finished: {state.value} after {attempts} attempt(s), last status {status}")
        return PollOutcome(state=state, status=status, attempts=attempts)

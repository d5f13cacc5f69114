"""Completion polling: wait for a session to settle at its prompt.

A single idle reading is not trusted; the prompt can flash between tool
calls. The poller ticks at a fixed interval under a hard ceiling and
hands every reading to an IdleDebouncer.
"""

import logging
import time
from collections.abc import Callable

from ccc.models.state import AgentState

logger = logging.getLogger(__name__)

# Consecutive idle readings required to call the agent finished
IDLE_READINGS_REQUIRED = 2


class IdleDebouncer:
    """Counts consecutive idle readings.

    BUSY resets the count. UNKNOWN, STARTING and ABSENT neither count
    nor reset it.
    """

    def __init__(self, required: int = IDLE_READINGS_REQUIRED):
        self.required = required
        self.count = 0

    def feed(self, state: AgentState) -> bool:
        """Record a reading.

        Returns:
            True once the required number of idle readings is reached.
        """
        if state == AgentState.IDLE:
            self.count += 1
        elif state == AgentState.BUSY:
            self.count = 0
        return self.settled

    @property
    def settled(self) -> bool:
        return self.count >= self.required

    def reset(self) -> None:
        self.count = 0


class CompletionPoller:
    """Ticker plus ceiling plus debounce.

    Clock and sleep are injectable so tests can drive it with a fake
    clock and scripted readings.
    """

    def __init__(
        self,
        interval: float,
        timeout: float,
        warmup: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the poller.

        Args:
            interval: Seconds between readings.
            timeout: Hard ceiling in seconds, measured from the start of wait().
            warmup: Seconds to sleep before the first reading.
            clock: Monotonic time source.
            sleep: Sleep function.
        """
        self.interval = interval
        self.timeout = timeout
        self.warmup = warmup
        self._clock = clock
        self._sleep = sleep

    def wait(self, read_state: Callable[[], AgentState]) -> bool:
        """Poll until settled or the ceiling is breached.

        Args:
            read_state: Returns the current classification on each tick.

        Returns:
            True on settlement, False on timeout.
        """
        debouncer = IdleDebouncer()
        start = self._clock()

        if self.warmup:
            self._sleep(self.warmup)

        while True:
            if self._clock() - start >= self.timeout:
                logger.debug(f"Completion poll hit ceiling after {self.timeout:g}s")
                return False

            self._sleep(self.interval)
            if debouncer.feed(read_state()):
                return True

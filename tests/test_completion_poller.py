"""Tests for IdleDebouncer and CompletionPoller."""

from fakes import FakeClock

from ccc.models.state import AgentState
from ccc.services.completion_poller import CompletionPoller, IdleDebouncer

IDLE = AgentState.IDLE
BUSY = AgentState.BUSY
UNKNOWN = AgentState.UNKNOWN


def scripted(readings):
    """read_state callable returning readings in order, repeating the last."""
    readings = list(readings)
    calls = []

    def read_state():
        calls.append(1)
        return readings.pop(0) if len(readings) > 1 else readings[0]

    read_state.calls = calls
    return read_state


class TestIdleDebouncer:
    """Tests for the consecutive-idle counter."""

    def test_two_idle_readings_settle(self):
        """Two idle readings in a row settle."""
        debouncer = IdleDebouncer()
        assert debouncer.feed(IDLE) is False
        assert debouncer.feed(IDLE) is True

    def test_busy_resets(self):
        """A busy reading between idles starts the count over."""
        debouncer = IdleDebouncer()
        debouncer.feed(IDLE)
        debouncer.feed(BUSY)
        assert debouncer.feed(IDLE) is False
        assert debouncer.feed(IDLE) is True

    def test_unknown_neither_counts_nor_resets(self):
        """Unknown readings are skipped."""
        debouncer = IdleDebouncer()
        debouncer.feed(IDLE)
        assert debouncer.feed(UNKNOWN) is False
        assert debouncer.count == 1
        assert debouncer.feed(IDLE) is True

    def test_starting_and_absent_are_skipped(self):
        """Starting and absent readings leave the count alone."""
        debouncer = IdleDebouncer()
        debouncer.feed(IDLE)
        debouncer.feed(AgentState.STARTING)
        debouncer.feed(AgentState.ABSENT)
        assert debouncer.count == 1

    def test_reset(self):
        """reset() clears the count."""
        debouncer = IdleDebouncer()
        debouncer.feed(IDLE)
        debouncer.reset()
        assert debouncer.count == 0
        assert debouncer.settled is False


class TestCompletionPoller:
    """Tests for the tick/ceiling/debounce loop."""

    def test_settles_after_two_idle_readings(self):
        """Returns True once two consecutive idle readings arrive."""
        clock = FakeClock()
        poller = CompletionPoller(interval=2, timeout=60, clock=clock, sleep=clock.sleep)
        read_state = scripted([BUSY, IDLE, BUSY, IDLE, IDLE])

        assert poller.wait(read_state) is True
        assert len(read_state.calls) == 5

    def test_single_idle_flash_does_not_settle(self):
        """One idle reading between busy ones is not completion."""
        clock = FakeClock()
        poller = CompletionPoller(interval=1, timeout=4, clock=clock, sleep=clock.sleep)

        assert poller.wait(scripted([IDLE, BUSY, IDLE, BUSY])) is False

    def test_times_out_at_ceiling(self):
        """A session that never settles hits the ceiling."""
        clock = FakeClock()
        poller = CompletionPoller(interval=1, timeout=5, clock=clock, sleep=clock.sleep)
        read_state = scripted([BUSY])

        assert poller.wait(read_state) is False
        assert len(read_state.calls) == 5
        assert clock.now == 5

    def test_warmup_sleeps_before_first_reading(self):
        """The warmup delay comes before the first tick."""
        clock = FakeClock()
        poller = CompletionPoller(
            interval=2, timeout=60, warmup=0.5, clock=clock, sleep=clock.sleep
        )

        poller.wait(scripted([IDLE]))

        assert clock.sleeps == [0.5, 2, 2]

    def test_unknown_readings_do_not_block_settlement(self):
        """Unknown readings between idles still settle."""
        clock = FakeClock()
        poller = CompletionPoller(interval=1, timeout=60, clock=clock, sleep=clock.sleep)

        assert poller.wait(scripted([IDLE, UNKNOWN, IDLE])) is True

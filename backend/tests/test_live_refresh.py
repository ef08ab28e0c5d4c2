import threading

import pytest

from kashpos.services.live_refresh import LiveEarningsPoller
from kashpos.services.record_store import FetchError


def test_poll_once_hands_result_to_callback():
    updates = []
    poller = LiveEarningsPoller(lambda: {"revenue_cents": 100}, interval=1, on_update=updates.append)

    assert poller.poll_once() == {"revenue_cents": 100}
    assert updates == [{"revenue_cents": 100}]
    assert poller.last_result == {"revenue_cents": 100}


def test_fetch_error_is_reported_and_polling_continues():
    results = iter([FetchError("database is locked"), {"revenue_cents": 5}])
    errors, updates = [], []

    def fetch():
        item = next(results)
        if isinstance(item, Exception):
            raise item
        return item

    poller = LiveEarningsPoller(fetch, interval=0.01, on_update=updates.append, on_error=errors.append)
    poller.run(max_polls=2)

    assert [str(e) for e in errors] == ["database is locked"]
    assert updates == [{"revenue_cents": 5}]
    assert (poller.polls, poller.failures) == (2, 1)


def test_unexpected_error_stops_polling():
    def fetch():
        raise RuntimeError("bug")

    with pytest.raises(RuntimeError):
        LiveEarningsPoller(fetch, interval=0.01).run(max_polls=3)


def test_start_and_stop_background_thread():
    polled = threading.Event()
    poller = LiveEarningsPoller(lambda: polled.set(), interval=60)

    poller.start()
    assert polled.wait(timeout=5)
    assert poller.running

    poller.stop(timeout=5)
    assert not poller.running


def test_interval_must_be_positive():
    with pytest.raises(ValueError):
        LiveEarningsPoller(lambda: None, interval=0)


class TickingClock:
    """Monotonic clock that moves forward only when fetch() runs."""

    def __init__(self, step):
        self.now = 0.0
        self.step = step

    def __call__(self):
        return self.now

    def tick(self):
        self.now += self.step
        return self.now


def test_stops_when_consumer_sends_no_heartbeats():
    clock = TickingClock(step=10)
    poller = LiveEarningsPoller(clock.tick, interval=0.001, idle_timeout=25, clock=clock)

    poller.run()

    # Polls at t=0, 10, 20; idle check at t=30 ends the loop
    assert poller.polls == 3
    assert poller.stopped_idle


def test_heartbeats_keep_the_poller_alive():
    clock = TickingClock(step=10)

    def on_update(now):
        if now <= 20:
            poller.heartbeat()

    poller = LiveEarningsPoller(clock.tick, interval=0.001, idle_timeout=25, on_update=on_update, clock=clock)
    poller.run()

    # Last heartbeat at t=20; polls continue until t=50 is 30s quiet
    assert poller.polls == 5
    assert poller.stopped_idle


def test_background_poller_stops_itself_when_idle():
    clock = TickingClock(step=10)
    poller = LiveEarningsPoller(clock.tick, interval=0.001, idle_timeout=5, clock=clock)

    poller.start()
    poller._thread.join(timeout=5)

    assert not poller.running
    assert poller.stopped_idle
    assert poller.polls == 1


def test_without_idle_timeout_heartbeats_are_optional():
    clock = TickingClock(step=1000)
    poller = LiveEarningsPoller(clock.tick, interval=0.001, clock=clock)

    poller.run(max_polls=4)

    assert poller.polls == 4
    assert not poller.stopped_idle


def test_idle_timeout_must_be_positive():
    with pytest.raises(ValueError):
        LiveEarningsPoller(lambda: None, interval=1, idle_timeout=0)

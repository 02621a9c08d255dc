"""Tests for the request scheduler."""

import threading

import pytest

from runstreak.sync.rate_limiter import RequestScheduler


class FakeClock:
    """Monotonic clock advanced only by sleep()."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class TestRequestScheduler:
    """Tests for RequestScheduler."""

    def setup_method(self):
        """Set up a small-budget scheduler on a fake clock."""
        self.clock = FakeClock()
        self.scheduler = RequestScheduler(
            reservoir=3,
            refresh_interval=900,
            min_time=0.2,
            clock=self.clock,
            sleep=self.clock.sleep,
        )

    def test_returns_job_result(self):
        """schedule() returns whatever the job returns."""
        assert self.scheduler.schedule(lambda: 42) == 42

    def test_each_admission_spends_budget(self):
        """Every admitted job draws one unit from the reservoir."""
        self.scheduler.schedule(lambda: None)
        self.scheduler.schedule(lambda: None)

        assert self.scheduler.remaining == 1

    def test_failed_job_still_spends_budget(self):
        """A job that raises still counts against the budget."""
        def boom():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            self.scheduler.schedule(boom)

        assert self.scheduler.remaining == 2

    def test_min_time_between_requests(self):
        """Consecutive admissions are at least min_time apart."""
        starts = []
        for _ in range(3):
            self.scheduler.schedule(lambda: starts.append(self.clock.now))

        assert starts == [0.0, pytest.approx(0.2), pytest.approx(0.4)]

    def test_no_wait_when_spacing_already_elapsed(self):
        """Requests far enough apart are admitted immediately."""
        self.scheduler.schedule(lambda: None)
        self.clock.now += 5
        self.scheduler.schedule(lambda: None)

        assert self.clock.sleeps == []

    def test_empty_reservoir_waits_for_window_refill(self):
        """When the bucket is empty the next job waits for the window boundary."""
        for _ in range(3):
            self.scheduler.schedule(lambda: None)
        assert self.scheduler.remaining == 0

        started_at = self.scheduler.schedule(lambda: self.clock.now)

        assert started_at == pytest.approx(900)
        assert self.scheduler.remaining == 2

    def test_refill_is_full_after_idle_windows(self):
        """Several idle windows still refill to capacity, not beyond."""
        self.scheduler.schedule(lambda: None)
        self.clock.now = 2700.5

        assert self.scheduler.remaining == 3

    def test_invalid_reservoir(self):
        """A scheduler needs room for at least one request."""
        with pytest.raises(ValueError):
            RequestScheduler(reservoir=0)

    def test_jobs_never_overlap(self):
        """Concurrent callers are serialized."""
        scheduler = RequestScheduler(reservoir=100, min_time=0)
        active = []
        overlaps = []
        lock = threading.Lock()

        def job():
            with lock:
                active.append(1)
                if len(active) > 1:
                    overlaps.append(True)
            with lock:
                active.pop()

        threads = [threading.Thread(target=scheduler.schedule, args=(job,)) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert overlaps == []
        assert scheduler.remaining == 90

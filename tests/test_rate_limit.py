"""Unit tests for cadence.services.rate_limit."""

import threading
import unittest
from datetime import timedelta

from cadence.services.rate_limit import SlidingWindowLimiter
from tests.helpers import FakeClock


class TestSlidingWindow(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = FakeClock()
        self.limiter = SlidingWindowLimiter(3, clock=self.clock)

    def test_allows_up_to_budget(self) -> None:
        for _ in range(3):
            self.assertTrue(self.limiter.hit("10.0.0.1").allowed)
        decision = self.limiter.hit("10.0.0.1")
        self.assertFalse(decision.allowed)
        self.assertEqual(decision.retry_after, 60)

    def test_keys_are_independent(self) -> None:
        for _ in range(3):
            self.limiter.hit("10.0.0.1")
        self.assertTrue(self.limiter.hit("10.0.0.2").allowed)

    def test_oldest_hit_leaves_window(self) -> None:
        self.limiter.hit("k")
        self.clock.advance(seconds=30)
        self.limiter.hit("k")
        self.limiter.hit("k")
        decision = self.limiter.hit("k")
        self.assertFalse(decision.allowed)
        self.assertEqual(decision.retry_after, 30)
        self.clock.advance(seconds=30)
        self.assertTrue(self.limiter.hit("k").allowed)

    def test_refused_hits_are_not_counted(self) -> None:
        for _ in range(3):
            self.limiter.hit("k")
        for _ in range(20):
            self.limiter.hit("k")
        self.clock.advance(minutes=1)
        self.assertTrue(self.limiter.hit("k").allowed)

    def test_zero_budget_disables(self) -> None:
        limiter = SlidingWindowLimiter(0, clock=self.clock)
        self.assertFalse(limiter.enabled)
        for _ in range(100):
            self.assertTrue(limiter.hit("k").allowed)
        self.assertEqual(len(limiter), 0)

    def test_negative_budget_rejected(self) -> None:
        with self.assertRaises(ValueError):
            SlidingWindowLimiter(-1)

    def test_purge_drops_idle_keys(self) -> None:
        self.limiter.hit("old")
        self.clock.advance(seconds=45)
        self.limiter.hit("new")
        self.clock.advance(seconds=20)
        self.assertEqual(self.limiter.purge_expired(), 1)
        self.assertEqual(len(self.limiter), 1)

    def test_custom_window(self) -> None:
        limiter = SlidingWindowLimiter(1, window=timedelta(seconds=5), clock=self.clock)
        limiter.hit("k")
        self.assertEqual(limiter.hit("k").retry_after, 5)


class TestConcurrentHits(unittest.TestCase):
    def test_budget_holds_under_contention(self) -> None:
        limiter = SlidingWindowLimiter(50, clock=FakeClock())
        allowed: list[bool] = []
        barrier = threading.Barrier(16)

        def worker() -> None:
            barrier.wait()
            for _ in range(10):
                allowed.append(limiter.hit("shared").allowed)

        threads = [threading.Thread(target=worker) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(allowed.count(True), 50)
        self.assertEqual(len(allowed), 160)


if __name__ == "__main__":
    unittest.main()

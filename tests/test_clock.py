"""Tests for engine.clock with a hand-driven clock."""

import unittest

from engine.clock import Stopwatch, Throttle


class FakeClock:
    def __init__(self, now: float = 100.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestStopwatch(unittest.TestCase):
    def test_elapsed(self):
        clock = FakeClock()
        sw = Stopwatch(clock)
        clock.now += 2.5
        self.assertAlmostEqual(sw.elapsed(), 2.5)

    def test_reset(self):
        clock = FakeClock()
        sw = Stopwatch(clock)
        clock.now += 5
        sw.reset()
        clock.now += 1
        self.assertAlmostEqual(sw.elapsed(), 1.0)


class TestThrottle(unittest.TestCase):
    def test_waits_a_full_interval_first(self):
        clock = FakeClock()
        t = Throttle(0.25, clock)
        self.assertFalse(t.ready())
        clock.now += 0.125
        self.assertFalse(t.ready())
        clock.now += 0.125
        self.assertTrue(t.ready())

    def test_at_most_once_per_interval(self):
        clock = FakeClock()
        t = Throttle(0.25, clock)
        fired = 0
        for _ in range(64):  # 4 seconds in 62.5 ms steps
            clock.now += 0.0625
            if t.ready():
                fired += 1
        self.assertEqual(fired, 16)

    def test_zero_interval_always_ready(self):
        t = Throttle(0.0, FakeClock())
        self.assertTrue(t.ready())
        self.assertTrue(t.ready())

    def test_reset(self):
        clock = FakeClock()
        t = Throttle(1.0, clock)
        clock.now += 0.9
        t.reset()
        clock.now += 0.5
        self.assertFalse(t.ready())


if __name__ == "__main__":
    unittest.main()

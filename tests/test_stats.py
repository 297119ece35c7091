"""Unit tests for engine.stats -- throughput arithmetic and the rolling window."""

import unittest

from engine.stats import RollingWindow, format_latency, format_rate, throughput_mbs


class TestThroughput(unittest.TestCase):
    def test_ten_mib_in_two_seconds(self):
        speed = throughput_mbs(10_485_760, 2)
        self.assertAlmostEqual(speed, 5.0)
        self.assertEqual(format_rate(speed), "5.00 MB/s")

    def test_buffered_upload_figure(self):
        speed = throughput_mbs(5_242_880, 1.25)
        self.assertEqual(format_rate(speed), "4.00 MB/s")

    def test_zero_elapsed(self):
        self.assertEqual(throughput_mbs(1024, 0), 0.0)

    def test_negative_elapsed(self):
        self.assertEqual(throughput_mbs(1024, -1.0), 0.0)

    def test_uses_binary_megabytes(self):
        self.assertAlmostEqual(throughput_mbs(1_000_000, 1.0), 0.9537, places=4)


class TestFormatting(unittest.TestCase):
    def test_rate_two_decimals(self):
        self.assertEqual(format_rate(0), "0.00 MB/s")
        self.assertEqual(format_rate(12.345), "12.35 MB/s")

    def test_latency_one_decimal(self):
        self.assertEqual(format_latency(23.44), "23.4 ms")
        self.assertEqual(format_latency(10.5), "10.5 ms")


class TestRollingWindow(unittest.TestCase):
    def test_empty(self):
        w = RollingWindow()
        self.assertEqual(len(w), 0)
        self.assertFalse(w)
        self.assertEqual(w.average(), 0.0)

    def test_keeps_last_ten(self):
        w = RollingWindow(10)
        w.extend(float(i) for i in range(1, 16))
        self.assertEqual(len(w), 10)
        self.assertEqual(w.samples(), [float(i) for i in range(6, 16)])
        self.assertAlmostEqual(w.average(), 10.5)
        self.assertEqual(format_latency(w.average()), "10.5 ms")

    def test_never_exceeds_capacity(self):
        w = RollingWindow(3)
        for i in range(100):
            w.push(float(i))
            self.assertLessEqual(len(w), 3)

    def test_partial_fill_average(self):
        w = RollingWindow(10)
        w.extend([10.0, 20.0])
        self.assertAlmostEqual(w.average(), 15.0)

    def test_invalid_capacity(self):
        with self.assertRaises(ValueError):
            RollingWindow(0)


if __name__ == "__main__":
    unittest.main()

"""Unit tests for ui.output and ui.dashboard -- sinks and rendering."""

import io
import json
import unittest

from rich.console import Console

from ui.dashboard import READY_STATUS, LiveDashboard, render_status
from ui.output import (
    JsonLinesSink,
    TextSink,
    create_update_json,
    format_text_update,
)


def _render_text(renderable) -> str:
    buf = io.StringIO()
    Console(file=buf, width=80, color_system=None).print(renderable)
    return buf.getvalue()


class TestCreateUpdateJson(unittest.TestCase):
    def test_basic_structure(self):
        r = create_update_json("ping", "Pinging 8.8.8.8...", "23.4 ms")
        self.assertEqual(r["test"], "ping")
        self.assertEqual(r["status"], "Pinging 8.8.8.8...")
        self.assertEqual(r["metric"], "23.4 ms")
        self.assertIn("timestamp", r)
        self.assertTrue(r["timestamp"].endswith("+00:00"))

    def test_serialisable(self):
        json.dumps(create_update_json("download", "Testing download speed...", "5.00 MB/s"))


class TestFormatText(unittest.TestCase):
    def test_with_kind(self):
        self.assertEqual(
            format_text_update("ping", "Pinging 8.8.8.8...", "23.4 ms"),
            "[ping] Pinging 8.8.8.8... 23.4 ms",
        )

    def test_without_kind(self):
        self.assertEqual(format_text_update("", "Test stopped", "--"), "Test stopped --")


class TestSinks(unittest.TestCase):
    def test_text_sink(self):
        buf = io.StringIO()
        sink = TextSink("download", stream=buf)
        sink("Testing download speed...", "0.00 MB/s")
        sink("Test stopped", "--")
        self.assertEqual(
            buf.getvalue().splitlines(),
            ["[download] Testing download speed... 0.00 MB/s", "[download] Test stopped --"],
        )

    def test_json_lines_sink(self):
        buf = io.StringIO()
        sink = JsonLinesSink("upload", stream=buf)
        sink("Generating data...", "4.00 MB/s")
        sink("Error: Upload failed", "--")

        lines = [json.loads(line) for line in buf.getvalue().splitlines()]
        self.assertEqual(len(lines), 2)
        self.assertEqual(lines[0]["status"], "Generating data...")
        self.assertEqual(lines[0]["metric"], "4.00 MB/s")
        self.assertEqual(lines[1]["test"], "upload")
        self.assertEqual(lines[1]["status"], "Error: Upload failed")


class TestRenderStatus(unittest.TestCase):
    def test_contents(self):
        text = _render_text(render_status("Pinging 8.8.8.8...", "23.4 ms", title="Ping Test", busy=True))
        self.assertIn("Ping Test", text)
        self.assertIn("Pinging 8.8.8.8...", text)
        self.assertIn("23.4 ms", text)
        self.assertIn("Ctrl-C", text)

    def test_idle_hint(self):
        text = _render_text(render_status(READY_STATUS, "--"))
        self.assertIn("Ready to test", text)
        self.assertIn("Idle", text)


class TestLiveDashboard(unittest.TestCase):
    def test_sink_updates_state(self):
        dashboard = LiveDashboard("Download Speed", output_console=Console(file=io.StringIO()))
        self.assertEqual(dashboard.status, READY_STATUS)

        dashboard("Testing download speed...", "5.00 MB/s")
        self.assertEqual(dashboard.status, "Testing download speed...")
        self.assertEqual(dashboard.metric, "5.00 MB/s")
        self.assertEqual(dashboard.updates, 1)

    def test_live_context(self):
        buf = io.StringIO()
        out = Console(file=buf, width=80, color_system=None)
        with LiveDashboard("Upload Speed", output_console=out) as dashboard:
            dashboard.set_busy(True)
            dashboard("Testing upload speed...", "3.50 MB/s")
            dashboard.set_busy(False)

        self.assertFalse(dashboard.busy)
        self.assertEqual(dashboard.updates, 1)
        self.assertEqual(dashboard.metric, "3.50 MB/s")
        self.assertIn("3.50 MB/s", _render_text(dashboard.render()))


if __name__ == "__main__":
    unittest.main()

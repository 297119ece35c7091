"""Tests for engine.download.DownloadLoop against a local aiohttp server."""

import asyncio
import re
import unittest

from aiohttp import web
from aiohttp.test_utils import TestServer

from engine.cancel import CancellationToken
from engine.constants import NO_METRIC
from engine.download import STATUS_DOWNLOADING, DownloadLoop

RATE = re.compile(r"^\d+\.\d{2} MB/s$")


def _file_app(size: int = 1024 * 1024, chunk: int = 64 * 1024) -> web.Application:
    async def serve_file(request: web.Request) -> web.StreamResponse:
        resp = web.StreamResponse()
        resp.content_length = size
        resp.content_type = "application/zip"
        await resp.prepare(request)
        sent = 0
        while sent < size:
            n = min(chunk, size - sent)
            await resp.write(b"\x00" * n)
            sent += n
            await asyncio.sleep(0.001)
        await resp.write_eof()
        return resp

    async def broken(request: web.Request) -> web.Response:
        return web.Response(status=503, text="maintenance")

    app = web.Application()
    app.router.add_get("/100MB.zip", serve_file)
    app.router.add_get("/broken", broken)
    return app


class TestDownloadLoop(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.server = TestServer(_file_app(size=256 * 1024, chunk=16 * 1024))
        await self.server.start_server()
        self.updates = []

    async def asyncTearDown(self):
        await self.server.close()

    def url(self, path: str) -> str:
        return str(self.server.make_url(path))

    async def test_reports_progress_until_cancelled(self):
        token = CancellationToken()

        def report(status, metric):
            self.updates.append((status, metric))
            if len(self.updates) >= 5:
                token.cancel()

        loop = DownloadLoop(url=self.url("/100MB.zip"), update_interval=0.0, pause=0.01)
        await asyncio.wait_for(loop.run(token, report), timeout=10)

        self.assertEqual(self.updates[0], (STATUS_DOWNLOADING, "0.00 MB/s"))
        self.assertEqual(self.updates[-1], ("Test cancelled", NO_METRIC))
        for status, metric in self.updates[1:-1]:
            self.assertEqual(status, STATUS_DOWNLOADING)
            self.assertRegex(metric, RATE)

    async def test_no_reports_after_cancelled(self):
        token = CancellationToken()

        def report(status, metric):
            self.updates.append((status, metric))
            if len(self.updates) == 3:
                token.cancel()

        loop = DownloadLoop(url=self.url("/100MB.zip"), update_interval=0.0)
        await asyncio.wait_for(loop.run(token, report), timeout=10)
        count = len(self.updates)
        await asyncio.sleep(0.05)

        self.assertEqual(len(self.updates), count)
        self.assertEqual(self.updates[-1], ("Test cancelled", NO_METRIC))
        self.assertEqual(sum(1 for s, _ in self.updates if s == "Test cancelled"), 1)

    async def test_restarts_after_each_transfer(self):
        token = CancellationToken()
        loop = DownloadLoop(url=self.url("/100MB.zip"), update_interval=0.0, pause=0.01)

        def report(status, metric):
            self.updates.append((status, metric))
            if loop.iterations >= 2:
                token.cancel()

        await asyncio.wait_for(loop.run(token, report), timeout=10)
        self.assertGreaterEqual(loop.iterations, 2)
        self.assertEqual(self.updates[-1], ("Test cancelled", NO_METRIC))

    async def test_throttled_reports(self):
        token = CancellationToken()
        loop = DownloadLoop(url=self.url("/100MB.zip"), update_interval=3600.0, pause=0.01)

        def report(status, metric):
            self.updates.append((status, metric))

        async def cancel_after_first_transfer():
            while loop.iterations < 1:
                await asyncio.sleep(0.005)
            token.cancel()

        canceller = asyncio.ensure_future(cancel_after_first_transfer())
        await asyncio.wait_for(loop.run(token, report), timeout=10)
        await canceller

        # An hour-long interval means no progress lines, only start and end.
        self.assertEqual(
            self.updates,
            [(STATUS_DOWNLOADING, "0.00 MB/s"), ("Test cancelled", NO_METRIC)],
        )

    async def test_http_error_reported(self):
        loop = DownloadLoop(url=self.url("/broken"))
        await asyncio.wait_for(loop.run(CancellationToken(), self._collect), timeout=10)
        self.assertEqual(self.updates[-1], ("Error: Failed to start download", NO_METRIC))
        self.assertEqual(loop.iterations, 0)

    async def test_connection_error_reported(self):
        url = self.url("/100MB.zip")
        await self.server.close()
        loop = DownloadLoop(url=url)
        await asyncio.wait_for(loop.run(CancellationToken(), self._collect), timeout=15)
        status, metric = self.updates[-1]
        self.assertTrue(status.startswith("Error: "))
        self.assertEqual(metric, NO_METRIC)

    def _collect(self, status, metric):
        self.updates.append((status, metric))


if __name__ == "__main__":
    unittest.main()

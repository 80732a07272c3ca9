"""Tests for netdiag.upload -- run scoring, best-of selection, and parallel streams."""

import asyncio
import unittest

from aiohttp import web
from aiohttp.test_utils import TestServer

from netdiag.download import DownloadSampler
from netdiag.throughput import UPLOAD_FAILED, ThroughputEngine
from netdiag.transport import Transport
from netdiag.upload import (
    ParallelUploadEngine,
    RunOutcome,
    StreamOutcome,
    score_run,
    select_best,
)

KB = 1024
CHUNK = 5 * 1024 * 1024


def streams(*completions):
    """StreamOutcomes from completion times; None marks a failed stream."""
    out = []
    for i, ms in enumerate(completions):
        if ms is None:
            out.append(StreamOutcome(index=i, error="connection reset"))
        else:
            out.append(StreamOutcome(index=i, ok=True, completed_ms=ms))
    return out


class TestScoreRun(unittest.TestCase):
    def test_slowest_stream_gates_duration(self):
        run = score_run("u", streams(800, 750, 900, None), CHUNK, min_elapsed_ms=200)
        self.assertEqual(run.duration_ms, 900)
        self.assertEqual(run.success_count, 3)
        self.assertEqual(run.total_bytes, 3 * CHUNK)
        expected = round((3 * CHUNK * 8) / (900 * 1000), 2)
        self.assertEqual(run.speed_mbps, expected)
        self.assertTrue(run.accepted)

    def test_discarded_at_threshold(self):
        run = score_run("u", streams(800, 750, 900, None), CHUNK, min_elapsed_ms=900)
        self.assertFalse(run.accepted)
        self.assertIsNone(run.speed_mbps)

    def test_discarded_below_threshold(self):
        run = score_run("u", streams(50, 40), CHUNK, min_elapsed_ms=200)
        self.assertFalse(run.accepted)

    def test_all_failed(self):
        run = score_run("u", streams(None, None), CHUNK, min_elapsed_ms=200, fallback_ms=1200)
        self.assertEqual(run.success_count, 0)
        self.assertEqual(run.total_bytes, 0)
        self.assertEqual(run.duration_ms, 1200)
        self.assertFalse(run.accepted)

    def test_error_status_counts_time_not_bytes(self):
        outcomes = [
            StreamOutcome(index=0, ok=True, completed_ms=400),
            StreamOutcome(index=1, ok=False, completed_ms=600, error="HTTP 500"),
        ]
        run = score_run("u", outcomes, CHUNK, min_elapsed_ms=200)
        self.assertEqual(run.duration_ms, 600)
        self.assertEqual(run.total_bytes, CHUNK)

    def test_select_best(self):
        self.assertEqual(select_best([12.0, 30.5, 9.0]), 30.5)
        self.assertIsNone(select_best([]))


class ScriptedEngine(ParallelUploadEngine):
    """Engine whose timed runs are replayed per endpoint; no network."""

    def __init__(self, script, **kwargs):
        super().__init__(transport=None, urls=list(script), total_bytes=4 * KB, **kwargs)
        self.script = {url: list(speeds) for url, speeds in script.items()}
        self.warmed = []

    async def warmup(self, url, stop):
        self.warmed.append(url)
        return []

    async def timed_run(self, url, payload, stop):
        speed = self.script[url].pop(0)
        return RunOutcome(url=url, speed_mbps=speed)


class TestBestOfEndpoints(unittest.IsolatedAsyncioTestCase):
    async def test_global_maximum_across_endpoints(self):
        engine = ScriptedEngine({"a": [12.0, 30.5], "b": [9.0, None]}, runs_per_url=2)
        result = await engine.run(asyncio.Event())
        self.assertEqual(result.best_mbps, 30.5)
        self.assertEqual(sorted(result.samples), [9.0, 12.0, 30.5])

    async def test_every_endpoint_is_tried(self):
        engine = ScriptedEngine({"a": [50.0], "b": [10.0], "c": [20.0]}, runs_per_url=1)
        await engine.run(asyncio.Event())
        self.assertEqual(engine.warmed, ["a", "b", "c"])

    async def test_no_accepted_runs(self):
        engine = ScriptedEngine({"a": [None, None]}, runs_per_url=2)
        result = await engine.run(asyncio.Event())
        self.assertFalse(result.available)
        self.assertIsNone(result.best_mbps)

    async def test_chunk_size_splits_payload(self):
        engine = ScriptedEngine({"a": [1.0]}, streams=4)
        self.assertEqual(engine.chunk_size, KB)

    async def test_invalid_stream_count(self):
        with self.assertRaises(ValueError):
            ParallelUploadEngine(transport=None, streams=0)


class TestUploadAgainstServer(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.sizes = []

        async def sink(request):
            body = await request.read()
            self.sizes.append(len(body))
            return web.Response(text="ok")

        async def broken(request):
            await request.read()
            return web.Response(status=500, text="boom")

        async def cold(request):
            body = await request.read()
            if len(body) <= KB:
                return web.Response(status=500, text="not ready")
            self.sizes.append(len(body))
            return web.Response(text="ok")

        app = web.Application(client_max_size=8 * 1024 * 1024)
        app.router.add_post("/up", sink)
        app.router.add_post("/broken", broken)
        app.router.add_post("/cold", cold)
        self.server = TestServer(app)
        await self.server.start_server()
        self.transport = Transport(streams=4)
        await self.transport.open()

    async def asyncTearDown(self):
        await self.transport.close()
        await self.server.close()

    def url(self, path):
        return str(self.server.make_url(path))

    def engine(self, *paths, **kwargs):
        defaults = dict(
            urls=[self.url(p) for p in paths],
            total_bytes=256 * KB,
            streams=4,
            warmup_bytes=1 * KB,
            min_elapsed_ms=0,
            runs_per_url=2,
        )
        defaults.update(kwargs)
        return ParallelUploadEngine(self.transport, **defaults)

    async def test_parallel_streams_send_equal_slices(self):
        engine = self.engine("/up")
        result = await engine.run(asyncio.Event())
        self.assertTrue(result.available)
        self.assertEqual(len(result.samples), 2)
        # 4 warmup bodies, then 4 slices per timed run
        self.assertEqual(sorted(self.sizes), [KB] * 4 + [64 * KB] * 8)

    async def test_timed_run_records_shared_clock(self):
        engine = self.engine("/up")
        payload = memoryview(bytes(engine.chunk_size * engine.streams))
        run = await engine.timed_run(self.url("/up"), payload, asyncio.Event())
        self.assertEqual(run.success_count, 4)
        self.assertEqual(run.total_bytes, 256 * KB)
        completions = [s.completed_ms for s in run.streams]
        self.assertEqual(run.duration_ms, max(completions))

    async def test_error_status_fails_run(self):
        engine = self.engine("/broken")
        result = await engine.run(asyncio.Event())
        self.assertFalse(result.available)

    async def test_warmup_failures_do_not_block_timed_runs(self):
        engine = self.engine("/cold")
        warmup = await engine.warmup(self.url("/cold"), asyncio.Event())
        self.assertFalse(any(o.ok for o in warmup))
        result = await engine.run(asyncio.Event())
        self.assertTrue(result.available)
        self.assertEqual(len(result.samples), 2)
        self.assertEqual(self.sizes, [64 * KB] * 8)

    async def test_failing_endpoint_does_not_hide_good_one(self):
        engine = self.engine("/broken", "/up")
        result = await engine.run(asyncio.Event())
        self.assertTrue(result.available)
        self.assertEqual(len(result.samples), 2)

    async def test_stopped_engine_sends_nothing(self):
        stop = asyncio.Event()
        stop.set()
        result = await self.engine("/up").run(stop)
        self.assertFalse(result.available)
        self.assertEqual(self.sizes, [])

    async def test_throughput_directions_are_independent(self):
        downloader = DownloadSampler(self.transport, urls=[self.url("/missing")], runs_per_url=1)
        engine = ThroughputEngine(downloader, self.engine("/up"))
        result = await engine.measure(asyncio.Event())
        self.assertFalse(result.download_available)
        self.assertTrue(result.upload_available)
        self.assertIsNone(result.upload_reason)

        engine = ThroughputEngine(downloader, self.engine("/broken"))
        result = await engine.measure(asyncio.Event())
        self.assertEqual(result.upload_reason, UPLOAD_FAILED)


if __name__ == "__main__":
    unittest.main()

"""Tests for streaming dataset download and materialization.

HTTP is served by httpx.MockTransport; the dataset image is a real
serialized SQLite database.
"""

import httpx
import pytest
from fixtures.snp_database import DATASET_URL, build_snp_database, image_transport, numbered_snps


def _loader(transport, context=None, chunk_size=1024):
    from snp_query_engine.config import EngineConfig
    from snp_query_engine.store import EngineContext
    from snp_query_engine.streaming import StreamingLoader

    context = context or EngineContext()
    return StreamingLoader(context, EngineConfig(chunk_size=chunk_size), transport=transport)


class TestDownloadProgress:
    """Test mapping of received bytes into the download phase."""

    def test_start_of_download(self):
        from snp_query_engine.streaming import download_progress

        assert download_progress(0, 1000) == 30.0

    def test_half_way(self):
        from snp_query_engine.streaming import download_progress

        assert download_progress(500, 1000) == pytest.approx(55.0)

    def test_complete(self):
        from snp_query_engine.streaming import download_progress

        assert download_progress(1000, 1000) == 80.0

    def test_overshoot_is_clamped(self):
        from snp_query_engine.streaming import download_progress

        assert download_progress(5000, 1000) == 80.0

    def test_unknown_total(self):
        from snp_query_engine.streaming import download_progress

        assert download_progress(5000, 0) == 30.0


class TestStreamingLoaderSuccess:
    """Test successful loads."""

    @pytest.mark.asyncio
    async def test_load_installs_store(self):
        image = build_snp_database(numbered_snps(20))
        loader = _loader(image_transport(image))

        await loader.load(DATASET_URL)

        assert loader.context.is_loaded
        assert loader.context.require_store().row_count() == 20

    @pytest.mark.asyncio
    async def test_progress_with_known_length(self):
        image = build_snp_database(numbered_snps(200))
        loader = _loader(image_transport(image), chunk_size=1024)
        ticks: list[float] = []

        await loader.load(DATASET_URL, ticks.append)

        assert ticks[0] == 0.0
        assert ticks[-1] == 100.0
        assert ticks == sorted(ticks)
        assert all(0.0 <= t <= 100.0 for t in ticks)
        download_ticks = [t for t in ticks if 30.0 < t <= 80.0]
        assert len(download_ticks) >= len(image) // 1024
        assert 80.0 in ticks

    @pytest.mark.asyncio
    async def test_progress_with_unknown_length_still_completes(self):
        image = build_snp_database(numbered_snps(50))
        loader = _loader(image_transport(image, send_length=False))
        ticks: list[float] = []

        await loader.load(DATASET_URL, ticks.append)

        assert ticks == [0.0, 10.0, 30.0, 85.0, 90.0, 100.0]
        assert loader.context.require_store().row_count() == 50

    @pytest.mark.asyncio
    async def test_chunked_body_is_reassembled(self):
        image = build_snp_database(numbered_snps(300))
        loader = _loader(image_transport(image, send_length=False, chunk_size=333))

        await loader.load(DATASET_URL)

        assert loader.context.require_store().row_count() == 300

    @pytest.mark.asyncio
    async def test_load_without_callback(self):
        image = build_snp_database(numbered_snps(3))
        loader = _loader(image_transport(image))

        await loader.load(DATASET_URL, None)

        assert loader.context.is_loaded


class TestStreamingLoaderFailures:
    """Test failure kinds and the no-partial-store guarantee."""

    @pytest.mark.asyncio
    async def test_http_error_status_raises_source_unavailable(self):
        from snp_query_engine.errors import SourceUnavailable

        loader = _loader(image_transport(b"", status_code=404))

        with pytest.raises(SourceUnavailable, match="404"):
            await loader.load(DATASET_URL)

        assert loader.context.is_loaded is False

    @pytest.mark.asyncio
    async def test_connect_error_raises_source_unavailable(self):
        from snp_query_engine.errors import SourceUnavailable

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        loader = _loader(httpx.MockTransport(handler))

        with pytest.raises(SourceUnavailable, match="connection refused"):
            await loader.load(DATASET_URL)

        assert loader.context.is_loaded is False

    @pytest.mark.asyncio
    async def test_read_error_mid_stream_raises_stream_unreadable(self):
        from snp_query_engine.errors import StreamUnreadable

        async def broken_body():
            yield b"SQLite format 3\x00"
            raise httpx.ReadError("connection reset")

        def handler(request):
            return httpx.Response(200, content=broken_body())

        loader = _loader(httpx.MockTransport(handler))

        with pytest.raises(StreamUnreadable, match="connection reset"):
            await loader.load(DATASET_URL)

        assert loader.context.is_loaded is False

    @pytest.mark.asyncio
    async def test_read_timeout_raises_source_unavailable(self):
        from snp_query_engine.errors import SourceUnavailable

        async def stalled_body():
            yield b"SQLite"
            raise httpx.ReadTimeout("timed out")

        def handler(request):
            return httpx.Response(200, content=stalled_body())

        loader = _loader(httpx.MockTransport(handler))

        with pytest.raises(SourceUnavailable, match="timed out"):
            await loader.load(DATASET_URL)

    @pytest.mark.asyncio
    async def test_invalid_image_raises_and_leaves_store_absent(self):
        from snp_query_engine.errors import InvalidDatasetImage

        loader = _loader(image_transport(b"<html>not a database</html>" * 100))
        ticks: list[float] = []

        with pytest.raises(InvalidDatasetImage):
            await loader.load(DATASET_URL, ticks.append)

        assert loader.context.is_loaded is False
        assert 100.0 not in ticks

    @pytest.mark.asyncio
    async def test_failed_reload_clears_previous_store(self):
        from snp_query_engine.errors import SourceUnavailable
        from snp_query_engine.store import EngineContext

        context = EngineContext()
        await _loader(image_transport(build_snp_database(numbered_snps(2))), context).load(
            DATASET_URL
        )
        assert context.is_loaded

        with pytest.raises(SourceUnavailable):
            await _loader(image_transport(b"", status_code=500), context).load(DATASET_URL)

        assert context.is_loaded is False

    @pytest.mark.asyncio
    async def test_failure_counting_rows_leaves_store_absent(self, monkeypatch):
        from snp_query_engine.errors import QueryExecutionFailed
        from snp_query_engine.store import DatasetStore

        def failing_row_count(self):
            raise QueryExecutionFailed("database disk image is malformed")

        monkeypatch.setattr(DatasetStore, "row_count", failing_row_count)
        loader = _loader(image_transport(build_snp_database(numbered_snps(5))))
        ticks: list[float] = []

        with pytest.raises(QueryExecutionFailed):
            await loader.load(DATASET_URL, ticks.append)

        assert loader.context.is_loaded is False
        assert 100.0 not in ticks

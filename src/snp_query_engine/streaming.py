"""Streaming download of the SNP dataset image into the resident store.

Progress is reported on a 0-100 scale split into fixed phases so callers
see continuous movement even though the phases take very different time:

| Phase           | Range    |
|-----------------|----------|
| Initialization  | 0 - 30   |
| Download        | 30 - 80  |
| Materialization | 80 - 100 |

The download phase only advances when the server sends a content-length.
"""

import logging
from collections.abc import Callable

import httpx

from .config import EngineConfig
from .errors import SourceUnavailable, StreamUnreadable
from .store import DatasetStore, EngineContext

logger = logging.getLogger(__name__)

LoadProgressCallback = Callable[[float], None]

PROGRESS_START = 0.0
PROGRESS_INITIALIZED = 10.0
PROGRESS_DOWNLOAD_START = 30.0
PROGRESS_DOWNLOAD_END = 80.0
PROGRESS_DOWNLOADED = 85.0
PROGRESS_ASSEMBLED = 90.0
PROGRESS_COMPLETE = 100.0


def download_progress(received: int, total: int) -> float:
    """Map received bytes into the download phase of the progress scale."""
    if total <= 0:
        return PROGRESS_DOWNLOAD_START
    ratio = min(received / total, 1.0)
    return PROGRESS_DOWNLOAD_START + ratio * (PROGRESS_DOWNLOAD_END - PROGRESS_DOWNLOAD_START)


def _content_length(response: httpx.Response) -> int:
    try:
        return max(int(response.headers.get("content-length", 0)), 0)
    except ValueError:
        return 0


class _MonotonicProgress:
    """Clamps reported values to [0, 100] and never lets them go backwards."""

    def __init__(self, callback: LoadProgressCallback | None):
        self._callback = callback
        self._last = PROGRESS_START

    def report(self, value: float) -> None:
        value = max(self._last, min(PROGRESS_COMPLETE, value))
        self._last = value
        if self._callback:
            self._callback(value)


class StreamingLoader:
    """Downloads a dataset image and installs it into an engine context."""

    def __init__(
        self,
        context: EngineContext,
        config: EngineConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.context = context
        self.config = config or EngineConfig()
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            follow_redirects=self.config.follow_redirects,
            timeout=self.config.timeout,
            transport=self._transport,
        )

    async def load(self, url: str, on_progress: LoadProgressCallback | None = None) -> None:
        """Fetch the image at url and make it the resident dataset.

        Raises:
            SourceUnavailable: If the fetch fails or returns a non-success status.
            StreamUnreadable: If the body can't be read to completion.
            InvalidDatasetImage: If the downloaded bytes are not a SNP dataset.
        """
        progress = _MonotonicProgress(on_progress)

        try:
            progress.report(PROGRESS_START)
            progress.report(PROGRESS_INITIALIZED)
            progress.report(PROGRESS_DOWNLOAD_START)

            chunks = await self._download(url, progress)
            progress.report(PROGRESS_DOWNLOADED)

            image = b"".join(chunks)
            progress.report(PROGRESS_ASSEMBLED)

            store = DatasetStore.from_image(image)
            self.context.install(store)
            snp_count = store.row_count()
        except BaseException:
            self.context.clear()
            raise

        logger.info("Loaded SNP database: %d bytes, %d SNPs", len(image), snp_count)
        progress.report(PROGRESS_COMPLETE)

    async def _download(self, url: str, progress: _MonotonicProgress) -> list[bytes]:
        logger.info("Downloading SNP database from: %s", url)

        try:
            async with self._client() as client:
                async with client.stream("GET", url) as response:
                    if not response.is_success:
                        raise SourceUnavailable(
                            f"Failed to load database: HTTP {response.status_code} "
                            f"{response.reason_phrase}".rstrip()
                        )
                    return await self._read_chunks(response, progress)
        except httpx.TransportError as e:
            raise SourceUnavailable(f"Failed to load database: {e}") from e
        except httpx.InvalidURL as e:
            raise SourceUnavailable(f"Invalid database URL '{url}': {e}") from e

    async def _read_chunks(
        self, response: httpx.Response, progress: _MonotonicProgress
    ) -> list[bytes]:
        total = _content_length(response)
        chunks: list[bytes] = []
        received = 0

        try:
            async for chunk in response.aiter_bytes(chunk_size=self.config.chunk_size):
                chunks.append(chunk)
                received += len(chunk)
                if total:
                    progress.report(download_progress(received, total))
        except httpx.TimeoutException as e:
            raise SourceUnavailable(f"Timed out reading database: {e}") from e
        except (httpx.TransportError, httpx.DecodingError, httpx.StreamError) as e:
            raise StreamUnreadable(f"Response body is not readable: {e}") from e

        logger.debug("Received %d bytes (expected %s)", received, total or "unknown")
        return chunks

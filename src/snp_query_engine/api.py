"""Operations served by the query engine worker."""

import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any

import httpx

from .config import EngineConfig
from .matcher import BatchMatcher, MatchProgressCallback
from .models import DatabaseStats, FilterCriteria, MatchedSNP, SearchResult, UserGenotype
from .search import FilterSearch
from .store import EngineContext
from .streaming import LoadProgressCallback, StreamingLoader

logger = logging.getLogger(__name__)


class SNPMatcherApi:
    """Binds the loader, matcher and search to one engine context.

    The context is created with the API, so whichever execution context
    builds the API owns the dataset.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        context: EngineContext | None = None,
    ):
        self.config = config or EngineConfig()
        self.context = context or EngineContext()
        self._loader = StreamingLoader(self.context, self.config, transport=transport)
        self._matcher = BatchMatcher(self.context, self.config)
        self._search = FilterSearch(self.context, self.config)

    async def load_database(
        self, url: str, on_progress: LoadProgressCallback | None = None
    ) -> None:
        await self._loader.load(url, on_progress)

    async def get_database_stats(self) -> DatabaseStats:
        store = self.context.require_store()
        return DatabaseStats(total_snps=store.row_count())

    async def match_snps(
        self,
        genotypes: Sequence[UserGenotype],
        on_progress: MatchProgressCallback | None = None,
    ) -> list[MatchedSNP]:
        return await self._matcher.match_all(genotypes, on_progress)

    async def search_snps(
        self, criteria: FilterCriteria | Mapping[str, Any] | None = None
    ) -> SearchResult:
        return await self._search.search(criteria)

    def routes(self) -> dict[str, Callable[..., Awaitable[Any]]]:
        """Method name to handler table used by the RPC worker."""
        return {
            "load_database": self.load_database,
            "get_database_stats": self.get_database_stats,
            "match_snps": self.match_snps,
            "search_snps": self.search_snps,
        }

    def close(self) -> None:
        self.context.clear()

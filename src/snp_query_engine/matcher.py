"""Batch matching of user genotypes against the resident SNP dataset."""

import asyncio
import logging
from collections.abc import Callable, Iterator, Sequence

from .config import EngineConfig
from .errors import QueryExecutionFailed
from .models import SNP_COLUMNS, MatchedSNP, SNPRecord, UserGenotype, normalize_rsid
from .store import SNP_TABLE, DatasetStore, EngineContext

logger = logging.getLogger(__name__)

MatchProgressCallback = Callable[[int, int], None]

SELECT_COLUMNS = ", ".join(SNP_COLUMNS)


def effective_batch_size(configured: int, max_parameters: int) -> int:
    """Largest group size that stays strictly below the parameter ceiling."""
    return max(1, min(configured, max_parameters - 1))


def iter_batches(items: Sequence[UserGenotype], size: int) -> Iterator[Sequence[UserGenotype]]:
    """Yield contiguous slices of at most size items, in input order."""
    for start in range(0, len(items), size):
        yield items[start : start + size]


def build_match_query(n_keys: int, case_insensitive: bool = False) -> str:
    """IN query over lowercased keys.

    Plain rsid comparison uses the primary key index. The NOCASE form is for
    datasets with mixed-case rsIDs and relies on the index the store builds
    for them.
    """
    placeholders = ", ".join("?" for _ in range(n_keys))
    column = "rsid COLLATE NOCASE" if case_insensitive else "rsid"
    return f"SELECT {SELECT_COLUMNS} FROM {SNP_TABLE} WHERE {column} IN ({placeholders})"


def match_batch(store: DatasetStore, batch: Sequence[UserGenotype]) -> list[MatchedSNP]:
    """Match one batch with a single IN query.

    Every input occurrence of a key pairs with the row, so duplicate
    genotypes produce duplicate matches.

    Raises:
        QueryExecutionFailed: If the store rejects the query.
    """
    by_key: dict[str, list[UserGenotype]] = {}
    for genotype in batch:
        by_key.setdefault(normalize_rsid(genotype.rsid), []).append(genotype)

    keys = list(by_key)
    rows = store.fetch_all(build_match_query(len(keys), store.has_mixed_case_keys), keys)

    matches: list[MatchedSNP] = []
    for row in rows:
        record = SNPRecord.from_row(row)
        for genotype in by_key.get(record.key, ()):
            matches.append(
                MatchedSNP(
                    rsid=genotype.rsid,
                    chromosome=genotype.chromosome,
                    position=genotype.position,
                    genotype=genotype.genotype,
                    snp_data=record,
                )
            )
    return matches


class BatchMatcher:
    """Matches large genotype lists in parameter-safe batches."""

    def __init__(self, context: EngineContext, config: EngineConfig | None = None):
        self.context = context
        self.config = config or EngineConfig()

    async def match_all(
        self,
        genotypes: Sequence[UserGenotype],
        on_progress: MatchProgressCallback | None = None,
    ) -> list[MatchedSNP]:
        """Match every genotype against the dataset.

        Unmatched genotypes are dropped. A batch whose query fails is logged
        and contributes no matches; the remaining batches still run.

        Raises:
            StoreNotLoaded: If no dataset is resident.
        """
        store = self.context.require_store()
        batch_size = effective_batch_size(self.config.batch_size, store.max_parameters)
        total = len(genotypes)
        processed = 0
        matches: list[MatchedSNP] = []

        for batch_num, batch in enumerate(iter_batches(genotypes, batch_size)):
            try:
                matches.extend(match_batch(store, batch))
            except QueryExecutionFailed:
                logger.exception(
                    "Error querying batch %d (%d genotypes); treating as no matches",
                    batch_num,
                    len(batch),
                )

            processed += len(batch)
            if on_progress:
                on_progress(processed, total)

            await asyncio.sleep(0)

        logger.info("Matched %d of %d genotypes", len(matches), total)
        return matches

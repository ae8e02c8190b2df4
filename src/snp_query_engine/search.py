"""Filtered, paginated search over the resident SNP dataset.

Optional filters become an ordered list of FilterClause descriptors. Each
clause carries its own SQL template and bound values, so the composed WHERE
predicate and its parameter list can never fall out of step.
"""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from .config import EngineConfig
from .matcher import SELECT_COLUMNS
from .models import FilterCriteria, SearchResult, SNPRecord
from .store import SNP_TABLE, EngineContext

logger = logging.getLogger(__name__)

LIKE_ESCAPE = "\\"

SEARCH_TERM_COLUMNS = ("rsid", "gene", "gene_s", "content", "clin_disease", "clin_gene_name")
GENE_COLUMNS = ("gene", "gene_s", "clin_gene_name")


@dataclass(frozen=True)
class FilterClause:
    """One predicate template and the values bound to its placeholders."""

    template: str
    params: tuple[Any, ...]


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def like_pattern(term: str) -> str:
    """Wrap term for substring matching, escaping LIKE wildcards in it."""
    escaped = (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


def contains_any(columns: Sequence[str], term: str) -> FilterClause:
    """Substring match of term against any of columns."""
    pattern = like_pattern(term)
    conditions = [f"{column} LIKE ? ESCAPE '{LIKE_ESCAPE}'" for column in columns]
    template = conditions[0] if len(conditions) == 1 else f"({' OR '.join(conditions)})"
    return FilterClause(template, (pattern,) * len(columns))


def equals(column: str, value: Any) -> FilterClause:
    return FilterClause(f"{column} = ?", (value,))


def build_clauses(criteria: FilterCriteria) -> list[FilterClause]:
    """Translate criteria into clauses; empty criteria contribute nothing."""
    clauses: list[FilterClause] = []

    if term := _clean(criteria.search_term):
        clauses.append(contains_any(SEARCH_TERM_COLUMNS, term))

    if chromosome := _clean(criteria.chromosome):
        clauses.append(equals("chromosome", chromosome))

    if gene := _clean(criteria.gene):
        clauses.append(contains_any(GENE_COLUMNS, gene))

    # Significance values are compound ("Pathogenic/Likely pathogenic"), so containment.
    if significance := _clean(criteria.clinical_significance):
        clauses.append(contains_any(("clin_sig",), significance))

    if disease := _clean(criteria.disease):
        clauses.append(contains_any(("clin_disease",), disease))

    return clauses


def compose_where(clauses: Sequence[FilterClause]) -> tuple[str, list[Any]]:
    """Fold clauses into one AND-ed WHERE clause and its parameter list."""
    if not clauses:
        return "", []

    where = "WHERE " + " AND ".join(clause.template for clause in clauses)
    params: list[Any] = []
    for clause in clauses:
        params.extend(clause.params)
    return where, params


def build_search_queries(
    criteria: FilterCriteria, order_by_rowid: bool = True
) -> tuple[str, list[Any], str, list[Any]]:
    """Build the count and page statements for criteria.

    WITHOUT ROWID tables have no rowid to order by; their pages come back in
    storage (primary key) order instead.

    Returns:
        Tuple of (count_sql, count_params, page_sql, page_params). The page
        parameters are the filter parameters followed by limit and offset.
    """
    where, params = compose_where(build_clauses(criteria))

    count_sql = " ".join(filter(None, [f"SELECT COUNT(*) FROM {SNP_TABLE}", where]))
    page_sql = " ".join(
        filter(
            None,
            [
                f"SELECT {SELECT_COLUMNS} FROM {SNP_TABLE}",
                where,
                "ORDER BY rowid" if order_by_rowid else None,
                "LIMIT ? OFFSET ?",
            ],
        )
    )
    return count_sql, list(params), page_sql, [*params, criteria.limit, criteria.offset]


class FilterSearch:
    """Runs filtered, paginated searches against an engine context."""

    def __init__(self, context: EngineContext, config: EngineConfig | None = None):
        self.context = context
        self.config = config or EngineConfig()

    async def search(
        self, criteria: FilterCriteria | Mapping[str, Any] | None = None
    ) -> SearchResult:
        """Return one page of matching records and the total match count.

        Raises:
            StoreNotLoaded: If no dataset is resident.
            QueryExecutionFailed: If either query fails.
        """
        store = self.context.require_store()
        if not isinstance(criteria, FilterCriteria):
            criteria = FilterCriteria.from_dict(criteria, default_limit=self.config.page_size)

        count_sql, count_params, page_sql, page_params = build_search_queries(
            criteria, order_by_rowid=store.has_rowid
        )

        total = store.fetch_scalar(count_sql, count_params) or 0
        rows = store.fetch_all(page_sql, page_params)

        logger.debug(
            "Search returned %d of %d rows (limit=%d, offset=%d)",
            len(rows),
            total,
            criteria.limit,
            criteria.offset,
        )
        return SearchResult(results=[SNPRecord.from_row(row) for row in rows], total=total)

"""Data models for SNP records, user genotypes and search criteria."""

from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from typing import Any

DEFAULT_PAGE_SIZE = 50


@dataclass(frozen=True)
class SNPRecord:
    """One row of the resident SNP dataset."""

    # Core identifiers
    rsid: str
    content: str | None = None

    # Genomic location
    chromosome: str | None = None
    position: int | None = None
    gene: str | None = None
    gene_s: str | None = None

    # Orientation and assembly info
    orientation: str | None = None
    assembly: str | None = None
    genome_build: str | None = None
    dbsnp_build: int | None = None
    stabilized_orientation: str | None = None

    # Genotype information
    geno1: str | None = None
    geno2: str | None = None
    geno3: str | None = None

    # ClinVar data
    clin_chromosome: str | None = None
    clin_rsid: str | None = None
    clin_sig: str | None = None
    clin_disease: str | None = None
    clin_dbn: str | None = None
    clin_hgvs: str | None = None
    clin_origin: str | None = None
    clin_accession: str | None = None
    clin_reversed: int | None = None
    clin_fwd_ref: str | None = None
    clin_fwd_alt: str | None = None
    clin_ref: str | None = None
    clin_alt: str | None = None
    clin_rspos: int | None = None
    clin_dbsnp_build_id: int | None = None
    clin_ssr: int | None = None
    clin_sao: int | None = None
    clin_vp: str | None = None
    clin_geneinfo: str | None = None
    clin_gene_name: str | None = None
    clin_gene_id: int | None = None
    clin_wgt: int | None = None
    clin_vc: str | None = None
    clin_clnalle: str | None = None
    clin_tags: str | None = None
    clin_clndsdb: str | None = None
    clin_clndsdbid: str | None = None
    clin_clnrevstat: str | None = None
    clin_clnsrc: str | None = None
    clin_clnsrcid: str | None = None

    # Publication reference
    pmid: int | None = None
    pmid_title: str | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "SNPRecord":
        """Build a record from a row mapping, ignoring unknown columns."""
        return cls(**{name: row[name] for name in SNP_COLUMNS if name in row})

    @property
    def key(self) -> str:
        return normalize_rsid(self.rsid)


SNP_COLUMNS: tuple[str, ...] = tuple(f.name for f in fields(SNPRecord))


def normalize_rsid(rsid: str) -> str:
    """Normalize an rsID for case-insensitive comparison."""
    return rsid.strip().lower()


@dataclass(frozen=True)
class UserGenotype:
    """One genotype call from a user's raw data file."""

    rsid: str
    chromosome: str
    position: str
    genotype: str


@dataclass(frozen=True)
class MatchedSNP(UserGenotype):
    """A user genotype paired with the dataset record sharing its rsID."""

    snp_data: SNPRecord


@dataclass
class FilterCriteria:
    """Optional filters and pagination for a dataset search.

    Empty or whitespace-only filters are ignored, so an empty criteria set
    matches the whole dataset in storage order.
    """

    search_term: str | None = None
    chromosome: str | None = None
    gene: str | None = None
    clinical_significance: str | None = None
    disease: str | None = None
    limit: int = DEFAULT_PAGE_SIZE
    offset: int = 0

    def __post_init__(self):
        if isinstance(self.limit, bool) or not isinstance(self.limit, int):
            raise ValueError(f"limit must be an integer, got {type(self.limit).__name__}")
        if self.limit <= 0:
            raise ValueError(f"limit must be positive, got {self.limit}")
        if isinstance(self.offset, bool) or not isinstance(self.offset, int):
            raise ValueError(f"offset must be an integer, got {type(self.offset).__name__}")
        if self.offset < 0:
            raise ValueError(f"offset must be non-negative, got {self.offset}")

    @classmethod
    def from_dict(
        cls, data: Mapping[str, Any] | None, default_limit: int = DEFAULT_PAGE_SIZE
    ) -> "FilterCriteria":
        if not data:
            return cls(limit=default_limit)

        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown filter fields: {', '.join(sorted(unknown))}")

        values = {k: v for k, v in data.items() if v is not None}
        values.setdefault("limit", default_limit)
        return cls(**values)


@dataclass
class SearchResult:
    """One page of filtered records and the size of the full filtered set."""

    results: list[SNPRecord] = field(default_factory=list)
    total: int = 0


@dataclass
class DatabaseStats:
    """Summary figures for the resident dataset."""

    total_snps: int = 0

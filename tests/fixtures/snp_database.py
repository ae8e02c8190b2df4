"""SNP dataset image and genotype file generators for testing."""

import sqlite3
from collections.abc import AsyncIterator, Iterable
from dataclasses import dataclass, field
from typing import Any

import httpx

from snp_query_engine.models import SNP_COLUMNS
from snp_query_engine.store import DatasetStore, EngineContext

INTEGER_COLUMNS = {
    "position",
    "dbsnp_build",
    "clin_reversed",
    "clin_rspos",
    "clin_dbsnp_build_id",
    "clin_ssr",
    "clin_sao",
    "clin_gene_id",
    "clin_wgt",
    "pmid",
}

DATASET_URL = "https://snp.example.test/snpedia.db"


@dataclass
class SyntheticSNP:
    """A dataset row for testing; unset attributes stay NULL."""

    rsid: str
    chromosome: str | None = "1"
    position: int | None = None
    gene: str | None = None
    clin_sig: str | None = None
    clin_disease: str | None = None
    content: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_row(self) -> dict[str, Any]:
        row = {
            "rsid": self.rsid,
            "content": self.content if self.content is not None else f"{{{{Rsnum|rsid={self.rsid}}}}}",
            "chromosome": self.chromosome,
            "position": self.position,
            "gene": self.gene,
            "clin_sig": self.clin_sig,
            "clin_disease": self.clin_disease,
        }
        row.update(self.extra)
        return row


def build_snp_database(
    snps: Iterable[SyntheticSNP], table: str = "snps", without_rowid: bool = False
) -> bytes:
    """Create an SQLite database holding snps and return its serialized image."""
    column_defs = ", ".join(
        f"{name} {'INTEGER' if name in INTEGER_COLUMNS else 'TEXT'}"
        + (" PRIMARY KEY" if name == "rsid" else "")
        for name in SNP_COLUMNS
    )
    placeholders = ", ".join("?" for _ in SNP_COLUMNS)

    conn = sqlite3.connect(":memory:")
    try:
        suffix = " WITHOUT ROWID" if without_rowid else ""
        conn.execute(f"CREATE TABLE {table} ({column_defs}){suffix}")
        for snp in snps:
            row = snp.to_row()
            conn.execute(
                f"INSERT INTO {table} ({', '.join(SNP_COLUMNS)}) VALUES ({placeholders})",
                [row.get(name) for name in SNP_COLUMNS],
            )
        conn.commit()
        return conn.serialize()
    finally:
        conn.close()


def make_context(snps: Iterable[SyntheticSNP]) -> EngineContext:
    """Engine context with snps already materialized."""
    return EngineContext(store=DatasetStore.from_image(build_snp_database(snps)))


def numbered_snps(count: int, prefix: str = "rs", start: int = 1, **attrs: Any) -> list[SyntheticSNP]:
    return [SyntheticSNP(rsid=f"{prefix}{i}", **attrs) for i in range(start, start + count)]


def image_transport(
    image: bytes,
    status_code: int = 200,
    send_length: bool = True,
    chunk_size: int = 4096,
) -> httpx.MockTransport:
    """MockTransport serving image for any request.

    Without send_length the body is streamed chunked, so the size is unknown.
    """

    async def body() -> AsyncIterator[bytes]:
        for start in range(0, len(image), chunk_size):
            yield image[start : start + chunk_size]

    def handler(request: httpx.Request) -> httpx.Response:
        if status_code != 200:
            return httpx.Response(status_code, content=b"")
        if send_length:
            return httpx.Response(200, content=image)
        return httpx.Response(200, content=body())

    return httpx.MockTransport(handler)


def make_23andme_file(rows: Iterable[tuple[str, str, str, str]], header: bool = True) -> str:
    """Render rows of (rsid, chromosome, position, genotype) as 23andMe raw data."""
    lines = []
    if header:
        lines.append("# This data file generated by 23andMe")
        lines.append("# rsid\tchromosome\tposition\tgenotype")
    lines.extend("\t".join(row) for row in rows)
    return "\n".join(lines) + "\n"

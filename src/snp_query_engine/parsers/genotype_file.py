"""23andMe raw genotype file parsing.

Format: tab-delimited, header lines start with '#'.
Columns: rsid, chromosome, position, genotype

    # rsid  chromosome  position  genotype
    rs4477212   1   82154   AA
    i713426     1   726912  --

rsIDs are lowercased so they match the dataset case-insensitively.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from ..models import UserGenotype

logger = logging.getLogger(__name__)

RSID_PATTERN = re.compile(r"^(rs|i)\d+", re.IGNORECASE)
VALIDATION_SAMPLE_LINES = 100
EXPECTED_COLUMNS = 4


@dataclass
class ParseResult:
    """Genotypes parsed from a raw data file plus line accounting."""

    genotypes: list[UserGenotype] = field(default_factory=list)
    total_lines: int = 0
    skipped_lines: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class FileValidation:
    valid: bool
    reason: str | None = None


def parse_23andme(content: str) -> ParseResult:
    """Parse the text of a 23andMe raw data file.

    Blank and comment lines are skipped silently; malformed lines are
    skipped and reported in errors with their 1-based line number.
    """
    lines = content.split("\n")
    result = ParseResult(total_lines=len(lines))

    for line_num, raw_line in enumerate(lines, start=1):
        line = raw_line.strip()

        if not line or line.startswith("#"):
            result.skipped_lines += 1
            continue

        parts = line.split()
        if len(parts) < EXPECTED_COLUMNS:
            result.errors.append(
                f"Line {line_num}: Invalid format - expected {EXPECTED_COLUMNS} columns, "
                f"got {len(parts)}"
            )
            result.skipped_lines += 1
            continue

        rsid, chromosome, position, genotype = parts[:EXPECTED_COLUMNS]

        if not RSID_PATTERN.match(rsid):
            result.errors.append(f"Line {line_num}: Invalid rsid format: {rsid}")
            result.skipped_lines += 1
            continue

        result.genotypes.append(
            UserGenotype(
                rsid=rsid.lower(),
                chromosome=chromosome,
                position=position,
                genotype=genotype,
            )
        )

    logger.debug(
        "Parsed %d genotypes from %d lines (%d skipped, %d errors)",
        len(result.genotypes),
        result.total_lines,
        result.skipped_lines,
        len(result.errors),
    )
    return result


def validate_23andme(content: str) -> FileValidation:
    """Check whether content looks like a 23andMe raw data file.

    Only the first 100 lines are inspected.
    """
    lines = content.split("\n")[:VALIDATION_SAMPLE_LINES]

    if not any(line.strip().startswith("#") for line in lines):
        return FileValidation(
            valid=False,
            reason="File doesn't appear to have 23andMe format headers (no # comment lines)",
        )

    has_rsid_data = any(
        not line.strip().startswith("#") and RSID_PATTERN.match(line.strip())
        for line in lines
    )
    if not has_rsid_data:
        return FileValidation(
            valid=False,
            reason="File doesn't contain valid SNP data (no rsid entries found)",
        )

    return FileValidation(valid=True)


def read_genotype_file(path: Path) -> str:
    """Read a raw data file as text, tolerating stray non-UTF-8 bytes."""
    return path.read_text(encoding="utf-8", errors="replace")

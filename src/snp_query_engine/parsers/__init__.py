"""Parsers for user-supplied genotype files."""

from .genotype_file import (
    FileValidation,
    ParseResult,
    parse_23andme,
    read_genotype_file,
    validate_23andme,
)

__all__ = [
    "FileValidation",
    "ParseResult",
    "parse_23andme",
    "read_genotype_file",
    "validate_23andme",
]

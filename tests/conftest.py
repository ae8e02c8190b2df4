"""Pytest configuration and fixtures for snp-query-engine tests."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent))

from fixtures.snp_database import (  # noqa: E402
    DATASET_URL,
    SyntheticSNP,
    build_snp_database,
    image_transport,
)

from snp_query_engine.store import DatasetStore, EngineContext  # noqa: E402


@pytest.fixture
def three_snp_image() -> bytes:
    """Dataset image with rs1, rs2 and rs3."""
    return build_snp_database(
        [
            SyntheticSNP(rsid="rs1", gene="APOE", clin_sig="risk factor", clin_disease="Alzheimer"),
            SyntheticSNP(rsid="rs2", gene="BRCA1", clin_sig="Pathogenic", clin_disease="Breast cancer"),
            SyntheticSNP(rsid="rs3", chromosome="2", gene="MTHFR"),
        ]
    )


@pytest.fixture
def three_snp_context(three_snp_image) -> EngineContext:
    context = EngineContext(store=DatasetStore.from_image(three_snp_image))
    yield context
    context.clear()


@pytest.fixture
def dataset_url() -> str:
    return DATASET_URL


@pytest.fixture
def three_snp_transport(three_snp_image):
    return image_transport(three_snp_image)

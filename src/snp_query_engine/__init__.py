"""snp-query-engine: in-memory SNP dataset matching and search behind an async worker boundary."""

__version__ = "0.1.0"

from .api import SNPMatcherApi  # noqa: E402
from .config import ConfigValidationError, EngineConfig, load_config  # noqa: E402
from .errors import (  # noqa: E402
    BoundaryClosed,
    InvalidDatasetImage,
    QueryEngineError,
    QueryExecutionFailed,
    RemoteCallError,
    SourceUnavailable,
    StoreNotLoaded,
    StreamUnreadable,
)
from .models import (  # noqa: E402
    DatabaseStats,
    FilterCriteria,
    MatchedSNP,
    SearchResult,
    SNPRecord,
    UserGenotype,
)
from .rpc import EngineClient  # noqa: E402

__all__ = [
    "BoundaryClosed",
    "ConfigValidationError",
    "DatabaseStats",
    "EngineClient",
    "EngineConfig",
    "FilterCriteria",
    "InvalidDatasetImage",
    "MatchedSNP",
    "QueryEngineError",
    "QueryExecutionFailed",
    "RemoteCallError",
    "SNPMatcherApi",
    "SNPRecord",
    "SearchResult",
    "SourceUnavailable",
    "StoreNotLoaded",
    "StreamUnreadable",
    "UserGenotype",
    "__version__",
    "load_config",
]

"""lshmatch - approximate string matching with MinHash and LSH banding."""

__version__ = "0.1.0"

from .config import IndexConfig, MatcherSettings
from .core.types import Entity, IndexInfo, Match
from .engine import IndexSearcher, build, drop_index, index_info, list_indexes, search_many, search_one
from .errors import (
    ConfigurationError,
    IncompatibleIndexError,
    IndexNotFoundError,
    MatcherError,
    StorageError,
)

__all__ = [
    "build",
    "drop_index",
    "index_info",
    "list_indexes",
    "search_many",
    "search_one",
    "ConfigurationError",
    "Entity",
    "IncompatibleIndexError",
    "IndexConfig",
    "IndexInfo",
    "IndexNotFoundError",
    "IndexSearcher",
    "Match",
    "MatcherError",
    "MatcherSettings",
    "StorageError",
    "__version__",
]

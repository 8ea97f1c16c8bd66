"""Build and search orchestration."""

from .build import build
from .catalog import drop_index, index_info, list_indexes
from .search import IndexSearcher, search_many, search_one

__all__ = [
    "build",
    "drop_index",
    "index_info",
    "list_indexes",
    "IndexSearcher",
    "search_many",
    "search_one",
]

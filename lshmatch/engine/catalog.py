"""Inspecting and removing persisted indexes."""

from typing import List, Optional

from ..config import MatcherSettings, get_settings
from ..core.types import IndexInfo
from ..storage.table_store import TableStore


def _store(settings: Optional[MatcherSettings], store: Optional[TableStore]) -> TableStore:
    return store or TableStore((settings or get_settings()).root_path)


def index_info(index_name: str, *, settings: Optional[MatcherSettings] = None,
               store: Optional[TableStore] = None) -> IndexInfo:
    """Summary recorded when ``index_name`` was built."""
    return _store(settings, store).read_info(index_name)


def list_indexes(*, settings: Optional[MatcherSettings] = None,
                 store: Optional[TableStore] = None) -> List[str]:
    """Names of every completed index under the store root."""
    return _store(settings, store).list_indexes()


def drop_index(index_name: str, *, settings: Optional[MatcherSettings] = None,
               store: Optional[TableStore] = None) -> None:
    """Delete ``index_name`` and all of its tables."""
    _store(settings, store).drop(index_name)

"""Persistence for match indexes."""

from .table_store import IndexWriter, TableStore

__all__ = ["IndexWriter", "TableStore"]

"""
Persistent keyed table store for match indexes.

Each index lives in its own directory under the store root::

    <root>/<index_name>/
        vocabulary.jsonl.gz
        hash_functions.jsonl.gz
        signatures.jsonl.gz
        hash_bands.jsonl.gz
        info.json
        config.json

Tables are gzip-compressed JSON lines, written once. An index is built in a
hidden staging directory and renamed into place only when every table and the
config record have been written, so readers never observe a partial index.
"""

import gzip
import json
import logging
import shutil
import threading
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Collection, Dict, Iterable, Iterator, List, Optional, Union

from ..config import INDEX_FORMAT_VERSION, IndexConfig
from ..core.types import IndexInfo
from ..errors import ConfigurationError, IncompatibleIndexError, IndexNotFoundError, StorageError

logger = logging.getLogger(__name__)

Row = Dict[str, Any]


class IndexWriter:
    """
    Writes the tables of one index into a staging directory.

    Table creation is thread-safe: distinct tables may be written
    concurrently from different workers.
    """

    def __init__(self, store: "TableStore", index_name: str, staging_dir: Path):
        self.store = store
        self.index_name = index_name
        self.path = staging_dir
        self._written: Dict[str, int] = {}
        self._lock = threading.Lock()

    @property
    def tables_written(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._written)

    def create_table(self, table: str, rows: Iterable[Row]) -> int:
        """
        Create ``table`` from a row sequence.

        Returns:
            Number of rows written

        Raises:
            StorageError: if the table already exists or cannot be written
        """
        table_path = self.store.table_path(self.path, table)
        with self._lock:
            if table in self._written or table_path.exists():
                raise StorageError(f"Table '{table}' already exists in index '{self.index_name}'", table=table)
            self._written[table] = 0

        count = 0
        try:
            with gzip.open(table_path, "wt", encoding="utf-8", compresslevel=6) as f:
                for row in rows:
                    f.write(json.dumps(row, separators=(",", ":"), ensure_ascii=False))
                    f.write("\n")
                    count += 1
        except OSError as e:
            raise StorageError(f"Failed to write table '{table}': {e}", table=table) from e

        with self._lock:
            self._written[table] = count
        logger.debug(f"Wrote {count} rows to {self.index_name}/{table}")
        return count

    def write_info(self, info: IndexInfo) -> None:
        self._write_json(self.store.INFO_FILE, info.to_dict())

    def write_config(self, config: IndexConfig) -> None:
        """Write the config record; this marks the index as complete."""
        self._write_json(self.store.CONFIG_FILE, config.to_dict())

    def _write_json(self, filename: str, data: Dict[str, Any]) -> None:
        target = self.path / filename
        if target.exists():
            raise StorageError(f"'{filename}' already written for index '{self.index_name}'", table=filename)
        try:
            with open(target, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
        except OSError as e:
            raise StorageError(f"Failed to write '{filename}': {e}", table=filename) from e


class TableStore:
    """Directory-backed store of write-once index tables."""

    TABLE_SUFFIX = ".jsonl.gz"
    CONFIG_FILE = "config.json"
    INFO_FILE = "info.json"

    VOCABULARY = "vocabulary"
    HASH_FUNCTIONS = "hash_functions"
    SIGNATURES = "signatures"
    HASH_BANDS = "hash_bands"
    TABLES = (VOCABULARY, HASH_FUNCTIONS, SIGNATURES, HASH_BANDS)

    def __init__(self, root: Union[str, Path]):
        """
        Initialize table store.

        Args:
            root: Directory holding one sub-directory per index
        """
        self.root = Path(root).expanduser()

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    @staticmethod
    def check_index_name(index_name: str) -> str:
        """Reject names that are empty, hidden, or contain path separators."""
        if (not index_name or index_name.startswith(".")
                or "/" in index_name or "\\" in index_name or index_name != index_name.strip()):
            raise ConfigurationError(
                f"Invalid index name {index_name!r}", parameter="index_name", value=index_name
            )
        return index_name

    def index_path(self, index_name: str) -> Path:
        return self.root / self.check_index_name(index_name)

    def table_path(self, index_dir: Path, table: str) -> Path:
        if table not in self.TABLES:
            raise StorageError(f"Unknown table '{table}'", table=table)
        return index_dir / f"{table}{self.TABLE_SUFFIX}"

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    @contextmanager
    def writer(self, index_name: str) -> Iterator[IndexWriter]:
        """
        Stage a full (re)build of ``index_name``.

        On normal exit the staged index replaces any existing one. If the
        block raises, the staging directory is removed and the previous
        index is left untouched.
        """
        target = self.index_path(index_name)
        token = uuid.uuid4().hex[:12]
        staging = self.root / f".{index_name}.staging-{token}"
        try:
            staging.mkdir(parents=True)
        except OSError as e:
            raise StorageError(f"Cannot create staging directory {staging}: {e}") from e

        idx_writer = IndexWriter(self, index_name, staging)
        try:
            yield idx_writer
            if not (staging / self.CONFIG_FILE).exists():
                raise StorageError(f"Index '{index_name}' was staged without a config record")
            self._publish(staging, target, token)
        except BaseException:
            shutil.rmtree(staging, ignore_errors=True)
            raise
        logger.info(f"Published index '{index_name}' at {target}")

    def _publish(self, staging: Path, target: Path, token: str) -> None:
        retired: Optional[Path] = None
        if target.exists():
            retired = self.root / f".{target.name}.retired-{token}"
            target.rename(retired)
        try:
            staging.rename(target)
        except OSError as e:
            if retired is not None:
                retired.rename(target)
            raise StorageError(f"Failed to publish index at {target}: {e}") from e
        if retired is not None:
            shutil.rmtree(retired, ignore_errors=True)

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def exists(self, index_name: str) -> bool:
        """True when a completed index (one with a config record) exists."""
        return (self.index_path(index_name) / self.CONFIG_FILE).is_file()

    def require(self, index_name: str) -> Path:
        path = self.index_path(index_name)
        if not (path / self.CONFIG_FILE).is_file():
            raise IndexNotFoundError(index_name, details={'path': str(path)})
        return path

    def read_config(self, index_name: str) -> IndexConfig:
        """
        Load and validate the persisted config record.

        Raises:
            IndexNotFoundError: if no completed index exists
            IncompatibleIndexError: if the record is unreadable, invalid, or
                written by a different format version
        """
        path = self.require(index_name)
        try:
            with open(path / self.CONFIG_FILE, "r", encoding="utf-8") as f:
                config = IndexConfig.from_dict(json.load(f))
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise IncompatibleIndexError(
                f"Unreadable config for index '{index_name}': {e}", index_name=index_name
            ) from e

        if config.format_version != INDEX_FORMAT_VERSION:
            raise IncompatibleIndexError(
                f"Index '{index_name}' uses format version {config.format_version}, "
                f"expected {INDEX_FORMAT_VERSION}",
                index_name=index_name,
            )
        problems = config.problems()
        if problems:
            raise IncompatibleIndexError(
                f"Invalid config for index '{index_name}': {'; '.join(problems)}",
                index_name=index_name,
            )
        return config

    def read_info(self, index_name: str) -> IndexInfo:
        path = self.require(index_name)
        try:
            with open(path / self.INFO_FILE, "r", encoding="utf-8") as f:
                return IndexInfo.from_dict(json.load(f))
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise IncompatibleIndexError(
                f"Unreadable info for index '{index_name}': {e}", index_name=index_name
            ) from e

    def read_table(self, index_name: str, table: str,
                   where: Optional[Callable[[Row], bool]] = None) -> Iterator[Row]:
        """
        Stream the rows of ``table``, optionally filtered by ``where``.

        Raises:
            IndexNotFoundError: if no completed index exists
            IncompatibleIndexError: if the table is missing or corrupt
        """
        table_path = self.table_path(self.require(index_name), table)
        if not table_path.is_file():
            raise IncompatibleIndexError(
                f"Index '{index_name}' has no '{table}' table", index_name=index_name
            )
        try:
            with gzip.open(table_path, "rt", encoding="utf-8") as f:
                for line in f:
                    row = json.loads(line)
                    if where is None or where(row):
                        yield row
        except (OSError, EOFError, ValueError) as e:
            raise IncompatibleIndexError(
                f"Corrupt '{table}' table in index '{index_name}': {e}", index_name=index_name
            ) from e

    def read_by_key(self, index_name: str, table: str, key: str, keys: Collection[Any]) -> List[Row]:
        """Rows of ``table`` whose ``key`` column is in ``keys``."""
        wanted = keys if isinstance(keys, (set, frozenset)) else set(keys)
        return list(self.read_table(index_name, table, where=lambda row: row[key] in wanted))

    def list_indexes(self) -> List[str]:
        if not self.root.is_dir():
            return []
        return sorted(
            p.name for p in self.root.iterdir()
            if p.is_dir() and not p.name.startswith(".") and (p / self.CONFIG_FILE).is_file()
        )

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    def drop(self, index_name: str) -> None:
        """Delete a completed index."""
        path = self.require(index_name)
        shutil.rmtree(path)
        logger.info(f"Dropped index '{index_name}'")

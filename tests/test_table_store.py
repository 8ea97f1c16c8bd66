"""
Tests for the write-once table store.
"""

import json

import pytest

from lshmatch.config import IndexConfig
from lshmatch.core.types import IndexInfo
from lshmatch.errors import ConfigurationError, IncompatibleIndexError, IndexNotFoundError, StorageError
from lshmatch.storage.table_store import TableStore


def _info(store, name="idx"):
    return IndexInfo(
        name=name,
        path=str(store.index_path(name)),
        config=IndexConfig(),
        vocabulary_size=2,
        entity_count=1,
        band_count=6,
    )


def _publish(store, name="idx", rows=None):
    with store.writer(name) as writer:
        writer.create_table(TableStore.VOCABULARY, rows or [{"position": 1, "ngram": "AB"}])
        writer.write_info(_info(store, name))
        writer.write_config(IndexConfig())


def _leftovers(store):
    return [p.name for p in store.root.iterdir() if p.name.startswith(".")]


class TestWriting:
    """Test staged, write-once index creation."""

    def test_publish_and_read_back(self, store):
        """Test tables written through a writer can be read."""
        rows = [{"position": 1, "ngram": "AB"}, {"position": 2, "ngram": "BC"}]
        _publish(store, rows=rows)

        assert store.exists("idx")
        assert list(store.read_table("idx", TableStore.VOCABULARY)) == rows
        assert store.read_config("idx") == IndexConfig()
        assert store.read_info("idx").band_count == 6
        assert _leftovers(store) == []

    def test_row_count_returned(self, store):
        """Test create_table reports rows written."""
        with store.writer("idx") as writer:
            assert writer.create_table(TableStore.HASH_BANDS, ({"id": i, "band_hash": i} for i in range(5))) == 5
            assert writer.tables_written == {TableStore.HASH_BANDS: 5}
            writer.write_config(IndexConfig())

    def test_table_is_write_once(self, store):
        """Test a table cannot be created twice."""
        with pytest.raises(StorageError):
            with store.writer("idx") as writer:
                writer.create_table(TableStore.VOCABULARY, [])
                writer.create_table(TableStore.VOCABULARY, [])
        assert not store.exists("idx")

    def test_unknown_table_rejected(self, store):
        """Test only known table names are accepted."""
        with pytest.raises(StorageError):
            with store.writer("idx") as writer:
                writer.create_table("bogus", [])

    def test_failed_build_leaves_nothing(self, store):
        """Test an exception discards the staged tables."""
        with pytest.raises(RuntimeError):
            with store.writer("idx") as writer:
                writer.create_table(TableStore.VOCABULARY, [{"position": 1, "ngram": "AB"}])
                raise RuntimeError("interrupted")

        assert not store.exists("idx")
        assert not store.index_path("idx").exists()
        assert _leftovers(store) == []

    def test_missing_config_is_not_published(self, store):
        """Test an index without a config record is never published."""
        with pytest.raises(StorageError):
            with store.writer("idx") as writer:
                writer.create_table(TableStore.VOCABULARY, [])
        assert not store.index_path("idx").exists()

    def test_failed_rebuild_keeps_previous_index(self, store):
        """Test a failed rebuild leaves the old index readable."""
        _publish(store, rows=[{"position": 1, "ngram": "OLD"}])

        with pytest.raises(RuntimeError):
            with store.writer("idx") as writer:
                writer.create_table(TableStore.VOCABULARY, [{"position": 1, "ngram": "NEW"}])
                raise RuntimeError("interrupted")

        assert [r["ngram"] for r in store.read_table("idx", TableStore.VOCABULARY)] == ["OLD"]

    def test_rebuild_replaces_index(self, store):
        """Test a successful rebuild swaps in the new tables."""
        _publish(store, rows=[{"position": 1, "ngram": "OLD"}])
        _publish(store, rows=[{"position": 1, "ngram": "NEW"}])

        assert [r["ngram"] for r in store.read_table("idx", TableStore.VOCABULARY)] == ["NEW"]
        assert _leftovers(store) == []


class TestReading:
    """Test reads and index-level errors."""

    def test_missing_index(self, store):
        """Test reads against an unbuilt index fail."""
        assert not store.exists("nope")
        with pytest.raises(IndexNotFoundError):
            store.read_config("nope")
        with pytest.raises(IndexNotFoundError):
            list(store.read_table("nope", TableStore.VOCABULARY))

    def test_missing_table(self, store):
        """Test a missing table is an incompatible index."""
        _publish(store)
        with pytest.raises(IncompatibleIndexError):
            list(store.read_table("idx", TableStore.SIGNATURES))

    def test_corrupt_config(self, store):
        """Test an unreadable config record is an incompatible index."""
        _publish(store)
        (store.index_path("idx") / TableStore.CONFIG_FILE).write_text("{not json")
        with pytest.raises(IncompatibleIndexError):
            store.read_config("idx")

    def test_format_version_mismatch(self, store):
        """Test configs from another format version are refused."""
        _publish(store)
        path = store.index_path("idx") / TableStore.CONFIG_FILE
        data = json.loads(path.read_text())
        data["format_version"] = 999
        path.write_text(json.dumps(data))
        with pytest.raises(IncompatibleIndexError):
            store.read_config("idx")

    def test_invalid_persisted_config(self, store):
        """Test a persisted config violating the banding rule is refused."""
        _publish(store)
        path = store.index_path("idx") / TableStore.CONFIG_FILE
        data = json.loads(path.read_text())
        data["hash_band_size"] = 5
        path.write_text(json.dumps(data))
        with pytest.raises(IncompatibleIndexError):
            store.read_config("idx")

    def test_read_by_key(self, store):
        """Test key-filtered reads."""
        with store.writer("idx") as writer:
            writer.create_table(TableStore.SIGNATURES, [{"id": i, "sig": [i]} for i in range(10)])
            writer.write_config(IndexConfig())

        rows = store.read_by_key("idx", TableStore.SIGNATURES, "id", [2, 5, 42])
        assert sorted(r["id"] for r in rows) == [2, 5]

    def test_list_and_drop(self, store):
        """Test listing and dropping indexes."""
        assert store.list_indexes() == []
        _publish(store, "b")
        _publish(store, "a")
        assert store.list_indexes() == ["a", "b"]

        store.drop("a")
        assert store.list_indexes() == ["b"]
        with pytest.raises(IndexNotFoundError):
            store.drop("a")

    @pytest.mark.parametrize("name", ["", ".hidden", "a/b", "..", " padded"])
    def test_invalid_names(self, store, name):
        """Test unsafe index names are rejected."""
        with pytest.raises(ConfigurationError):
            store.index_path(name)

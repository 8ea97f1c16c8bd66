"""Row types shared by the build and search pipelines.

Each persisted table stores one of these records per row. They are frozen so
stages can hand them between worker threads without copying.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Tuple, Union

from ..config import UINT64_MAX, IndexConfig
from ..errors import ConfigurationError

# =============================================================================
# Corpus rows
# =============================================================================


@dataclass(frozen=True)
class Entity:
    """A caller-identified piece of text to index or query.

    Attributes:
        id: Caller-assigned unsigned 64-bit identifier
        text: The string to match
    """
    id: int
    text: str


@dataclass(frozen=True)
class VocabularyEntry:
    """An n-gram and its dense position (1-based) in the vocabulary."""
    position: int
    ngram: str

    def to_row(self) -> Dict[str, Any]:
        return {"position": self.position, "ngram": self.ngram}

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "VocabularyEntry":
        return cls(position=int(row["position"]), ngram=row["ngram"])


@dataclass(frozen=True)
class HashFunction:
    """One cell of permutation ``set_index``: ``vocabulary_position -> rank``."""
    set_index: int
    rank: int
    vocabulary_position: int

    def to_row(self) -> Dict[str, Any]:
        return {
            "set_index": self.set_index,
            "rank": self.rank,
            "vocabulary_position": self.vocabulary_position,
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "HashFunction":
        return cls(
            set_index=int(row["set_index"]),
            rank=int(row["rank"]),
            vocabulary_position=int(row["vocabulary_position"]),
        )


@dataclass(frozen=True)
class DenseSignature:
    """MinHash signature of one entity; ``sig[k]`` is the value for slot k."""
    id: int
    sig: Tuple[int, ...]

    def to_row(self) -> Dict[str, Any]:
        return {"id": self.id, "sig": list(self.sig)}

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "DenseSignature":
        return cls(id=int(row["id"]), sig=tuple(int(v) for v in row["sig"]))


@dataclass(frozen=True)
class HashBand:
    """One LSH bucket key for an entity."""
    id: int
    band_hash: int

    def to_row(self) -> Dict[str, Any]:
        return {"id": self.id, "band_hash": self.band_hash}

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "HashBand":
        return cls(id=int(row["id"]), band_hash=int(row["band_hash"]))


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class Match:
    """A corpus entity found for a query.

    Attributes:
        query_id: Id of the query entity
        corpus_id: Id of the matching corpus entity
        matched_bands: Number of LSH bands the pair shares
        similarity: Fraction of signature slots that agree, in [0, 1]
    """
    query_id: int
    corpus_id: int
    matched_bands: int
    similarity: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query_id": self.query_id,
            "corpus_id": self.corpus_id,
            "matched_bands": self.matched_bands,
            "similarity": self.similarity,
        }


@dataclass
class IndexInfo:
    """Summary of a persisted index."""
    name: str
    path: str
    config: IndexConfig
    vocabulary_size: int
    entity_count: int
    band_count: int
    empty_signatures: int = 0
    built_at: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "config": self.config.to_dict(),
            "vocabulary_size": self.vocabulary_size,
            "entity_count": self.entity_count,
            "band_count": self.band_count,
            "empty_signatures": self.empty_signatures,
            "built_at": self.built_at,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IndexInfo":
        return cls(
            name=data["name"],
            path=data["path"],
            config=IndexConfig.from_dict(data["config"]),
            vocabulary_size=int(data["vocabulary_size"]),
            entity_count=int(data["entity_count"]),
            band_count=int(data["band_count"]),
            empty_signatures=int(data.get("empty_signatures", 0)),
            built_at=data.get("built_at", ""),
            metadata=dict(data.get("metadata", {})),
        )


EntityLike = Union[Entity, Tuple[int, str]]


def coerce_entities(entities: Iterable[EntityLike]) -> List[Entity]:
    """Normalize ``(id, text)`` tuples to Entity rows and check their ids.

    Raises:
        ConfigurationError: for non-integer ids, ids outside the unsigned
            64-bit range, or text that is not a UTF-8 encodable string
    """
    out: List[Entity] = []
    for item in entities:
        entity = item if isinstance(item, Entity) else Entity(*item)
        if isinstance(entity.id, bool) or not isinstance(entity.id, int):
            raise ConfigurationError(
                f"Entity id must be an integer, got {entity.id!r}", parameter="id", value=entity.id
            )
        if not 0 <= entity.id <= UINT64_MAX:
            raise ConfigurationError(
                f"Entity id {entity.id} is outside the unsigned 64-bit range",
                parameter="id",
                value=entity.id,
            )
        if not isinstance(entity.text, str):
            raise ConfigurationError(
                f"Entity {entity.id} text must be a string, got {type(entity.text).__name__}",
                parameter="text",
                value=entity.text,
            )
        try:
            entity.text.encode("utf-8")
        except UnicodeEncodeError as e:
            raise ConfigurationError(
                f"Entity {entity.id} text is not valid UTF-8: {e.reason}",
                parameter="text",
                value=entity.text,
            ) from e
        out.append(entity)
    return out

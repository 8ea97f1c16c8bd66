"""
Searching a persisted index.

Queries are signed with the vocabulary and permutations stored at build time,
banded the same way as the corpus, and joined against the corpus bands.
Pairs sharing enough bands are scored by signature agreement.
"""

import logging
from itertools import chain
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..config import IndexConfig, MatcherSettings, get_settings
from ..core.bands import create_hash_bands
from ..core.signatures import HashFunctions, compute_signatures
from ..core.similarity import signature_similarity
from ..core.types import (
    DenseSignature,
    Entity,
    EntityLike,
    HashBand,
    HashFunction,
    IndexInfo,
    Match,
    VocabularyEntry,
    coerce_entities,
)
from ..core.vocabulary import Vocabulary
from ..errors import ConfigurationError, IncompatibleIndexError
from ..storage.table_store import TableStore
from ..utils.logging_setup import log_operation, log_stage
from .partition import PartitionedExecutor, count_by_key, hash_join

logger = logging.getLogger(__name__)

# Build-time parameters a caller might pass out of habit; the persisted
# config always wins.
_BUILD_PARAMETERS = {
    "ngram_length": "ngram_length",
    "signature_size": "signature_size",
    "band_size": "hash_band_size",
    "hash_band_size": "hash_band_size",
}


class IndexSearcher:
    """
    A loaded index ready for repeated searches.

    Construction reads the config, vocabulary and hash functions once and
    checks that they agree; corpus bands and signatures are read per search.
    Instances hold no mutable state after construction and may be shared
    between threads.
    """

    def __init__(self, index_name: str,
                 settings: Optional[MatcherSettings] = None,
                 store: Optional[TableStore] = None):
        """
        Load the index.

        Raises:
            IndexNotFoundError: if no completed index exists
            IncompatibleIndexError: if the persisted tables are unusable
        """
        self.settings = settings or get_settings()
        self.store = store or TableStore(self.settings.root_path)
        self.index_name = index_name

        self.config: IndexConfig = self.store.read_config(index_name)
        self.vocabulary, self.hash_functions = self._load_signing_tables()

    def _load_signing_tables(self) -> Tuple[Vocabulary, HashFunctions]:
        name = self.index_name
        try:
            vocabulary = Vocabulary(
                VocabularyEntry.from_row(r) for r in self.store.read_table(name, TableStore.VOCABULARY)
            )
            hash_functions = HashFunctions.from_rows(
                (HashFunction.from_row(r) for r in self.store.read_table(name, TableStore.HASH_FUNCTIONS)),
                signature_size=self.config.signature_size,
                vocabulary_size=len(vocabulary),
            )
        except (ValueError, KeyError, TypeError) as e:
            raise IncompatibleIndexError(
                f"Index '{name}' tables are inconsistent: {e}", index_name=name
            ) from e
        logger.debug(f"Loaded index '{name}' with {len(vocabulary)} n-grams")
        return vocabulary, hash_functions

    @property
    def band_count(self) -> int:
        return self.config.band_count

    def info(self) -> IndexInfo:
        return self.store.read_info(self.index_name)

    def _check_parameters(self, min_band_matches: int, min_similarity: float,
                          limit: Optional[int], ignored: Dict[str, Any]) -> None:
        for name, value in ignored.items():
            field = _BUILD_PARAMETERS.get(name)
            if field is None:
                raise TypeError(f"search got an unexpected keyword argument '{name}'")
            persisted = getattr(self.config, field)
            if value is not None and value != persisted:
                logger.warning(
                    f"Ignoring {name}={value!r}; index '{self.index_name}' was built with {field}={persisted}"
                )

        if (isinstance(min_band_matches, bool) or not isinstance(min_band_matches, int)
                or not 1 <= min_band_matches <= self.band_count):
            raise ConfigurationError(
                f"min_band_matches must be between 1 and {self.band_count}, got {min_band_matches!r}",
                parameter="min_band_matches",
                value=min_band_matches,
            )
        if not 0.0 <= min_similarity <= 1.0:
            raise ConfigurationError(
                f"min_similarity must be between 0 and 1, got {min_similarity}",
                parameter="min_similarity",
                value=min_similarity,
            )
        if limit is not None and limit < 1:
            raise ConfigurationError(f"limit must be positive, got {limit}", parameter="limit", value=limit)

    def search_many(self, query_entities: Iterable[EntityLike], min_band_matches: int = 1, *,
                    min_similarity: float = 0.0, limit: Optional[int] = None,
                    **ignored) -> List[Match]:
        """
        Find corpus entities similar to each query.

        Args:
            query_entities: Query rows or ``(id, text)`` tuples; ids must be unique
            min_band_matches: Minimum number of shared bands, in ``1..K/b``
            min_similarity: Drop matches scoring below this
            limit: Keep at most this many matches per query
            **ignored: Build parameters (``ngram_length``, ``signature_size``,
                ``band_size``); ignored in favour of the persisted config

        Returns:
            Matches ordered by query id, then best first
        """
        self._check_parameters(min_band_matches, min_similarity, limit, ignored)

        queries = coerce_entities(query_entities)
        if len({q.id for q in queries}) != len(queries):
            raise ConfigurationError("Query ids must be unique", parameter="id")
        if not queries:
            return []

        log_operation(logger, "search", index_name=self.index_name, queries=len(queries),
                      min_band_matches=min_band_matches)

        n = self.config.ngram_length
        sentinel = self.hash_functions.sentinel
        by_id = lambda row: row.id  # noqa: E731

        with PartitionedExecutor(max_workers=self.settings.max_workers,
                                 partitions=self.settings.partitions) as executor:
            with log_stage(logger, "query_signatures", queries=len(queries)):
                sig_parts = executor.map_partitions(
                    lambda part: compute_signatures(part, self.vocabulary, self.hash_functions, n),
                    queries,
                    key=by_id,
                )
                query_sigs: Dict[int, DenseSignature] = {s.id: s for s in chain.from_iterable(sig_parts)}
                query_bands = create_hash_bands(query_sigs.values(), self.config.hash_band_size, sentinel)

            if not query_bands:
                logger.info("No query produced any known n-gram; nothing to match")
                return []

            with log_stage(logger, "band_join"):
                corpus_bands = [
                    HashBand.from_row(r)
                    for r in self.store.read_table(self.index_name, TableStore.HASH_BANDS)
                ]
                band_pairs = hash_join(
                    query_bands, corpus_bands,
                    left_key=lambda b: b.band_hash, right_key=lambda b: b.band_hash,
                    executor=executor,
                )
                shared = count_by_key(band_pairs, key=lambda pair: (pair[0].id, pair[1].id), executor=executor)
                candidates = [(pair, count) for pair, count in shared.items() if count >= min_band_matches]

            logger.debug(f"{len(shared)} candidate pairs, {len(candidates)} with >= {min_band_matches} bands")
            if not candidates:
                return []

            with log_stage(logger, "signature_join", candidates=len(candidates)):
                wanted = {corpus_id for (_, corpus_id), _ in candidates}
                corpus_sigs = [
                    DenseSignature.from_row(r)
                    for r in self.store.read_by_key(self.index_name, TableStore.SIGNATURES, "id", wanted)
                ]
                joined = hash_join(
                    candidates, corpus_sigs,
                    left_key=lambda c: c[0][1], right_key=by_id,
                    executor=executor,
                )

        matches = []
        for ((query_id, corpus_id), count), corpus_sig in joined:
            similarity = signature_similarity(query_sigs[query_id].sig, corpus_sig.sig, sentinel)
            if similarity >= min_similarity:
                matches.append(Match(query_id, corpus_id, count, similarity))

        return rank_matches(matches, limit)

    def search_one(self, query_text: str, min_band_matches: int = 1, **kwargs) -> List[Match]:
        """Search for a single string; matches carry query id 0."""
        return self.search_many([Entity(0, query_text)], min_band_matches, **kwargs)


def rank_matches(matches: Iterable[Match], limit: Optional[int] = None) -> List[Match]:
    """Order by query, then similarity and shared bands descending; cap per query."""
    ordered = sorted(matches, key=lambda m: (m.query_id, -m.similarity, -m.matched_bands, m.corpus_id))
    if limit is None:
        return ordered

    out: List[Match] = []
    per_query: Dict[int, int] = {}
    for m in ordered:
        seen = per_query.get(m.query_id, 0)
        if seen < limit:
            out.append(m)
            per_query[m.query_id] = seen + 1
    return out


def search_many(index_name: str, query_entities: Iterable[EntityLike], min_band_matches: int = 1, *,
                settings: Optional[MatcherSettings] = None, store: Optional[TableStore] = None,
                **kwargs) -> List[Match]:
    """
    Search ``index_name`` for every query entity.

    See ``IndexSearcher.search_many`` for the keyword arguments.

    Raises:
        IndexNotFoundError: if the index has not been built
        IncompatibleIndexError: if the persisted index is unusable
        ConfigurationError: for out-of-range search parameters
    """
    searcher = IndexSearcher(index_name, settings=settings, store=store)
    return searcher.search_many(query_entities, min_band_matches, **kwargs)


def search_one(index_name: str, query_text: str, min_band_matches: int = 1, *,
               settings: Optional[MatcherSettings] = None, store: Optional[TableStore] = None,
               **kwargs) -> List[Match]:
    """``search_many`` on the single query ``(0, query_text)``."""
    return search_many(index_name, [Entity(0, query_text)], min_band_matches,
                       settings=settings, store=store, **kwargs)

"""
Index construction.

Build runs tokenize -> vocabulary -> hash functions -> signatures -> bands,
persisting each table as soon as its input is ready. Everything that can fail
on bad input is checked before the first table is written, and tables are
staged so a failed build never leaves a partial index behind.
"""

import logging
from concurrent.futures import wait
from datetime import datetime, timezone
from itertools import chain
from typing import Iterable, List, Optional

from ..config import IndexConfig, MatcherSettings, get_settings
from ..core.bands import create_hash_bands
from ..core.signatures import compute_signatures, generate_hash_functions, is_empty_signature
from ..core.tokenizer import DEFAULT_NGRAM_LENGTH
from ..core.types import DenseSignature, Entity, EntityLike, HashBand, IndexInfo, coerce_entities
from ..core.vocabulary import Vocabulary, collect_ngrams, merge_ngram_partitions
from ..errors import ConfigurationError
from ..storage.table_store import TableStore
from ..utils.logging_setup import log_operation, log_stage
from .partition import PartitionedExecutor, gather

logger = logging.getLogger(__name__)


def validate_corpus(entities: List[Entity], config: IndexConfig) -> None:
    """
    Reject corpora that cannot produce a usable index.

    Raises:
        ConfigurationError: for an empty corpus or duplicate ids
    """
    if not entities:
        raise ConfigurationError("Cannot build an index from an empty corpus", parameter="entities")

    seen = set()
    for e in entities:
        if e.id in seen:
            raise ConfigurationError(f"Duplicate entity id {e.id} in corpus", parameter="id", value=e.id)
        seen.add(e.id)

    short = sum(1 for e in entities if len(e.text) < config.ngram_length)
    if short:
        logger.warning(
            f"{short} of {len(entities)} entities are shorter than ngram_length="
            f"{config.ngram_length} and will never match"
        )


def build(
    index_name: str,
    entities: Iterable[EntityLike],
    signature_size: int,
    band_size: int,
    ngram_length: int = DEFAULT_NGRAM_LENGTH,
    *,
    seed: Optional[int] = None,
    settings: Optional[MatcherSettings] = None,
    store: Optional[TableStore] = None,
) -> IndexInfo:
    """
    Build (or fully rebuild) the index ``index_name`` from ``entities``.

    Args:
        index_name: Name of the index under the store root
        entities: Entity rows or ``(id, text)`` tuples
        signature_size: K, MinHash slots per signature
        band_size: b, slots per LSH band; must divide K and be smaller than it
        ngram_length: Code points per n-gram
        seed: Permutation seed; falls back to ``settings.seed``
        settings: Runtime settings (loaded from the environment if omitted)
        store: Table store (defaults to one rooted at ``settings.index_root``)

    Returns:
        IndexInfo describing the published index

    Raises:
        ConfigurationError: for invalid parameters or a degenerate corpus,
            always before anything is written
        StorageError: if the tables cannot be written
    """
    settings = settings or get_settings()
    store = store or TableStore(settings.root_path)
    seed = seed if seed is not None else settings.seed

    config = IndexConfig(
        ngram_length=ngram_length,
        signature_size=signature_size,
        hash_band_size=band_size,
    ).validate()
    TableStore.check_index_name(index_name)

    log_operation(logger, "build", index_name=index_name, **config.to_dict())

    corpus = coerce_entities(entities)
    validate_corpus(corpus, config)
    n = config.ngram_length

    with PartitionedExecutor(max_workers=settings.max_workers, partitions=settings.partitions) as executor:
        by_id = lambda e: e.id  # noqa: E731

        with log_stage(logger, "vocabulary", index_name=index_name):
            ngram_parts = executor.map_partitions(lambda part: collect_ngrams(part, n), corpus, key=by_id)
            vocab_entries = merge_ngram_partitions(ngram_parts)

        if not vocab_entries:
            raise ConfigurationError(
                f"No entity is at least {n} code points long; the vocabulary would be empty",
                parameter="ngram_length",
                value=n,
            )

        vocabulary = Vocabulary(vocab_entries)
        V = len(vocabulary)

        # Barrier: permutations need the global vocabulary size
        with log_stage(logger, "hash_functions", signature_size=config.signature_size, vocabulary_size=V):
            hash_functions = generate_hash_functions(config.signature_size, V, seed=seed)

        with store.writer(index_name) as writer:
            pending = [
                executor.submit(writer.create_table, TableStore.VOCABULARY,
                                (e.to_row() for e in vocab_entries)),
                executor.submit(writer.create_table, TableStore.HASH_FUNCTIONS,
                                (h.to_row() for h in hash_functions.to_rows())),
            ]
            try:
                with log_stage(logger, "signatures", entities=len(corpus)):
                    sig_parts = executor.map_partitions(
                        lambda part: compute_signatures(part, vocabulary, hash_functions, n),
                        corpus,
                        key=by_id,
                    )
                    signatures: List[DenseSignature] = sorted(chain.from_iterable(sig_parts), key=by_id)

                pending.append(executor.submit(
                    writer.create_table, TableStore.SIGNATURES, (s.to_row() for s in signatures)
                ))

                with log_stage(logger, "hash_bands", band_size=config.hash_band_size):
                    band_parts = executor.map_partitions(
                        lambda part: create_hash_bands(part, config.hash_band_size, hash_functions.sentinel),
                        signatures,
                        key=by_id,
                    )
                    bands: List[HashBand] = list(chain.from_iterable(band_parts))

                pending.append(executor.submit(
                    writer.create_table, TableStore.HASH_BANDS, (b.to_row() for b in bands)
                ))
                gather(pending)
            finally:
                # Never let the staging directory be removed under a running write
                wait(pending)

            empty = sum(1 for s in signatures if is_empty_signature(s, hash_functions.sentinel))
            info = IndexInfo(
                name=index_name,
                path=str(store.index_path(index_name)),
                config=config,
                vocabulary_size=V,
                entity_count=len(signatures),
                band_count=len(bands),
                empty_signatures=empty,
                built_at=datetime.now(timezone.utc).isoformat(),
                metadata={'seed': seed},
            )
            writer.write_info(info)
            writer.write_config(config)

    logger.info(
        f"Built index '{index_name}': {info.entity_count} entities, "
        f"{V} {n}-grams, {info.band_count} bands"
    )
    return info

"""
Vocabulary construction.

The vocabulary is the universe of n-grams over which set similarity is
measured. Positions are dense (``1..V``) and fixed for the lifetime of an
index, so search-time signatures line up with the build-time ones.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Iterator, List, Optional, Sequence

from .tokenizer import make_ngrams
from .types import Entity, VocabularyEntry

logger = logging.getLogger(__name__)


def collect_ngrams(entities: Iterable[Entity], n: int) -> set:
    """Union of the n-gram sets of every entity."""
    universe: set = set()
    for entity in entities:
        universe.update(make_ngrams(entity.text, n))
    return universe


def build_vocabulary(entities: Iterable[Entity], n: int) -> List[VocabularyEntry]:
    """
    Assign every distinct n-gram in the corpus a position in ``1..V``.

    N-grams are numbered in code-point order, so the same corpus always
    yields the same vocabulary.
    """
    universe = collect_ngrams(entities, n)
    vocabulary = [VocabularyEntry(position=i, ngram=g) for i, g in enumerate(sorted(universe), start=1)]
    logger.debug(f"Built vocabulary of {len(vocabulary)} {n}-grams")
    return vocabulary


def merge_ngram_partitions(partitions: Sequence[Iterable[str]]) -> List[VocabularyEntry]:
    """
    Deduplicate per-partition n-gram sets into one global vocabulary.

    Used when tokenization runs per partition; the result is identical to
    ``build_vocabulary`` over the whole corpus.
    """
    universe: set = set()
    for part in partitions:
        universe.update(part)
    return [VocabularyEntry(position=i, ngram=g) for i, g in enumerate(sorted(universe), start=1)]


class Vocabulary:
    """Lookup table from n-gram to vocabulary position."""

    __slots__ = ("_positions", "_entries")

    def __init__(self, entries: Iterable[VocabularyEntry]) -> None:
        self._entries: List[VocabularyEntry] = sorted(entries, key=lambda e: e.position)
        self._positions: Dict[str, int] = {e.ngram: e.position for e in self._entries}
        if len(self._positions) != len(self._entries):
            raise ValueError("Vocabulary contains duplicate n-grams")
        expected = range(1, len(self._entries) + 1)
        if any(e.position != p for e, p in zip(self._entries, expected)):
            raise ValueError("Vocabulary positions must form the dense range 1..V")

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[VocabularyEntry]:
        return iter(self._entries)

    def __contains__(self, ngram: object) -> bool:
        return ngram in self._positions

    @property
    def size(self) -> int:
        return len(self._entries)

    def position(self, ngram: str) -> Optional[int]:
        return self._positions.get(ngram)

    def positions(self, ngrams: Iterable[str]) -> List[int]:
        """Positions of the known n-grams; unknown ones are dropped."""
        lookup = self._positions
        return sorted(lookup[g] for g in ngrams if g in lookup)

# lshmatch/core/signatures.py
"""
Random-permutation MinHash over the index vocabulary.

For one uniformly random permutation of the vocabulary, the probability that
two n-gram sets share the same minimum rank equals their Jaccard similarity.
K independent permutations give a K-slot signature whose slot agreement rate
estimates that similarity.

Permutations are drawn once per build from a single (optionally seeded)
generator and persisted; search must reuse them unchanged.
"""
from __future__ import annotations

import logging
from typing import Iterable, Iterator, List, Optional, Sequence

import numpy as np

from .tokenizer import DEFAULT_NGRAM_LENGTH, make_ngrams
from .types import DenseSignature, Entity, HashFunction
from .vocabulary import Vocabulary

logger = logging.getLogger(__name__)


class HashFunctions:
    """
    K permutations of ``1..V`` stored as a rank matrix.

    ``ranks[k, p]`` is the rank assigned to vocabulary position ``p`` by
    permutation ``k + 1``. Column 0 is unused and holds the empty-set
    sentinel ``V + 1``.
    """

    __slots__ = ("ranks",)

    def __init__(self, ranks: np.ndarray) -> None:
        if ranks.ndim != 2 or ranks.shape[1] < 2:
            raise ValueError("rank matrix must have shape (K, V + 1) with V >= 1")
        self.ranks = ranks.view()
        self.ranks.setflags(write=False)

    @property
    def signature_size(self) -> int:
        return int(self.ranks.shape[0])

    @property
    def vocabulary_size(self) -> int:
        return int(self.ranks.shape[1] - 1)

    @property
    def sentinel(self) -> int:
        """MinHash value used for every slot of an entity with no known n-grams."""
        return self.vocabulary_size + 1

    def to_rows(self) -> Iterator[HashFunction]:
        """Yield ``(set_index, rank, vocabulary_position)`` triples, 1-based."""
        for k in range(self.signature_size):
            row = self.ranks[k]
            for p in range(1, self.vocabulary_size + 1):
                yield HashFunction(set_index=k + 1, rank=int(row[p]), vocabulary_position=p)

    @classmethod
    def from_rows(cls, rows: Iterable[HashFunction], signature_size: int, vocabulary_size: int) -> "HashFunctions":
        """
        Rebuild the rank matrix from persisted triples.

        Raises:
            ValueError: if the triples do not describe exactly
                ``signature_size`` permutations of ``1..vocabulary_size``
        """
        K, V = signature_size, vocabulary_size
        ranks = np.zeros((K, V + 1), dtype=np.int64)
        count = 0
        for hf in rows:
            if not (1 <= hf.set_index <= K and 1 <= hf.vocabulary_position <= V and 1 <= hf.rank <= V):
                raise ValueError(f"hash function row out of range: {hf}")
            ranks[hf.set_index - 1, hf.vocabulary_position] = hf.rank
            count += 1

        if count != K * V:
            raise ValueError(f"expected {K * V} hash function rows, found {count}")
        expected = np.arange(1, V + 1)
        for k in range(K):
            if not np.array_equal(np.sort(ranks[k, 1:]), expected):
                raise ValueError(f"hash function set {k + 1} is not a permutation of 1..{V}")

        ranks[:, 0] = V + 1
        return cls(ranks)

    def minhash(self, positions: Sequence[int]) -> tuple:
        """Signature of a set of vocabulary positions."""
        if not len(positions):
            return (self.sentinel,) * self.signature_size
        cols = np.asarray(positions, dtype=np.intp)
        return tuple(int(v) for v in self.ranks[:, cols].min(axis=1))


def generate_hash_functions(signature_size: int, vocabulary_size: int,
                            seed: Optional[int] = None) -> HashFunctions:
    """
    Draw ``signature_size`` independent uniform permutations of ``1..V``.

    Args:
        signature_size: K, the number of permutations
        vocabulary_size: V
        seed: Seed for the generator; None draws fresh OS entropy

    Returns:
        HashFunctions holding the rank matrix
    """
    if signature_size < 1:
        raise ValueError("signature_size must be >= 1")
    if vocabulary_size < 1:
        raise ValueError("vocabulary_size must be >= 1")

    rng = np.random.default_rng(seed)
    V = vocabulary_size
    ranks = np.empty((signature_size, V + 1), dtype=np.int64)
    ranks[:, 0] = V + 1
    for k in range(signature_size):
        # Fisher-Yates shuffle of 1..V
        ranks[k, 1:] = rng.permutation(V) + 1

    logger.debug(f"Generated {signature_size} permutations over {V} positions")
    return HashFunctions(ranks)


def compute_signature(text: str, vocabulary: Vocabulary, hash_functions: HashFunctions,
                      ngram_length: int = DEFAULT_NGRAM_LENGTH) -> tuple:
    """MinHash signature of one string."""
    positions = vocabulary.positions(make_ngrams(text, ngram_length))
    return hash_functions.minhash(positions)


def compute_signatures(entities: Iterable[Entity], vocabulary: Vocabulary,
                       hash_functions: HashFunctions,
                       ngram_length: int = DEFAULT_NGRAM_LENGTH) -> List[DenseSignature]:
    """
    Compute a DenseSignature for every entity.

    N-grams missing from the vocabulary are dropped; an entity with no known
    n-grams gets the sentinel ``V + 1`` in every slot.
    """
    if len(vocabulary) != hash_functions.vocabulary_size:
        raise ValueError(
            f"vocabulary has {len(vocabulary)} entries but hash functions cover "
            f"{hash_functions.vocabulary_size}"
        )
    return [
        DenseSignature(id=e.id, sig=compute_signature(e.text, vocabulary, hash_functions, ngram_length))
        for e in entities
    ]


def is_empty_signature(signature: DenseSignature, sentinel: int) -> bool:
    return all(v == sentinel for v in signature.sig)

# lshmatch/core/tokenizer.py
"""
Character n-gram tokenization.

Python strings index by code point, so slicing never splits a multi-byte
UTF-8 sequence.
"""
from __future__ import annotations

from typing import FrozenSet, Iterator

from ..errors import ConfigurationError

DEFAULT_NGRAM_LENGTH = 2


def iter_ngrams(s: str, n: int) -> Iterator[str]:
    """Yield every n-code-point window of ``s`` in order, duplicates included."""
    if n < 1:
        raise ConfigurationError(f"ngram_length must be >= 1, got {n}", parameter="ngram_length", value=n)
    for i in range(len(s) - n + 1):
        yield s[i:i + n]


def make_ngrams(s: str, n: int = DEFAULT_NGRAM_LENGTH) -> FrozenSet[str]:
    """
    Return the distinct n-grams of ``s``.

    Empty when ``s`` has fewer than ``n`` code points.

    >>> sorted(make_ngrams("CAMPER", 2))
    ['AM', 'CA', 'ER', 'MP', 'PE']
    """
    return frozenset(iter_ngrams(s, n))

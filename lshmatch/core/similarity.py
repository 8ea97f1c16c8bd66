"""Similarity measures over signatures and n-gram sets."""

from __future__ import annotations

from math import comb
from typing import AbstractSet, Optional, Sequence

import numpy as np

from .tokenizer import DEFAULT_NGRAM_LENGTH, make_ngrams


def signature_similarity(a: Sequence[int], b: Sequence[int], sentinel: Optional[int] = None) -> float:
    """
    Fraction of slots on which two MinHash signatures agree.

    This is the MinHash estimate of the Jaccard similarity of the underlying
    n-gram sets. Slots where both signatures hold the empty-set ``sentinel``
    never count as agreement.
    """
    if len(a) != len(b):
        raise ValueError(f"signature lengths differ: {len(a)} != {len(b)}")
    if not len(a):
        return 0.0
    x = np.asarray(a, dtype=np.int64)
    y = np.asarray(b, dtype=np.int64)
    agree = x == y
    if sentinel is not None:
        agree &= x != sentinel
    return float(agree.sum()) / len(a)


def jaccard(a: AbstractSet, b: AbstractSet) -> float:
    """Exact Jaccard similarity ``|A & B| / |A | B|``; 0.0 for two empty sets."""
    union = len(a | b)
    if union == 0:
        return 0.0
    return len(a & b) / union


def ngram_jaccard(s: str, t: str, n: int = DEFAULT_NGRAM_LENGTH) -> float:
    """Exact Jaccard similarity of the n-gram sets of two strings."""
    return jaccard(make_ngrams(s, n), make_ngrams(t, n))


def candidate_probability(similarity: float, signature_size: int, band_size: int,
                          min_band_matches: int = 1) -> float:
    """
    Probability that a pair with the given Jaccard similarity shares at least
    ``min_band_matches`` bands.

    Each band matches independently with probability ``s ** b``, so the number
    of matching bands is binomial over ``K / b`` trials. With
    ``min_band_matches=1`` this is the usual ``1 - (1 - s**b) ** (K/b)`` curve.
    """
    bands = signature_size // band_size
    p = similarity ** band_size
    terms = [comb(bands, i) * p ** i * (1 - p) ** (bands - i) for i in range(min_band_matches, bands + 1)]
    return min(1.0, float(sum(terms)))


def threshold_similarity(signature_size: int, band_size: int) -> float:
    """Approximate similarity where the S-curve is steepest: ``(1/bands) ** (1/b)``."""
    bands = signature_size // band_size
    return (1.0 / bands) ** (1.0 / band_size)

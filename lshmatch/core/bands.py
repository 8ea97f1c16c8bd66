# lshmatch/core/bands.py
"""
LSH banding of MinHash signatures.

A K-slot signature is cut into K / b contiguous bands of b slots. Each band
hashes to one 64-bit bucket key; two entities become candidates when at least
one of their band keys collide. Smaller bands mean more bands, higher recall,
lower precision and more storage.
"""
from __future__ import annotations

import hashlib
from typing import Iterable, Iterator, List, Optional, Sequence

from ..errors import ConfigurationError
from .types import DenseSignature, HashBand


def check_band_size(signature_size: int, band_size: int) -> int:
    """
    Validate the banding precondition and return the band count.

    Raises:
        ConfigurationError: unless ``0 < band_size < signature_size`` and
            ``band_size`` divides ``signature_size``
    """
    if band_size < 1 or band_size >= signature_size:
        raise ConfigurationError(
            f"band size {band_size} must be positive and smaller than signature size {signature_size}",
            parameter="band_size",
            value=band_size,
        )
    if signature_size % band_size != 0:
        raise ConfigurationError(
            f"band size {band_size} does not evenly divide signature size {signature_size}",
            parameter="band_size",
            value=band_size,
        )
    return signature_size // band_size


def band_hash(values: Sequence[int], band_number: int) -> int:
    """
    Stable, order-sensitive 64-bit key for one band.

    The band ordinal is mixed in so equal values in different band positions
    land in different buckets.
    """
    m = hashlib.blake2b(digest_size=8)
    m.update(band_number.to_bytes(4, "little"))
    for v in values:
        m.update(int(v).to_bytes(8, "little"))
    return int.from_bytes(m.digest(), "little")


def signature_bands(sig: Sequence[int], band_size: int) -> Iterator[int]:
    """Yield the band hashes of one signature in band order."""
    for band_number, start in enumerate(range(0, len(sig), band_size)):
        yield band_hash(sig[start:start + band_size], band_number)


def create_hash_bands(signatures: Iterable[DenseSignature], band_size: int,
                      sentinel: Optional[int] = None) -> List[HashBand]:
    """
    Produce one HashBand row per (entity, band).

    Args:
        signatures: Dense signatures, all of the same length K
        band_size: b, slots per band
        sentinel: Empty-set MinHash value; signatures made only of it get no
            bands, so they are never retrieved as candidates

    Raises:
        ConfigurationError: if the banding precondition fails
    """
    rows: List[HashBand] = []
    checked_size: Optional[int] = None
    for s in signatures:
        if checked_size is None:
            check_band_size(len(s.sig), band_size)
            checked_size = len(s.sig)
        elif len(s.sig) != checked_size:
            raise ValueError(f"signature {s.id} has {len(s.sig)} slots, expected {checked_size}")

        if sentinel is not None and all(v == sentinel for v in s.sig):
            continue
        rows.extend(HashBand(id=s.id, band_hash=h) for h in signature_bands(s.sig, band_size))
    return rows

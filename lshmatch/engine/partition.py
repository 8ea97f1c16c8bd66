"""
Partitioned execution primitives.

Rows are distributed into partitions by a stable hash of their key, then
processed partition-at-a-time on a thread pool. Joins and aggregations only
ever compare rows inside the same partition, so no single worker has to hold
both sides of a join for the whole data set.
"""

import hashlib
import logging
import os
from collections import Counter, defaultdict
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Dict, Hashable, Iterable, List, Optional, Sequence, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')
U = TypeVar('U')
R = TypeVar('R')

DEFAULT_PARTITIONS = 8


def stable_partition(key: Hashable, partitions: int) -> int:
    """
    Partition number for ``key``, identical across processes and runs.

    Python's built-in ``hash`` is salted for strings and poorly mixed for
    strided integers, so keys go through BLAKE2b instead.
    """
    if isinstance(key, int):
        data = key.to_bytes(16, "little", signed=True)
    else:
        data = str(key).encode("utf-8")
    digest = hashlib.blake2b(data, digest_size=8).digest()
    return int.from_bytes(digest, "little") % partitions


def partition_rows(rows: Iterable[T], key: Callable[[T], Hashable], partitions: int) -> List[List[T]]:
    """Distribute rows into ``partitions`` buckets by key hash."""
    if partitions < 1:
        raise ValueError("partitions must be >= 1")
    buckets: List[List[T]] = [[] for _ in range(partitions)]
    for row in rows:
        buckets[stable_partition(key(row), partitions)].append(row)
    return buckets


class PartitionedExecutor:
    """
    Thread pool that maps work over partitions.

    Unlike a fire-and-forget pool, the first worker exception is re-raised
    to the caller once all submitted work has settled.
    """

    def __init__(self, max_workers: Optional[int] = None, partitions: int = DEFAULT_PARTITIONS):
        """
        Initialize partitioned executor.

        Args:
            max_workers: Maximum number of worker threads (default: CPU count)
            partitions: Default partition count for keyed operations
        """
        if partitions < 1:
            raise ValueError("partitions must be >= 1")
        self.max_workers = max_workers or os.cpu_count() or 1
        self.partitions = partitions
        self._executor: Optional[ThreadPoolExecutor] = None

    def __enter__(self):
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.shutdown()

    def start(self):
        """Start the executor."""
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.max_workers, thread_name_prefix="lshmatch"
            )

    def shutdown(self, wait: bool = True):
        """Shutdown the executor."""
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None

    def submit(self, func: Callable[..., R], *args, **kwargs) -> "Future[R]":
        """Submit one task."""
        self.start()
        return self._executor.submit(func, *args, **kwargs)

    def map(self, func: Callable[[T], R], items: Sequence[T]) -> List[R]:
        """
        Apply ``func`` to every item in parallel.

        Returns:
            Results in the order of ``items``

        Raises:
            The first exception raised by any task
        """
        if not items:
            return []
        if len(items) == 1 or self.max_workers == 1:
            return [func(item) for item in items]

        futures = [self.submit(func, item) for item in items]
        return gather(futures)

    def map_partitions(self, func: Callable[[List[T]], R], rows: Iterable[T],
                       key: Callable[[T], Hashable], partitions: Optional[int] = None) -> List[R]:
        """Partition ``rows`` by ``key`` and apply ``func`` to each non-empty partition."""
        buckets = partition_rows(rows, key, partitions or self.partitions)
        non_empty = [b for b in buckets if b]
        logger.debug(f"Processing {len(non_empty)} of {len(buckets)} partitions")
        return self.map(func, non_empty)


def gather(futures: Sequence["Future[R]"]) -> List[R]:
    """Wait for every future and return results in order, re-raising the first error."""
    results: List[R] = []
    error: Optional[BaseException] = None
    for future in futures:
        try:
            results.append(future.result())
        except Exception as e:
            logger.error(f"Task failed: {e}")
            if error is None:
                error = e
    if error is not None:
        raise error
    return results


def _join_partition(pair: Tuple[List[T], List[U]],
                    left_key: Callable[[T], Hashable],
                    right_key: Callable[[U], Hashable]) -> List[Tuple[T, U]]:
    left, right = pair
    table: Dict[Hashable, List[U]] = defaultdict(list)
    for r in right:
        table[right_key(r)].append(r)
    out: List[Tuple[T, U]] = []
    for l in left:
        for r in table.get(left_key(l), ()):
            out.append((l, r))
    return out


def hash_join(left: Iterable[T], right: Iterable[U],
              left_key: Callable[[T], Hashable], right_key: Callable[[U], Hashable],
              executor: Optional[PartitionedExecutor] = None,
              partitions: int = DEFAULT_PARTITIONS) -> List[Tuple[T, U]]:
    """
    Inner equi-join of two row sequences.

    Both sides are hash-partitioned on their join key; each partition pair
    is joined independently (in parallel when an executor is given).

    Returns:
        ``(left_row, right_row)`` pairs with equal keys
    """
    if executor is not None:
        partitions = executor.partitions
    left_parts = partition_rows(left, left_key, partitions)
    right_parts = partition_rows(right, right_key, partitions)
    work = [(l, r) for l, r in zip(left_parts, right_parts) if l and r]

    def run(pair):
        return _join_partition(pair, left_key, right_key)

    if executor is not None:
        chunks = executor.map(run, work)
    else:
        chunks = [run(pair) for pair in work]
    return [row for chunk in chunks for row in chunk]


def count_by_key(rows: Iterable[T], key: Callable[[T], Hashable],
                 executor: Optional[PartitionedExecutor] = None,
                 partitions: int = DEFAULT_PARTITIONS) -> Dict[Hashable, int]:
    """Grouped count of rows per key, aggregated partition by partition."""
    if executor is not None:
        partitions = executor.partitions
    parts = [p for p in partition_rows(rows, key, partitions) if p]

    def run(part):
        return Counter(key(r) for r in part)

    counters = executor.map(run, parts) if executor is not None else [run(p) for p in parts]
    merged: Dict[Hashable, int] = {}
    for counter in counters:
        # Partitions are key-disjoint, so a plain update is a merge
        merged.update(counter)
    return merged


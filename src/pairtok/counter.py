"""
Adjacent pair frequency bookkeeping for BPE training.
"""

import heapq
import logging
from collections import Counter, defaultdict
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor

from .parallel import group_size, resolve_workers
from .types import Token, TokenPair

log = logging.getLogger(__name__)

# shards smaller than this are not worth a thread
_MIN_SHARD_SIZE = 1024


def _count_shard(
    sequences: Sequence[list[Token]], weights: Sequence[int], offset: int
) -> tuple[Counter[TokenPair], dict[TokenPair, set[int]]]:
    """Count pairs in one shard and index which sequences contain each pair."""
    counts: Counter[TokenPair] = Counter()
    where: dict[TokenPair, set[int]] = defaultdict(set)
    for idx, (seq, weight) in enumerate(zip(sequences, weights), start=offset):
        for pair in zip(seq, seq[1:]):
            counts[pair] += weight
            where[pair].add(idx)
    return counts, where


def _count_sharded(
    sequences: Sequence[list[Token]],
    weights: Sequence[int],
    num_workers: int | None = None,
) -> tuple[Counter[TokenPair], dict[TokenPair, set[int]]]:
    """
    Split the corpus into shards, count each on a worker thread and sum the results.

    Counting is pure Python and holds the GIL, so threads only pay off on a
    free-threaded interpreter. ``None`` therefore counts serially; pass an
    explicit worker count to shard.
    """
    workers = 1 if num_workers is None else resolve_workers(num_workers)
    if workers == 1 or len(sequences) <= _MIN_SHARD_SIZE:
        return _count_shard(sequences, weights, 0)

    shard_size = group_size(len(sequences), workers, minimum=_MIN_SHARD_SIZE)
    offsets = list(range(0, len(sequences), shard_size))

    with ThreadPoolExecutor(max_workers=workers) as pool:
        partials = list(
            pool.map(
                lambda start: _count_shard(
                    sequences[start : start + shard_size],
                    weights[start : start + shard_size],
                    start,
                ),
                offsets,
            )
        )

    # reduction barrier: every shard has finished before counts are used
    counts: Counter[TokenPair] = Counter()
    where: dict[TokenPair, set[int]] = defaultdict(set)
    for part_counts, part_where in partials:
        counts.update(part_counts)
        for pair, idxs in part_where.items():
            where[pair] |= idxs
    log.debug(f"counted pairs over {len(offsets)} shards with {workers} workers")
    return counts, where


def count_all(
    sequences: Sequence[list[Token]],
    weights: Sequence[int] | None = None,
    num_workers: int | None = None,
) -> Counter[TokenPair]:
    """
    Count adjacent pairs over every sequence in the corpus.

    Pairs never cross sequence boundaries.

    :param sequences: Symbol sequences.
    :param weights: Multiplicity of each sequence; defaults to 1 each.
    :param num_workers: Thread count for sharded counting (default: serial).
    :return: Pair -> weighted occurrence count.
    """
    if weights is None:
        weights = [1] * len(sequences)
    counts, _ = _count_sharded(sequences, weights, num_workers)
    return counts


def _merge_with_sites(
    seq: list[Token], pair: TokenPair, new_tok: Token
) -> tuple[list[Token], list[int], list[int]]:
    """
    Replace non-overlapping occurrences of ``pair`` left to right.

    :return: The rewritten sequence, the start index of every replaced
        occurrence in ``seq`` and the index of every new token in the result.
    """
    left, right = pair
    out: list[Token] = []
    old_sites: list[int] = []
    new_sites: list[int] = []

    i = 0
    n = len(seq)
    while i < n:
        if i < n - 1 and seq[i] == left and seq[i + 1] == right:
            old_sites.append(i)
            new_sites.append(len(out))
            out.append(new_tok)
            i += 2
        else:
            out.append(seq[i])
            i += 1

    return out, old_sites, new_sites


class PairFrequencyCounter:
    """
    Weighted pair counts over a training corpus, kept exact under merges.

    Each merge only touches the sequences that contain the merged pair and
    only the pairs adjacent to a merge site, instead of recounting the whole
    corpus. A lazily invalidated heap gives the most frequent pair with ties
    broken by the smallest ``(left, right)``.

    Example:
       >>> counter = PairFrequencyCounter([[1, 2, 3, 1, 2]])
       >>> counter.most_common()
       ((1, 2), 2)
       >>> counter.apply_merge((1, 2), 256)
       2
       >>> counter.sequences()
       [[256, 3, 256]]
    """

    def __init__(
        self,
        sequences: Sequence[Sequence[Token]],
        weights: Sequence[int] | None = None,
        num_workers: int | None = None,
    ) -> None:
        self._seqs: list[list[Token]] = [list(seq) for seq in sequences]
        if weights is None:
            self._weights: list[int] = [1] * len(self._seqs)
        else:
            if len(weights) != len(self._seqs):
                raise ValueError("weights must match the number of sequences")
            self._weights = list(weights)

        self._counts, self._where = _count_sharded(
            self._seqs, self._weights, num_workers
        )
        self._excluded: set[TokenPair] = set()
        self._heap: list[tuple[int, TokenPair]] = [
            (-count, pair) for pair, count in self._counts.items()
        ]
        heapq.heapify(self._heap)

        log.debug(
            f"counted {len(self._counts)} distinct pairs over {len(self._seqs)} sequences"
        )

    def count(self, pair: TokenPair) -> int:
        return self._counts.get(pair, 0)

    def pair_counts(self) -> Counter[TokenPair]:
        """Return a snapshot of the current counts."""
        return Counter(self._counts)

    def sequences(self) -> list[list[Token]]:
        """Return a snapshot of the current symbol sequences."""
        return [list(seq) for seq in self._seqs]

    def recount(self) -> Counter[TokenPair]:
        """Recount from scratch; used to verify the incremental counts."""
        return count_all(self._seqs, self._weights, num_workers=1)

    def exclude(self, pair: TokenPair) -> None:
        """Never offer ``pair`` from :meth:`most_common` again."""
        self._excluded.add(pair)

    def most_common(self) -> tuple[TokenPair, int] | None:
        """Return the highest-count eligible pair and its count, or ``None``."""
        heap = self._heap
        while heap:
            neg_count, pair = heap[0]
            if pair in self._excluded or self._counts.get(pair, 0) != -neg_count:
                # stale entry: count changed since push or pair excluded
                heapq.heappop(heap)
                continue
            return pair, -neg_count
        return None

    def apply_merge(self, pair: TokenPair, new_tok: Token) -> int:
        """
        Replace every occurrence of ``pair`` by ``new_tok`` and update counts.

        Counts of pairs overlapping a merge site in the old sequence are
        removed and counts of pairs touching a new token are added. All
        affected sequences are rewritten before this returns.

        :return: Weighted number of replaced occurrences.
        """
        idxs = self._where.pop(pair, set())
        replaced = 0

        for idx in sorted(idxs):
            seq = self._seqs[idx]
            new_seq, old_sites, new_sites = _merge_with_sites(seq, pair, new_tok)
            # stale index: pair no longer present in this sequence
            if not old_sites:
                continue

            weight = self._weights[idx]

            destroyed: set[int] = set()
            last_old = len(seq) - 1
            for i in old_sites:
                for j in (i - 1, i, i + 1):
                    if 0 <= j < last_old:
                        destroyed.add(j)
            for j in destroyed:
                self._bump((seq[j], seq[j + 1]), -weight)

            created: set[int] = set()
            last_new = len(new_seq) - 1
            for k in new_sites:
                for j in (k - 1, k):
                    if 0 <= j < last_new:
                        created.add(j)
            for j in created:
                new_pair = (new_seq[j], new_seq[j + 1])
                self._bump(new_pair, weight)
                self._where[new_pair].add(idx)

            # drop index entries for pairs this sequence no longer holds
            remaining = set(zip(new_seq, new_seq[1:]))
            for j in destroyed:
                old_pair = (seq[j], seq[j + 1])
                if old_pair != pair and old_pair not in remaining:
                    self._unindex(old_pair, idx)

            self._seqs[idx] = new_seq
            replaced += len(old_sites) * weight

        self._counts.pop(pair, None)
        self._maybe_compact()
        return replaced

    def _unindex(self, pair: TokenPair, idx: int) -> None:
        idxs = self._where.get(pair)
        if idxs is None:
            return
        idxs.discard(idx)
        if not idxs:
            del self._where[pair]

    def _bump(self, pair: TokenPair, delta: int) -> None:
        count = self._counts.get(pair, 0) + delta
        if count <= 0:
            self._counts.pop(pair, None)
            return
        self._counts[pair] = count
        heapq.heappush(self._heap, (-count, pair))

    def _maybe_compact(self) -> None:
        # drop stale heap entries once they dominate
        if len(self._heap) > 4 * len(self._counts) + 1024:
            self._heap = [
                (-count, pair)
                for pair, count in self._counts.items()
                if pair not in self._excluded
            ]
            heapq.heapify(self._heap)

    def __len__(self) -> int:
        return len(self._counts)

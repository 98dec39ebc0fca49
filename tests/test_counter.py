"""Unit tests for incremental pair frequency bookkeeping."""

from collections import Counter

import pytest

from pairtok import PairFrequencyCounter, count_all
from pairtok._bpe import bpe_merge, get_pair_stats, select_pair


# Full counts
# ---------------------------------------------------------------------------


def test_count_all_respects_sequence_boundaries():
    """Pairs never span two sequences."""
    counts = count_all([[1, 2], [3, 4]])
    assert counts == Counter({(1, 2): 1, (3, 4): 1})
    assert (2, 3) not in counts


def test_count_all_weighted():
    """Sequence multiplicity scales every pair count."""
    counts = count_all([[1, 2], [1, 2, 1, 2]], weights=[3, 1])
    assert counts == Counter({(1, 2): 5, (2, 1): 1})


def test_count_all_sharded_matches_serial():
    """Sharded counting reduces to the same counts as a single pass."""
    sequences = [[i % 7, (i * 3) % 11, i % 5, 1] for i in range(5000)]
    serial = count_all(sequences, num_workers=1)
    sharded = count_all(sequences, num_workers=4)
    assert sharded == serial


def test_weights_length_mismatch_raises():
    """Weights must align with sequences."""
    with pytest.raises(ValueError):
        PairFrequencyCounter([[1, 2]], weights=[1, 2])


# Selection
# ---------------------------------------------------------------------------


def test_most_common():
    """The highest-count pair is selected."""
    counter = PairFrequencyCounter([[1, 2, 3, 1, 2]])
    assert counter.most_common() == ((1, 2), 2)


def test_tie_break_is_smallest_pair():
    """Ties resolve to the lexicographically smallest pair."""
    counter = PairFrequencyCounter([[5, 6], [1, 9], [1, 2]])
    assert counter.most_common() == ((1, 2), 1)


def test_exclude_skips_pair():
    """Excluded pairs are never offered again."""
    counter = PairFrequencyCounter([[1, 2, 1, 2], [5, 6]])
    counter.exclude((1, 2))
    assert counter.most_common() == ((2, 1), 1)


def test_empty_corpus_has_no_pair():
    """Nothing to select when there are no pairs."""
    counter = PairFrequencyCounter([[1], []])
    assert counter.most_common() is None
    assert len(counter) == 0


# Incremental merge
# ---------------------------------------------------------------------------


def test_apply_merge_rewrites_sequences():
    """Every occurrence of the pair is replaced."""
    counter = PairFrequencyCounter([[1, 2, 3, 1, 2]])
    assert counter.apply_merge((1, 2), 256) == 2
    assert counter.sequences() == [[256, 3, 256]]
    assert counter.pair_counts() == Counter({(256, 3): 1, (3, 256): 1})


@pytest.mark.parametrize(
    "seq, expected_seq",
    [
        ([97, 97, 97], [256, 97]),
        ([97, 97, 97, 97], [256, 256]),
        ([97, 97, 97, 97, 97], [256, 256, 97]),
    ],
)
def test_apply_merge_overlapping_runs(seq, expected_seq):
    """Runs of a repeated symbol merge left to right without overlap."""
    counter = PairFrequencyCounter([seq])
    counter.apply_merge((97, 97), 256)
    assert counter.sequences() == [expected_seq]
    assert counter.pair_counts() == counter.recount()


def test_apply_merge_weighted():
    """Replacement counts and pair counts honour sequence weights."""
    counter = PairFrequencyCounter([[1, 2, 3], [3, 1, 2]], weights=[4, 2])
    assert counter.apply_merge((1, 2), 9) == 6
    assert counter.pair_counts() == Counter({(9, 3): 4, (3, 9): 2})


def test_incremental_counts_match_full_recount(sample_text):
    """After every merge the incremental counts equal a full rescan."""
    words = sample_text.split(" ")
    counter = PairFrequencyCounter([list(word.encode("utf-8")) for word in words])

    new_tok = 256
    for _ in range(60):
        best = counter.most_common()
        if best is None:
            break
        pair, count = best
        assert count == counter.count(pair)
        counter.apply_merge(pair, new_tok)
        assert counter.pair_counts() == counter.recount()
        assert counter.count(pair) == 0
        new_tok += 1


def test_incremental_selection_matches_reference(sample_text):
    """The counter picks the same pairs as recounting with the reference helpers."""
    seqs = [list(sample_text.encode("utf-8"))]
    counter = PairFrequencyCounter(seqs)

    reference = [list(seqs[0])]
    for new_tok in range(256, 296):
        expected = select_pair(get_pair_stats(reference[0]))
        assert counter.most_common() == expected
        if expected is None:
            break
        pair, _ = expected
        counter.apply_merge(pair, new_tok)
        reference[0] = bpe_merge(reference[0], pair, new_tok)
        assert counter.sequences() == reference


def test_sequence_index_tracks_current_pairs(sample_text):
    """The pair -> sequence index only lists sequences that still hold the pair."""
    words = sample_text.split(" ")
    counter = PairFrequencyCounter([list(word.encode("utf-8")) for word in words])

    new_tok = 256
    for _ in range(60):
        best = counter.most_common()
        if best is None:
            break
        counter.apply_merge(best[0], new_tok)
        new_tok += 1

        seqs = counter.sequences()
        assert set(counter._where) == set(counter.pair_counts())
        for pair, idxs in counter._where.items():
            for idx in idxs:
                assert pair in set(zip(seqs[idx], seqs[idx][1:]))


def test_default_counting_is_serial(monkeypatch):
    """Without a worker count no thread pool is started."""
    import pairtok.counter as counter_mod

    def no_pool(*args, **kwargs):
        raise AssertionError("thread pool started")

    monkeypatch.setattr(counter_mod, "ThreadPoolExecutor", no_pool)
    sequences = [[i % 7, i % 5, 1] for i in range(5000)]
    counter = PairFrequencyCounter(sequences)
    assert counter.pair_counts() == count_all(sequences, num_workers=1)

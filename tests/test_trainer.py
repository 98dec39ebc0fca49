"""Unit tests for merge learning."""

import logging

import pytest

import pairtok as ptok
from pairtok._bpe import slow_bpe_train
from pairtok.errors import InvalidConfigurationError, TrainingStalledError
from pairtok.pattern import Splitter
from pairtok.trainer import LearnerState, collect_units

CORPUS = "low low low low low lower lowest"


# Learned merges
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("pattern", ["whitespace", None])
def test_learns_most_frequent_pairs(pattern):
    """The first merges follow frequency with ties to the smallest pair."""
    config = ptok.TrainerConfig(target_vocab_size=258, pattern=pattern)
    vocab, merges = ptok.train(CORPUS, config)

    assert [rule.pair for rule in merges] == [(108, 111), (256, 119)]
    assert [rule.rank for rule in merges] == [0, 1]
    assert vocab.id_to_bytes(256) == b"lo"
    assert vocab.id_to_bytes(257) == b"low"
    assert len(vocab) == 258


def test_encode_with_learned_merges():
    """A word outside the corpus reuses the learned prefix."""
    config = ptok.TrainerConfig(target_vocab_size=258, pattern="whitespace")
    vocab, merges = ptok.train(CORPUS, config)
    assert ptok.encode("lowest", vocab, merges) == [257, 101, 115, 116]


def test_merged_bytes_are_concatenation(sample_text):
    """Every learned token spells its two parts and no surface form repeats."""
    config = ptok.TrainerConfig(target_vocab_size=350, pattern="gpt2")
    vocab, merges = ptok.train(sample_text, config)

    for rule in merges:
        left = vocab.id_to_bytes(rule.left)
        right = vocab.id_to_bytes(rule.right)
        assert vocab.id_to_bytes(rule.new_id) == left + right
    surfaces = [seq for _, seq in vocab.items()]
    assert len(surfaces) == len(set(surfaces))


def test_training_is_deterministic(sample_text):
    """Identical input and configuration give identical rules."""
    config = ptok.TrainerConfig(target_vocab_size=320, pattern="gpt4")
    first = ptok.train(sample_text, config)
    second = ptok.train(sample_text, config)
    assert first == second


def test_pairs_do_not_cross_documents():
    """Each document is its own sequence."""
    config = ptok.TrainerConfig(target_vocab_size=300)
    _, merges = ptok.train(["ab", "cd"], config)
    assert [rule.pair for rule in merges] == [(97, 98), (99, 100)]


def test_vocab_is_frozen_after_training():
    """The trained vocabulary can no longer grow."""
    vocab, _ = ptok.train(CORPUS, ptok.TrainerConfig(target_vocab_size=258))
    assert vocab.frozen


# Special tokens
# ---------------------------------------------------------------------------


def test_special_tokens_reserved_before_merges(sample_text):
    """Specials take the first ids and count towards the target size."""
    config = ptok.TrainerConfig(
        target_vocab_size=270,
        special_tokens=["<|a|>", "<|b|>"],
        pattern="gpt2",
    )
    vocab, merges = ptok.train(sample_text, config)

    assert vocab.special_tokens == {b"<|a|>": 256, b"<|b|>": 257}
    assert merges[0].new_id == 258
    assert len(vocab) == 270
    assert len(merges) == 270 - 256 - 2


def test_special_tokens_never_merged():
    """Markers are cut out of the corpus before counting."""
    config = ptok.TrainerConfig(target_vocab_size=300, special_tokens=["<|eot|>"])
    result = ptok.MergeLearner("ab<|eot|>ab<|eot|>ab", config).run()

    assert [(rule.pair, rule.new_id) for rule in result.merges] == [((97, 98), 257)]
    assert result.stop_reason is ptok.StopReason.EXHAUSTED


# Stopping
# ---------------------------------------------------------------------------


def test_target_equal_to_base_learns_nothing():
    """A target of 256 is already reached."""
    result = ptok.MergeLearner(CORPUS, ptok.TrainerConfig(target_vocab_size=256)).run()
    assert len(result.merges) == 0
    assert result.stop_reason is ptok.StopReason.TARGET_REACHED
    assert not result.stalled


def test_min_frequency_stops_training():
    """Pairs rarer than min_frequency are never merged."""
    config = ptok.TrainerConfig(
        target_vocab_size=300, min_frequency=2, pattern="whitespace"
    )
    result = ptok.MergeLearner("ab ab cd", config).run()

    assert [rule.pair for rule in result.merges] == [(97, 98)]
    assert result.stop_reason is ptok.StopReason.BELOW_MIN_FREQUENCY
    assert result.stalled


def test_empty_corpus_is_exhausted():
    """An empty corpus stops at once with no rules."""
    result = ptok.MergeLearner([], ptok.TrainerConfig(target_vocab_size=300)).run()
    assert len(result.merges) == 0
    assert len(result.vocab) == 256
    assert result.stop_reason is ptok.StopReason.EXHAUSTED


def test_stall_logs_warning(caplog):
    """Running out of pairs is reported as a warning."""
    with caplog.at_level(logging.WARNING, logger="pairtok.trainer"):
        result = ptok.MergeLearner("abab", ptok.TrainerConfig(target_vocab_size=400)).run()
    assert result.stalled
    assert "stopping early" in caplog.text


def test_strict_mode_raises_on_stall():
    """Strict training refuses to stop short of the target."""
    config = ptok.TrainerConfig(target_vocab_size=400, strict=True)
    with pytest.raises(TrainingStalledError):
        ptok.MergeLearner("abab", config).run()


def test_cancel_keeps_learned_rules(sample_text):
    """Cancelling stops before the next merge and keeps what was learned."""
    learner = ptok.MergeLearner(
        sample_text, ptok.TrainerConfig(target_vocab_size=300, pattern="gpt2")
    )
    rule = learner.step()
    assert rule is not None
    assert rule.rank == 0

    learner.cancel()
    assert learner.step() is None
    assert learner.state is LearnerState.STOPPED

    result = learner.result()
    assert result.stop_reason is ptok.StopReason.CANCELLED
    assert result.n_merges_completed == 1
    assert result.vocab.frozen


def test_step_after_stop_returns_none():
    """A stopped learner stays stopped."""
    learner = ptok.MergeLearner(CORPUS, ptok.TrainerConfig(target_vocab_size=257))
    learner.run()
    assert learner.step() is None
    assert len(learner.merges) == 1


# Configuration
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "kwargs",
    [
        {"target_vocab_size": 255},
        {"target_vocab_size": 256, "special_tokens": ["<s>"]},
        {"target_vocab_size": 300, "min_frequency": 0},
        {"target_vocab_size": 300, "special_tokens": ["<s>", "<s>"]},
        {"target_vocab_size": 300, "special_tokens": [""]},
    ],
)
def test_invalid_config_raises(kwargs):
    """Configuration errors are raised before any training."""
    with pytest.raises(InvalidConfigurationError):
        ptok.TrainerConfig(**kwargs)


def test_config_merge_budget():
    """The merge budget leaves room for base bytes and specials."""
    config = ptok.TrainerConfig(target_vocab_size=300, special_tokens=[b"<s>", "<e>"])
    assert config.specials == (b"<s>", b"<e>")
    assert config.n_merges == 42


# Reference baseline
# ---------------------------------------------------------------------------


def test_matches_full_recount_baseline(sample_text):
    """Incremental training picks exactly the merges of the recount baseline."""
    n_merges = 60
    units = collect_units(sample_text, Splitter("gpt2"))
    sequences = [list(unit) for unit in units]
    weights = list(units.values())
    base_vocab = {tok: bytes([tok]) for tok in range(256)}

    with pytest.warns(DeprecationWarning):
        expected = slow_bpe_train(sequences, weights, n_merges, base_vocab)

    config = ptok.TrainerConfig(target_vocab_size=256 + n_merges, pattern="gpt2")
    _, merges = ptok.train(sample_text, config)
    assert [(rule.pair, rule.new_id) for rule in merges] == expected

"""Unit tests for encoding, decoding and special token handling."""

import pytest

import pairtok as ptok
from pairtok import MergeRule, MergeTable, Vocabulary
from pairtok.errors import StrategyError, UnencodableInputError, UnknownTokenError
from pairtok.parallel import group_size, resolve_workers
from pairtok.pattern import Splitter, split_on_special


@pytest.fixture
def trained(sample_text):
    """Return a vocabulary and merge table trained with the gpt4 pattern."""
    config = ptok.TrainerConfig(target_vocab_size=330, pattern="gpt4")
    return ptok.train(sample_text, config)


@pytest.fixture
def special_vocab():
    """Return a vocabulary with one special token and no merges."""
    vocab = Vocabulary()
    vocab.register_special(b"<|eot|>")
    return vocab, MergeTable()


# Encode and decode
# ---------------------------------------------------------------------------


def test_roundtrip_text(trained, sample_text):
    """Decoding the encoding gives back the input."""
    vocab, merges = trained
    tokens = ptok.encode(sample_text, vocab, merges)
    assert ptok.decode_text(tokens, vocab) == sample_text
    assert len(tokens) < len(sample_text.encode("utf-8"))


def test_roundtrip_every_byte_value(trained):
    """Arbitrary non-UTF-8 input survives exactly."""
    vocab, merges = trained
    data = bytes(range(256)) * 2
    assert ptok.decode(ptok.encode(data, vocab, merges), vocab) == data


def test_empty_input():
    """Empty input encodes to nothing and nothing decodes to empty bytes."""
    vocab = Vocabulary()
    assert ptok.encode(b"", vocab, MergeTable()) == []
    assert ptok.decode([], vocab) == b""


def test_untrained_encode_is_raw_bytes():
    """Without merges every byte is its own token."""
    assert ptok.encode("hi!", Vocabulary(), MergeTable()) == [104, 105, 33]


def test_lowest_rank_merge_applies_first():
    """When two rules compete, the earlier learned one wins."""
    vocab = Vocabulary()
    vocab.register(b"bc")
    vocab.register(b"ab")
    merges = MergeTable()
    merges.add((98, 99), 256)
    merges.add((97, 98), 257)

    assert ptok.encode("abc", vocab, merges) == [97, 256]


def test_encoder_is_deterministic(trained, sample_text):
    """Repeated encodes, cached or not, agree."""
    vocab, merges = trained
    encoder = ptok.Encoder(vocab, merges)
    first = encoder.encode(sample_text)
    assert encoder.encode(sample_text) == first
    assert ptok.encode(sample_text, vocab, merges) == first


def test_encoder_rejects_rules_outside_vocabulary():
    """Merge rules must refer to known tokens."""
    merges = MergeTable([MergeRule(97, 98, 300, 0)])
    with pytest.raises(UnknownTokenError):
        ptok.Encoder(Vocabulary(), merges)


def test_decode_unknown_token_raises():
    """Unknown ids are an error, never silently substituted."""
    with pytest.raises(UnknownTokenError):
        ptok.decode([97, 999], Vocabulary())


def test_decode_text_error_handling():
    """Invalid UTF-8 is replaced by default and raises in strict mode."""
    vocab = Vocabulary()
    assert ptok.decode_text([104, 0xFF], vocab) == "h\ufffd"
    with pytest.raises(UnicodeDecodeError):
        ptok.decode_text([0xFF], vocab, errors="strict")


# Batch encoding
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("mode", ["off", "batch", ptok.ParallelMode.AUTO])
def test_encode_batch_preserves_order(trained, mode):
    """Batch results line up with single encodes."""
    vocab, merges = trained
    encoder = ptok.Encoder(vocab, merges)
    texts = [f"the fox number {i} jumps" for i in range(25)]

    batch = encoder.encode_batch(texts, num_workers=3, parallel_mode=mode)
    assert batch == [encoder.encode(text) for text in texts]


def test_unknown_parallel_mode_raises(trained):
    """Unknown parallel modes are rejected."""
    encoder = ptok.Encoder(*trained)
    with pytest.raises(StrategyError):
        encoder.encode_batch(["a", "b"], parallel_mode="threads")


def test_list_parallel_modes():
    assert ptok.list_parallel_modes() == ["auto", "batch", "off"]


# Special tokens
# ---------------------------------------------------------------------------


def test_special_token_single_id(special_vocab):
    """Markers are emitted as their reserved id by default."""
    vocab, merges = special_vocab
    tokens = ptok.encode("a<|eot|>b", vocab, merges)
    assert tokens == [97, 256, 98]
    assert ptok.decode_text(tokens, vocab) == "a<|eot|>b"


def test_special_token_none_strategy(special_vocab):
    """The none strategy treats markers as plain bytes."""
    vocab, merges = special_vocab
    tokens = ptok.encode("<|eot|>", vocab, merges, strategy=ptok.AllowNoneStrategy())
    assert tokens == list(b"<|eot|>")


def test_special_token_none_raise_strategy(special_vocab):
    """The none-raise strategy refuses input containing markers."""
    vocab, merges = special_vocab
    with pytest.raises(UnencodableInputError):
        ptok.encode("x<|eot|>", vocab, merges, strategy=ptok.get_strategy("none-raise"))


def test_custom_strategy_unregistered_marker_raises(special_vocab):
    """Allowing a marker that was never registered is an error."""
    vocab, merges = special_vocab
    strategy = ptok.get_strategy("custom", allowed_subset={"<|missing|>"})
    with pytest.raises(UnencodableInputError):
        ptok.encode("abc", vocab, merges, strategy=strategy)


def test_longest_special_token_wins():
    """A marker that extends another one is matched whole."""
    vocab = Vocabulary()
    short = vocab.register_special(b"<s>")
    long = vocab.register_special(b"<s>>")
    assert ptok.encode("<s>><s>", vocab, MergeTable()) == [long, short]


@pytest.mark.parametrize("name", ["bogus", "custom"])
def test_get_strategy_errors(name):
    """Unknown names and a custom strategy without a subset are rejected."""
    with pytest.raises(StrategyError):
        ptok.get_strategy(name)


def test_list_strategies():
    assert set(ptok.list_strategies()) == {"all", "none", "none-raise", "custom"}


# Splitting
# ---------------------------------------------------------------------------


def test_split_on_special_parts():
    """Markers are separated from the surrounding spans."""
    parts = split_on_special(b"a<s>b<s><s>", [b"<s>"])
    assert parts == [
        (b"a", False),
        (b"<s>", True),
        (b"b", False),
        (b"<s>", True),
        (b"<s>", True),
    ]


def test_splitter_keeps_unmatched_bytes():
    """Text between pattern matches becomes its own unit."""
    assert Splitter(r"\d+").split(b"ab12cd") == [b"ab", b"12", b"cd"]


def test_splitter_document_policy():
    """Without a pattern the span is a single unit."""
    assert Splitter(None).split(b"two words") == [b"two words"]
    assert Splitter(None).split(b"") == []


def test_splitter_invalid_utf8():
    """Invalid UTF-8 runs are split without losing bytes."""
    data = b"caf\xe9 \xff\xfe ok"
    assert b"".join(Splitter("gpt4").split(data)) == data


def test_list_patterns():
    assert ptok.list_patterns() == ["whitespace", "gpt2", "gpt4", "llama3", "qwen2"]
    assert ptok.get_pattern("GPT2") == ptok.TokenPattern.GPT2.value


@pytest.mark.parametrize(
    "n_items, workers, minimum, expected",
    [(100, 4, 1, 13), (3, 8, 1, 1), (5000, 4, 1024, 1024)],
)
def test_group_size(n_items, workers, minimum, expected):
    """Work is grouped into about two tasks per worker."""
    assert group_size(n_items, workers, minimum) == expected


def test_resolve_workers():
    assert resolve_workers(0) == 1
    assert resolve_workers(3) == 3
    assert resolve_workers(None) >= 1


# Lone surrogates
# ---------------------------------------------------------------------------


def test_lone_surrogate_is_kept():
    """A lone surrogate in str input is kept, never replaced."""
    text = "a\ud800b"
    vocab = Vocabulary()
    tokens = ptok.encode(text, vocab, MergeTable())
    assert ptok.decode(tokens, vocab) == text.encode("utf-8", "surrogatepass")
    assert ptok.decode_text(tokens, vocab, errors="surrogatepass") == text


def test_lone_surrogate_roundtrip_after_training(trained):
    """Trained merges and a regex split keep surrogate bytes intact."""
    vocab, merges = trained
    text = "the fox \udc80 dog"
    tokens = ptok.encode(text, vocab, merges)
    assert ptok.decode_text(tokens, vocab, errors="surrogatepass") == text


def test_training_keeps_lone_surrogates():
    """Training input is converted the same way as encoding input."""
    config = ptok.TrainerConfig(target_vocab_size=300)
    vocab, merges = ptok.train("x\udc80x\udc80", config)
    tokens = ptok.encode("x\udc80", vocab, merges)
    assert ptok.decode(tokens, vocab) == "x\udc80".encode("utf-8", "surrogatepass")

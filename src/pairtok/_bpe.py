"""
Core Byte Pair Encoding (BPE) operations.
"""

from collections import Counter

from typing_extensions import deprecated

from .types import Token, TokenBytes, TokenPair


def get_pair_stats(
    tokens: list[Token],
    counts: Counter[TokenPair] | None = None,
    weight: int = 1,
) -> Counter[TokenPair]:
    """
    Count consecutive token pairs in ``tokens``.

    :param tokens: Token sequence to scan.
    :param counts: Existing counter to update in place; a new one is created when ``None``.
    :param weight: Amount added per occurrence (multiplicity of the sequence).
    :return: The updated counter.
    """
    if counts is None:
        counts = Counter()
    for pair in zip(tokens, tokens[1:]):
        counts[pair] += weight
    return counts


def bpe_merge(tokens: list[Token], target: TokenPair, new_tok: Token) -> list[Token]:
    """
    Merge all non-overlapping, left-to-right occurrences of ``target`` into ``new_tok``.

    Note: merged tokens may represent partial UTF-8 sequences. Use errors="replace"
    when decoding to text to handle invalid sequences gracefully.
    """
    newtoks: list[Token] = []

    i = 0
    n = len(tokens)
    while i < n:
        # check if we can form a pair and it matches the target
        if i < n - 1 and tokens[i] == target[0] and tokens[i + 1] == target[1]:
            newtoks.append(new_tok)
            i += 2
        else:
            newtoks.append(tokens[i])
            i += 1

    return newtoks


def select_pair(counts: Counter[TokenPair]) -> tuple[TokenPair, int] | None:
    """Return the most frequent pair, ties broken by the smallest ``(left, right)``."""
    if not counts:
        return None
    pair, count = min(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    if count <= 0:
        return None
    return pair, count


@deprecated(
    "Reference implementation for verification only. Use `MergeLearner` for production."
)
def slow_bpe_train(
    sequences: list[list[Token]],
    weights: list[int],
    n_merges: int,
    vocab: dict[Token, TokenBytes],
    min_frequency: int = 1,
) -> list[tuple[TokenPair, Token]]:
    """
    Learn merges by recounting every pair after every merge.

    Naive algorithm: O(n x M) where n is the corpus length and M the number
    of merges, since each merge requires a full scan to recompute counts.
    This is the baseline the incremental :class:`PairFrequencyCounter` must
    agree with exactly.

    :param sequences: Symbol sequences, rewritten in place.
    :param weights: Multiplicity of each sequence.
    :param n_merges: Maximum number of merges to learn.
    :param vocab: Token -> bytes mapping, extended in place with new tokens.
    :param min_frequency: Stop when the best pair count falls below this.
    :return: Learned ``(pair, new_tok)`` in rank order.
    """
    merges: list[tuple[TokenPair, Token]] = []
    known = set(vocab.values())
    excluded: set[TokenPair] = set()
    next_tok = max(vocab) + 1

    while len(merges) < n_merges:
        counts: Counter[TokenPair] = Counter()
        for seq, weight in zip(sequences, weights, strict=True):
            get_pair_stats(seq, counts, weight)
        for pair in excluded:
            counts.pop(pair, None)

        best = select_pair(counts)
        if best is None or best[1] < min_frequency:
            break
        pair, _ = best

        merged = vocab[pair[0]] + vocab[pair[1]]
        # surface form already owned by another token
        if merged in known:
            excluded.add(pair)
            continue

        vocab[next_tok] = merged
        known.add(merged)
        merges.append((pair, next_tok))
        for idx, seq in enumerate(sequences):
            sequences[idx] = bpe_merge(seq, pair, next_tok)
        next_tok += 1

    return merges

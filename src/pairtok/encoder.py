"""Text to token ids by replaying learned merges in rank order."""

from concurrent.futures import ThreadPoolExecutor
import logging

from ._bpe import bpe_merge
from .errors import UnknownTokenError
from .merges import MergeRule, MergeTable
from .parallel import ParallelMode, ParallelStrategy, group_size, resolve_workers
from .pattern import Splitter, split_on_special, to_bytes
from .strategy import AllowAllStrategy, SpecialTokenStrategy
from .types import Document, Token, TokenBytes
from .vocab import Vocabulary

log = logging.getLogger(__name__)

# units cached per encoder before the cache is reset
_CACHE_LIMIT = 1 << 16


def apply_merges(unit: TokenBytes, merges: MergeTable) -> list[Token]:
    """
    Encode one unit by repeatedly merging the lowest-rank pair present.

    Only rules in ``merges`` are applied, so the result is the same
    sequence training produced for the unit.
    """
    # convert each byte to [0-255] token range
    tokens = list(unit)
    while len(tokens) >= 2:
        best: MergeRule | None = None
        for pair in zip(tokens, tokens[1:]):
            rule = merges.get(pair)
            if rule is not None and (best is None or rule.rank < best.rank):
                best = rule
        # no pair matches any known rule
        if best is None:
            break
        tokens = bpe_merge(tokens, best.pair, best.new_id)
    return tokens


class Encoder:
    """
    Encodes text with a fixed vocabulary and merge table.

    Holds only read-only shared state plus a cache of encoded units, so one
    encoder can serve many threads.
    """

    def __init__(self, vocab: Vocabulary, merges: MergeTable) -> None:
        """
        :raises UnknownTokenError: If a merge rule refers to a token outside
            the vocabulary.
        """
        for rule in merges:
            for tok in (rule.left, rule.right, rule.new_id):
                if tok not in vocab:
                    raise UnknownTokenError(
                        f"merge rule {rule.rank} refers to unknown token",
                        invalid_tok=tok,
                    )
        self.vocab = vocab
        self.merges = merges
        self._splitter = Splitter(merges.pattern)
        self._cache: dict[TokenBytes, tuple[Token, ...]] = {}

    def encode(
        self, text: Document, strategy: SpecialTokenStrategy | None = None
    ) -> list[Token]:
        """
        Encode text or raw bytes into token ids.

        Special tokens selected by ``strategy`` (all registered ones by
        default) are matched literally and emitted as a single id; every other
        span is split by the merge table's boundary policy and merged.

        :raises UnencodableInputError: If the strategy rejects the input.
        """
        data = to_bytes(text)
        if strategy is None:
            strategy = AllowAllStrategy()
        # retrieve special tokens as defined by chosen strategy
        special_toks = strategy.handle(data, self.vocab.special_tokens)

        tokens: list[Token] = []
        for span, is_special in split_on_special(data, list(special_toks)):
            if is_special:
                # special tokens have pre-determined encodings
                tokens.append(special_toks[span])
                continue
            for unit in self._splitter.split(span):
                tokens.extend(self._encode_unit(unit))
        return tokens

    def encode_batch(
        self,
        texts: list[Document],
        strategy: SpecialTokenStrategy | None = None,
        num_workers: int | None = None,
        parallel_mode: ParallelMode | ParallelStrategy = ParallelMode.AUTO,
    ) -> list[list[Token]]:
        """
        Encode independent documents, optionally on a thread pool.

        ``off`` encodes serially, ``batch`` spreads grouped documents across
        workers and ``auto`` picks ``batch`` for more than one document.

        :return: Encoded token sequences in input order.
        """
        if not texts:
            return []

        mode = ParallelMode.get(parallel_mode)
        workers = resolve_workers(num_workers)

        def encode_group(group: list[Document]) -> list[list[Token]]:
            return [self.encode(text, strategy) for text in group]

        if mode is ParallelMode.OFF or workers == 1 or len(texts) == 1:
            return encode_group(texts)

        size = group_size(len(texts), workers)
        text_groups = [texts[idx : idx + size] for idx in range(0, len(texts), size)]

        with ThreadPoolExecutor(max_workers=workers) as pool:
            encoded_groups = list(pool.map(encode_group, text_groups))
        return [encoded for group in encoded_groups for encoded in group]

    def _encode_unit(self, unit: TokenBytes) -> tuple[Token, ...]:
        cached = self._cache.get(unit)
        if cached is not None:
            return cached
        encoded = tuple(apply_merges(unit, self.merges))
        if len(self._cache) >= _CACHE_LIMIT:
            self._cache.clear()
        self._cache[unit] = encoded
        return encoded


def encode(
    text: Document,
    vocab: Vocabulary,
    merges: MergeTable,
    *,
    strategy: SpecialTokenStrategy | None = None,
) -> list[Token]:
    """
    Encode ``text`` with ``vocab`` and ``merges``.

    Pure function of its inputs; see :meth:`Encoder.encode`.
    """
    return Encoder(vocab, merges).encode(text, strategy)


__all__ = ["Encoder", "apply_merges", "encode"]

"""
Ranked merge rules learned by the trainer and replayed by the encoder.
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from .errors import VocabularyError
from .types import Token, TokenPair


@dataclass(frozen=True, slots=True)
class MergeRule:
    """A learned rewrite ``(left, right) -> new_id``; lower rank wins at encode time."""

    left: Token
    right: Token
    new_id: Token
    rank: int

    @property
    def pair(self) -> TokenPair:
        return (self.left, self.right)


class MergeTable:
    """
    Ordered merge rules with constant time lookup by pair.

    Ranks are contiguous and equal to list positions. The table also records
    the split pattern the rules were learned under so encoding reproduces
    the same sequence boundaries; ``None`` means a whole document was one
    sequence.
    """

    def __init__(
        self, rules: Iterable[MergeRule] = (), pattern: str | None = None
    ) -> None:
        self.pattern = pattern
        self._rules: list[MergeRule] = []
        self._by_pair: dict[TokenPair, MergeRule] = {}
        for rule in rules:
            self._append(rule)

    def add(self, pair: TokenPair, new_id: Token) -> MergeRule:
        """Record a new rule with the next rank."""
        rule = MergeRule(pair[0], pair[1], new_id, len(self._rules))
        self._append(rule)
        return rule

    def _append(self, rule: MergeRule) -> None:
        if rule.rank != len(self._rules):
            raise VocabularyError(
                f"merge rule rank {rule.rank} out of order (expected {len(self._rules)})",
                invalid_tok=rule.new_id,
            )
        if rule.pair in self._by_pair:
            raise VocabularyError(
                f"duplicate merge rule for pair {rule.pair}", invalid_tok=rule.new_id
            )
        self._rules.append(rule)
        self._by_pair[rule.pair] = rule

    def get(self, pair: TokenPair) -> MergeRule | None:
        return self._by_pair.get(pair)

    def rank(self, pair: TokenPair) -> int | None:
        """Return the rank of ``pair`` or ``None`` when no rule applies."""
        rule = self._by_pair.get(pair)
        return None if rule is None else rule.rank

    def as_dict(self) -> dict[TokenPair, Token]:
        """Return ``pair -> new_id`` in rank order."""
        return {rule.pair: rule.new_id for rule in self._rules}

    def __getitem__(self, rank: int) -> MergeRule:
        return self._rules[rank]

    def __contains__(self, pair: object) -> bool:
        return pair in self._by_pair

    def __iter__(self) -> Iterator[MergeRule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __bool__(self) -> bool:
        return bool(self._rules)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MergeTable):
            return NotImplemented
        return self._rules == other._rules and self.pattern == other.pattern

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(rules={len(self._rules)}, pattern={self.pattern!r})"

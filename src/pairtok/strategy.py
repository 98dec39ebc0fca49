"""Special token handling for encoding."""

from typing import Final, Literal, overload
from typing_extensions import override
from abc import ABC, abstractmethod
import logging

from .types import Token, TokenBytes
from .errors import StrategyError, UnencodableInputError

log = logging.getLogger(__name__)


def _as_bytes(seq: str | bytes) -> TokenBytes:
    return seq.encode("utf-8") if isinstance(seq, str) else bytes(seq)


# =========================================================================================

# special token handling strategies


class SpecialTokenStrategy(ABC):
    """Base strategy for handling special tokens during encoding."""

    @abstractmethod
    def handle(
        self, data: TokenBytes, special_toks: dict[TokenBytes, Token]
    ) -> dict[TokenBytes, Token]:
        """Return the special tokens to match literally in ``data``."""


class AllowAllStrategy(SpecialTokenStrategy):
    """Strategy that matches all registered special tokens."""

    @override
    def handle(
        self, data: TokenBytes, special_toks: dict[TokenBytes, Token]
    ) -> dict[TokenBytes, Token]:
        """Return all registered special tokens unchanged."""
        return special_toks


class AllowNoneRaiseStrategy(SpecialTokenStrategy):
    """Strategy that raises if special tokens are found in the input."""

    @override
    def handle(
        self, data: TokenBytes, special_toks: dict[TokenBytes, Token]
    ) -> dict[TokenBytes, Token]:
        """Raise when input contains disallowed special tokens."""
        if special_toks:
            found = {seq for seq in special_toks if seq in data}
            if found:
                raise UnencodableInputError(
                    "special tokens found in input but not allowed",
                    found_tokens=found,
                )
        return {}


class AllowNoneStrategy(SpecialTokenStrategy):
    """Strategy that encodes special token markers as ordinary bytes."""

    @override
    def handle(
        self, data: TokenBytes, special_toks: dict[TokenBytes, Token]
    ) -> dict[TokenBytes, Token]:
        """Ignore special tokens and encode them as normal content."""
        if any(seq in data for seq in special_toks):
            log.warning("special tokens found in input but not allowed")
        return {}


class AllowCustomStrategy(SpecialTokenStrategy):
    """Strategy that matches only the specified special tokens."""

    def __init__(self, allowed_subset: set[str] | set[bytes]) -> None:
        """Store the special token subset allowed during encoding."""
        super().__init__()
        self.allowed_subset: set[TokenBytes] = {
            _as_bytes(seq) for seq in allowed_subset
        }

    @override
    def handle(
        self, data: TokenBytes, special_toks: dict[TokenBytes, Token]
    ) -> dict[TokenBytes, Token]:
        """
        Return only special tokens present in the allowed subset.

        :raises UnencodableInputError: If the subset names a marker that is
            not a registered special token.
        """
        unknown = self.allowed_subset - special_toks.keys()
        if unknown:
            raise UnencodableInputError(
                "allowed special tokens are not registered", found_tokens=unknown
            )
        return {
            seq: tok for seq, tok in special_toks.items() if seq in self.allowed_subset
        }


StrategyName = Literal["all", "none", "none-raise", "custom"]

_SPECIAL_TOKEN_STRATEGIES: Final[dict[str, type[SpecialTokenStrategy]]] = {
    "all": AllowAllStrategy,
    "none": AllowNoneStrategy,
    "none-raise": AllowNoneRaiseStrategy,
    "custom": AllowCustomStrategy,
}


def list_strategies() -> list[str]:
    """Return available special token strategy names."""
    return list(_SPECIAL_TOKEN_STRATEGIES.keys())


@overload
def get_strategy(
    name: Literal["all", "none", "none-raise"],
) -> SpecialTokenStrategy:
    """Return a built-in strategy that does not need extra arguments."""
    ...


@overload
def get_strategy(
    name: Literal["custom"], allowed_subset: set[str] | set[bytes]
) -> AllowCustomStrategy:
    """Return a custom strategy limited to ``allowed_subset``."""
    ...


def get_strategy(
    name: StrategyName = "all",
    allowed_subset: set[str] | set[bytes] | None = None,
) -> SpecialTokenStrategy:
    """
    Create a special token strategy by name.

    :param name: Strategy identifier: "all", "none", "none-raise", or "custom".
    :param allowed_subset: Required for "custom"; tokens allowed during encoding.
    :raises StrategyError: If name is unknown or allowed_subset is missing for custom.
    """
    if name not in _SPECIAL_TOKEN_STRATEGIES:
        raise StrategyError(
            "unknown strategy name",
            invalid_name=name,
            available_strats=list(_SPECIAL_TOKEN_STRATEGIES.keys()),
        )

    if name == "custom":
        if allowed_subset is None:
            raise StrategyError("allowed_subset is required for custom strategy")
        return AllowCustomStrategy(allowed_subset)

    return _SPECIAL_TOKEN_STRATEGIES[name]()


__all__ = [
    "StrategyName",
    "SpecialTokenStrategy",
    "AllowAllStrategy",
    "AllowNoneStrategy",
    "AllowNoneRaiseStrategy",
    "AllowCustomStrategy",
    "list_strategies",
    "get_strategy",
]

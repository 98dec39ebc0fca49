"""
Fixed-length (input, target) windows over a token stream for next-token prediction.
"""

from collections.abc import Iterator, Sequence
from typing import NamedTuple, overload

from .errors import InsufficientTokensError, InvalidConfigurationError
from .types import Token


class Window(NamedTuple):
    """Aligned input/target ids; ``target`` is ``input`` shifted one position forward."""

    input: list[Token]
    target: list[Token]


class WindowedDataset(Sequence[Window]):
    """
    Lazy, restartable view of the windows over a token stream.

    Windows start at ``0, stride, 2 * stride, ...`` while a full window plus
    its one-token shifted target fits. Trailing tokens that cannot fill a
    window are dropped. Nothing is materialized until a window is requested
    and every iteration yields the same windows.
    """

    def __init__(
        self, tokens: Sequence[Token], max_length: int, stride: int
    ) -> None:
        _check_config(len(tokens), max_length, stride)
        self._tokens = tokens
        self.max_length = max_length
        self.stride = stride
        self._len = (len(tokens) - max_length - 1) // stride + 1

    def __len__(self) -> int:
        return self._len

    @overload
    def __getitem__(self, idx: int) -> Window: ...

    @overload
    def __getitem__(self, idx: slice) -> list[Window]: ...

    def __getitem__(self, idx: int | slice) -> Window | list[Window]:
        if isinstance(idx, slice):
            return [self._window(i) for i in range(*idx.indices(self._len))]
        if idx < 0:
            idx += self._len
        if not 0 <= idx < self._len:
            raise IndexError(f"window index out of range: {idx}")
        return self._window(idx)

    def __iter__(self) -> Iterator[Window]:
        for idx in range(self._len):
            yield self._window(idx)

    def _window(self, idx: int) -> Window:
        start = idx * self.stride
        end = start + self.max_length
        return Window(
            list(self._tokens[start:end]),
            list(self._tokens[start + 1 : end + 1]),
        )

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(windows={self._len}, "
            f"max_length={self.max_length}, stride={self.stride})"
        )


def _check_config(n_tokens: int, max_length: int, stride: int) -> None:
    if max_length < 1:
        raise InvalidConfigurationError(
            "max length must be positive", name="max_length", value=max_length
        )
    if stride < 1:
        raise InvalidConfigurationError(
            "stride must be positive", name="stride", value=stride
        )
    if n_tokens <= max_length:
        raise InsufficientTokensError(
            "not enough tokens for a single window",
            n_tokens=n_tokens,
            max_length=max_length,
        )


def build_windows(
    tokens: Sequence[Token], max_length: int, stride: int | None = None
) -> WindowedDataset:
    """
    Slice ``tokens`` into overlapping (input, target) windows.

    Configuration is validated before any window is produced.

    :param tokens: Flat token stream.
    :param max_length: Tokens per window.
    :param stride: Distance between window starts; defaults to ``max_length``
        (non-overlapping windows).
    :raises InvalidConfigurationError: If ``max_length`` or ``stride`` is not positive.
    :raises InsufficientTokensError: If ``len(tokens) <= max_length``.

    .. code-block:: python

        windows = build_windows([1, 2, 3, 4, 5, 6], max_length=3, stride=2)
        list(windows)
        # [Window(input=[1, 2, 3], target=[2, 3, 4]),
        #  Window(input=[3, 4, 5], target=[4, 5, 6])]
    """
    if stride is None:
        stride = max_length
    return WindowedDataset(tokens, max_length, stride)


__all__ = ["Window", "WindowedDataset", "build_windows"]

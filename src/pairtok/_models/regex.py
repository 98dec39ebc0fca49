"""Regex-based byte-level tokenizer implementation."""

from collections.abc import Sequence
from typing_extensions import override

from ..errors import ModelLoadError
from ..pattern import TokenPattern, compile_pattern, resolve_pattern
from .base import Tokenizer


class RegexTokenizer(Tokenizer):
    """Tokenizer that splits text using a regex pattern before applying BPE."""

    TOKENIZER_TYPE = "regex"

    def __init__(
        self,
        pattern: str | None = None,
        special_tokens: Sequence[str | bytes] = (),
    ) -> None:
        """
        Initialize tokenizer with a provided or default split pattern.

        :param pattern: Built-in pattern name or custom regex; GPT-4's
            pattern when ``None``.
        :raises PatternError: If a custom pattern does not compile.
        """
        if pattern is None:
            self.pat = TokenPattern.GPT4.value
        else:
            self.pat = resolve_pattern(pattern)
        # validate up front so a bad pattern fails before training
        self.compiled_pat = compile_pattern(self.pat)
        super().__init__(special_tokens)

    @override
    def _get_pattern(self) -> str:
        return self.pat

    @override
    def _restore(self, pattern: str | None) -> None:
        if pattern is None:
            raise ModelLoadError("regex tokenizer model has no split pattern")
        self.pat = pattern
        self.compiled_pat = compile_pattern(pattern)

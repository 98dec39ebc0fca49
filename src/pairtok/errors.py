"""Custom exception hierarchy for pairtok tokenization errors."""

import regex as re

from .types import Token, TokenBytes


class PairTokError(Exception):
    """Base exception for all pairtok errors."""


class VocabularyError(PairTokError):
    """Raised when vocabulary operations fail."""

    def __init__(
        self,
        message: str,
        *,
        vocab_size: int | None = None,
        invalid_tok: Token | None = None,
    ) -> None:
        """Initialize with optional token and vocab_size that get appended to the message."""
        extra = " "
        # training: vocab size below the base alphabet
        if vocab_size is not None:
            extra += f"(vocab size: {vocab_size}) "
        # decoding: token not in model vocab
        if invalid_tok is not None:
            extra += f"(invalid token: {invalid_tok}) "
        super().__init__(message + extra)
        self.vocab_size = vocab_size
        self.invalid_tok = invalid_tok


class UnknownTokenError(VocabularyError):
    """Raised when a token id has no entry in the vocabulary."""


class NotInVocabularyError(VocabularyError):
    """Raised when a byte sequence was never registered in the vocabulary."""

    def __init__(self, message: str, *, seq: TokenBytes | None = None) -> None:
        if seq is not None:
            message = f"{message} (bytes: {seq!r})"
        super().__init__(message)
        self.seq = seq


class InvalidConfigurationError(PairTokError):
    """Raised when training or windowing parameters are invalid."""

    def __init__(
        self,
        message: str,
        *,
        name: str | None = None,
        value: object | None = None,
    ) -> None:
        if name is not None:
            message = f"{message} ({name}: {value!r})"
        super().__init__(message)
        self.name = name
        self.value = value


class InsufficientTokensError(PairTokError):
    """Raised when a token stream is too short to fill a single window."""

    def __init__(self, message: str, *, n_tokens: int, max_length: int) -> None:
        super().__init__(
            f"{message} (tokens: {n_tokens}) (required: {max_length + 1})"
        )
        self.n_tokens = n_tokens
        self.max_length = max_length


class TrainingError(PairTokError):
    """Raised when tokenizer training fails."""

    def __init__(self, message: str, *, vocab_size: int | None = None) -> None:
        super().__init__(message)
        self.vocab_size = vocab_size


class TrainingStalledError(TrainingError):
    """Raised in strict mode when the corpus runs out of mergeable pairs."""

    def __init__(
        self, message: str, *, vocab_size: int, target_vocab_size: int
    ) -> None:
        super().__init__(
            f"{message} (reached: {vocab_size}) (target: {target_vocab_size})",
            vocab_size=vocab_size,
        )
        self.target_vocab_size = target_vocab_size


class SpecialTokenError(PairTokError):
    """Raised when special token handling fails."""

    def __init__(
        self, message: str, *, found_tokens: set[bytes] | None = None
    ) -> None:
        """Initialize with optional found_tokens that get appended to the message."""
        if found_tokens:
            rendered = ", ".join(repr(seq) for seq in sorted(found_tokens))
            message = f"{message} (found: {rendered})"
        super().__init__(message)
        self.found_tokens = found_tokens


class UnencodableInputError(SpecialTokenError):
    """Raised when text cannot be encoded under the configured special token handling."""


class ModelLoadError(PairTokError):
    """Raised when loading a tokenizer model fails."""

    def __init__(
        self,
        message: str,
        *,
        model_path: str | None = None,
        version_mismatch: tuple[str, str] | None = None,
        type_mismatch: tuple[str, list[str]] | None = None,
    ) -> None:
        extra = " "
        if model_path:
            extra += f"(path: {model_path}) "
        if version_mismatch is not None:
            extra += f"(expected: {version_mismatch[1]}) (got {version_mismatch[0]}) "
        if type_mismatch is not None:
            extra += f"(expected one of: {type_mismatch[1]}) (got {type_mismatch[0]}) "
        super().__init__(message + extra)
        self.model_path = model_path
        self.version_mismatch = version_mismatch
        self.type_mismatch = type_mismatch


class PatternError(PairTokError):
    """Raised when compiling and/or validating regex patterns."""

    def __init__(
        self,
        message: str,
        *,
        pattern: str | None = None,
        regex_err: re.error | None = None,
    ) -> None:
        """
        Initialize PatternError with pattern details.

        :param message: Error message.
        :param pattern: The regex pattern that failed.
        :param regex_err: The underlying regex error from the regex library.
        """
        extra = " "
        if pattern:
            extra += f"(pattern: {pattern!r}) "
        if regex_err:
            extra += f"(reason: {regex_err}) "
        super().__init__(message + extra)
        self.pattern = pattern
        self.regex_err = regex_err


class StrategyError(PairTokError):
    """Raised when strategy or parallel mode lookups fail."""

    def __init__(
        self,
        message: str,
        *,
        invalid_name: str | None = None,
        available_strats: list[str] | None = None,
    ) -> None:
        extra = " "
        if invalid_name:
            extra += f"(available: {available_strats}) (got {invalid_name}) "
        super().__init__(message + extra)
        self.invalid_name = invalid_name
        self.available_strats = available_strats

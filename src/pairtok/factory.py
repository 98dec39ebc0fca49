"""Factory functions for creating tokenizers."""

from collections.abc import Sequence
from pathlib import Path
from typing import Final, Literal, overload

from ._models.base import Tokenizer
from ._models.basic import BasicTokenizer
from ._models.regex import RegexTokenizer
from .errors import ModelLoadError
from .pattern import TokenPattern
from .serialization import read_model_type

Pattern = Literal["whitespace", "gpt2", "gpt4", "llama3", "qwen2"]

_TOKENIZER_REGISTRY: Final[dict[str, type[Tokenizer]]] = {
    "regex": RegexTokenizer,
    "basic": BasicTokenizer,
}


@overload
def get_tokenizer(
    pattern: Pattern | None = ..., *, special_tokens: Sequence[str | bytes] = ...
) -> Tokenizer: ...


@overload
def get_tokenizer(
    *, custom_pattern: str, special_tokens: Sequence[str | bytes] = ...
) -> Tokenizer: ...


def get_tokenizer(
    pattern: Pattern | None = "gpt4",
    *,
    custom_pattern: str | None = None,
    special_tokens: Sequence[str | bytes] = (),
) -> Tokenizer:
    """
    Create a tokenizer with a built-in or custom boundary policy.

    :param pattern: Built-in pattern name (e.g., "gpt2", "gpt4", "whitespace").
                    ``None`` returns a :class:`BasicTokenizer` that keeps each
                    document whole. Ignored if custom_pattern is provided.
    :param custom_pattern: Custom regex pattern string. Overrides pattern parameter.
    :param special_tokens: Reserved markers registered before training.
    :return: Configured tokenizer instance.
    :raises PatternError: If the pattern name is unknown or custom_pattern is invalid regex.

    .. code-block:: python

        # Use built-in pattern
        tokenizer = get_tokenizer("gpt4", special_tokens=["<|endoftext|>"])

        # Use custom pattern
        tokenizer = get_tokenizer(custom_pattern=r"\\w+|\\W+")
    """
    # regex class initializer handles invalid custom patterns
    if custom_pattern is not None:
        return RegexTokenizer(custom_pattern, special_tokens=special_tokens)

    if pattern is None:
        return BasicTokenizer(special_tokens=special_tokens)

    # get() handles invalid pattern names
    return RegexTokenizer(TokenPattern.get(pattern), special_tokens=special_tokens)


def from_pretrained(model_path: str | Path) -> Tokenizer:
    """
    Load a pre-trained tokenizer from disk.

    Automatically detects tokenizer type from the model file header and
    loads the appropriate implementation.

    :param model_path: Path to the .model file.
    :return: Loaded tokenizer instance with vocabulary and configuration.
    :raises ModelLoadError: If file doesn't exist, has wrong extension, or contains
                            unknown tokenizer type.

    .. code-block:: python

        tokenizer = from_pretrained("path/to/model.model")
        tokens = tokenizer.encode("Hello world")
    """
    # extract model type from file
    tok_type = read_model_type(model_path)

    # look up class from registry
    if tok_type not in _TOKENIZER_REGISTRY:
        raise ModelLoadError(
            "unknown tokenizer type in model file",
            type_mismatch=(tok_type, list(_TOKENIZER_REGISTRY.keys())),
        )

    # instantiate and load
    tokenizer = _TOKENIZER_REGISTRY[tok_type]()
    tokenizer.load(model_path)

    return tokenizer


__all__ = ["Pattern", "get_tokenizer", "from_pretrained"]

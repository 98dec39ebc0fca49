"""Token ids back to bytes."""

from collections.abc import Iterable

from .types import Token
from .vocab import Vocabulary


def decode(tokens: Iterable[Token], vocab: Vocabulary) -> bytes:
    """
    Concatenate the surface form of every token in order.

    Exact left inverse of encoding: ``decode(encode(s)) == s``.

    :raises UnknownTokenError: If any token is not in the vocabulary.
    """
    # token stream -> byte stream
    return b"".join(vocab.id_to_bytes(tok) for tok in tokens)


def decode_text(
    tokens: Iterable[Token], vocab: Vocabulary, errors: str = "replace"
) -> str:
    """
    Decode tokens into text.

    Merged tokens may hold partial UTF-8 sequences, so invalid bytes are
    replaced by default; pass ``errors="strict"`` to raise instead.

    :raises UnknownTokenError: If any token is not in the vocabulary.
    """
    return decode(tokens, vocab).decode("utf-8", errors=errors)


__all__ = ["decode", "decode_text"]

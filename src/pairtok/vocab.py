"""
Bidirectional token id <-> byte sequence mapping.
"""

import logging
from collections.abc import Iterator
from typing import Final

from .errors import (
    NotInVocabularyError,
    SpecialTokenError,
    UnknownTokenError,
    VocabularyError,
)
from .types import Token, TokenBytes

N_BASE_TOKENS: Final[int] = 256

log = logging.getLogger(__name__)


class Vocabulary:
    """
    Token id to surface form mapping seeded with the 256 base byte tokens.

    Ids are assigned monotonically by :meth:`register` and never reused or
    removed, so every id in ``range(len(vocab))`` is always reachable. The
    reverse lookup guarantees no two ids share the same byte sequence.
    """

    def __init__(self) -> None:
        # tokens -> bytes, ids are list positions
        self._id_to_bytes: list[TokenBytes] = [
            bytes([btok]) for btok in range(N_BASE_TOKENS)
        ]
        # bytes -> tokens
        self._bytes_to_id: dict[TokenBytes, Token] = {
            b: tok for tok, b in enumerate(self._id_to_bytes)
        }
        self._special: dict[TokenBytes, Token] = {}
        self._special_ids: set[Token] = set()
        self._frozen = False

    def id_to_bytes(self, tok: Token) -> TokenBytes:
        """
        Return the surface form of ``tok``.

        :raises UnknownTokenError: If ``tok`` is outside the vocabulary.
        """
        if not 0 <= tok < len(self._id_to_bytes):
            raise UnknownTokenError(
                "token not found in vocabulary", invalid_tok=tok
            )
        return self._id_to_bytes[tok]

    def bytes_to_id(self, seq: TokenBytes) -> Token:
        """
        Return the id registered for exactly ``seq``.

        :raises NotInVocabularyError: If ``seq`` was never registered.
        """
        try:
            return self._bytes_to_id[seq]
        except KeyError:
            raise NotInVocabularyError(
                "byte sequence not in vocabulary", seq=seq
            ) from None

    def register(self, seq: TokenBytes) -> Token:
        """
        Assign the next unused id to ``seq``.

        :raises VocabularyError: If the vocabulary is frozen or ``seq`` is
            empty or already registered.
        """
        if self._frozen:
            raise VocabularyError(
                "vocabulary is frozen", vocab_size=len(self._id_to_bytes)
            )
        if not seq:
            raise VocabularyError("cannot register an empty byte sequence")
        if seq in self._bytes_to_id:
            raise VocabularyError(
                "byte sequence already registered",
                invalid_tok=self._bytes_to_id[seq],
            )
        tok = len(self._id_to_bytes)
        self._id_to_bytes.append(bytes(seq))
        self._bytes_to_id[bytes(seq)] = tok
        return tok

    def register_special(self, seq: TokenBytes) -> Token:
        """
        Register a reserved special token.

        Special tokens are matched literally during encoding and never take
        part in merges.

        :raises SpecialTokenError: If ``seq`` is empty or collides with an
            existing surface form.
        """
        if not seq:
            raise SpecialTokenError("special token must not be empty")
        if seq in self._bytes_to_id:
            raise SpecialTokenError(
                "special token collides with an existing token",
                found_tokens={bytes(seq)},
            )
        tok = self.register(seq)
        self._special[bytes(seq)] = tok
        self._special_ids.add(tok)
        log.debug(f"registered special token {seq!r} as {tok}")
        return tok

    @property
    def special_tokens(self) -> dict[TokenBytes, Token]:
        """Special token surface form -> id, in registration order."""
        return dict(self._special)

    def is_special(self, tok: Token) -> bool:
        return tok in self._special_ids

    def freeze(self) -> None:
        """Make the vocabulary read-only."""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def items(self) -> Iterator[tuple[Token, TokenBytes]]:
        """Yield ``(id, bytes)`` entries in id order."""
        return iter(enumerate(self._id_to_bytes))

    def __len__(self) -> int:
        return len(self._id_to_bytes)

    def __contains__(self, tok: object) -> bool:
        return isinstance(tok, int) and 0 <= tok < len(self._id_to_bytes)

    def __iter__(self) -> Iterator[Token]:
        return iter(range(len(self._id_to_bytes)))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Vocabulary):
            return NotImplemented
        return (
            self._id_to_bytes == other._id_to_bytes
            and self._special == other._special
        )

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(size={len(self)}, "
            f"special={len(self._special)}, frozen={self._frozen})"
        )

    @classmethod
    def from_entries(
        cls,
        entries: list[tuple[Token, TokenBytes]],
        special: dict[TokenBytes, Token] | None = None,
    ) -> "Vocabulary":
        """
        Rebuild a vocabulary from persisted ``(id, bytes)`` entries.

        Entries must list ids ``0..N-1`` in order and start with the base
        byte tokens.

        :raises VocabularyError: If entries are out of order or inconsistent.
        """
        vocab = cls()
        special = special or {}
        for expected, (tok, seq) in enumerate(entries):
            if tok != expected:
                raise VocabularyError("vocabulary ids are not contiguous", invalid_tok=tok)
            if tok < N_BASE_TOKENS:
                if seq != bytes([tok]):
                    raise VocabularyError("base token has wrong bytes", invalid_tok=tok)
                continue
            if seq in special:
                if special[seq] != tok:
                    raise VocabularyError("special token id mismatch", invalid_tok=tok)
                vocab.register_special(seq)
            else:
                vocab.register(seq)
        return vocab

"""
Base tokenizer interface bundling vocabulary, merge rules and special tokens.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from pathlib import Path

from ..decoder import decode, decode_text
from ..encoder import Encoder
from ..errors import ModelLoadError, TrainingError
from ..merges import MergeTable
from ..parallel import ParallelMode, ParallelStrategy
from ..serialization import load_model, save_model
from ..strategy import SpecialTokenStrategy
from ..trainer import MergeLearner, TrainerConfig, TrainingResult
from ..types import Document, Token, TokenBytes
from ..vocab import Vocabulary

log = logging.getLogger(__name__)


class Tokenizer(ABC):
    """
    Abstract base class for byte-level BPE tokenizers.

    Subclasses only decide the sequence boundary policy; training, encoding,
    decoding and serialization are shared.
    """

    TOKENIZER_TYPE: str = "base"

    def __init__(self, special_tokens: Sequence[str | bytes] = ()) -> None:
        """Initialize an untrained tokenizer with the base 256 vocabulary."""
        super().__init__()
        self.special_tokens: tuple[TokenBytes, ...] = tuple(
            seq.encode("utf-8") if isinstance(seq, str) else bytes(seq)
            for seq in special_tokens
        )
        # tokens -> bytes
        self.vocab: Vocabulary = Vocabulary()
        # byte pair -> merge token, in rank order
        self.merges: MergeTable = MergeTable(pattern=self._get_pattern())
        self._trained = False
        # cached encoder for the current vocab and merges
        self._encoder: Encoder | None = None

    @abstractmethod
    def _get_pattern(self) -> str | None:
        """Return the split pattern; ``None`` keeps each document whole."""
        ...

    def train(
        self,
        text: Document | Iterable[Document],
        vocab_size: int,
        *,
        min_frequency: int = 1,
        num_workers: int | None = None,
        strict: bool = False,
        verbose: bool = False,
    ) -> TrainingResult:
        """
        Learn merges on ``text`` up to ``vocab_size`` tokens.

        ``vocab_size`` counts the 256 base bytes, the special tokens and the
        learned merges. Stopping early because the corpus ran out of pairs
        is logged as a warning and reported on the returned result.

        :param text: Training document(s) as str or bytes.
        :param vocab_size: Target vocabulary size.
        :param min_frequency: Stop when the best pair occurs fewer times.
        :param num_workers: Thread count for the initial pair count.
        :param strict: Raise instead of warning when training stalls.
        :param verbose: Log each learned merge.
        :raises InvalidConfigurationError: If ``vocab_size`` is too small.
        :raises TrainingStalledError: In strict mode when training stalls.
        """
        config = TrainerConfig(
            target_vocab_size=vocab_size,
            min_frequency=min_frequency,
            special_tokens=self.special_tokens,
            pattern=self._get_pattern(),
            num_workers=num_workers,
            strict=strict,
            verbose=verbose,
        )
        result = MergeLearner(text, config).run()

        self.vocab = result.vocab  # used for decoding tokens -> bytes
        self.merges = result.merges  # used for encoding bytes -> tokens
        self._trained = True
        # invalidate encoder cache since merges changed
        self._encoder = None
        return result

    def encode(
        self, text: Document, strategy: SpecialTokenStrategy | None = None
    ) -> list[Token]:
        """
        Encode text into a sequence of tokens.

        :raises TrainingError: If the tokenizer has not been trained or loaded.
        """
        return self._get_encoder("encoding").encode(text, strategy)

    def encode_batch(
        self,
        texts: list[Document],
        strategy: SpecialTokenStrategy | None = None,
        num_workers: int | None = None,
        parallel_mode: ParallelMode | ParallelStrategy = ParallelMode.AUTO,
    ) -> list[list[Token]]:
        """Encode multiple texts into sequences of tokens in batch."""
        return self._get_encoder("encoding").encode_batch(
            texts, strategy, num_workers=num_workers, parallel_mode=parallel_mode
        )

    def decode(self, tokens: Iterable[Token], errors: str = "replace") -> str:
        """
        Decode a sequence of tokens back into text.

        :param errors: How to handle invalid UTF-8: "strict" or "replace" (default).
        :raises TrainingError: If the tokenizer has not been trained yet.
        :raises UnknownTokenError: If any token ID is not in the vocabulary.
        """
        self._check_trained("decoding")
        return decode_text(tokens, self.vocab, errors=errors)

    def decode_bytes(self, tokens: Iterable[Token]) -> bytes:
        """Decode a sequence of tokens back into the exact original bytes."""
        self._check_trained("decoding")
        return decode(tokens, self.vocab)

    def decode_batch(
        self, token_batch: list[list[Token]], errors: str = "replace"
    ) -> list[str]:
        """Decode multiple token sequences."""
        self._check_trained("decoding")
        return [decode_text(tokens, self.vocab, errors=errors) for tokens in token_batch]

    def vocab_size(self) -> int:
        """Return the number of tokens in the vocabulary."""
        return len(self.vocab)

    def save(self, file_prefix: str | Path) -> Path:
        """
        Save tokenizer state to disk.

        Creates two files: a .model file to reload from and a .vocab file
        with human-readable token representations.

        :param file_prefix: Path prefix for output files.
        :return: Path of the written .model file.
        :raises TrainingError: If the tokenizer has not been trained yet.
        """
        self._check_trained("saving")
        return save_model(file_prefix, self.vocab, self.merges, self.TOKENIZER_TYPE)

    def load(self, model_filename: str | Path) -> None:
        """
        Load tokenizer state from a .model file.

        :param model_filename: Path to the .model file.
        :raises ModelLoadError: If the file is missing or malformed, or was
            written by another tokenizer type.
        """
        artifact = load_model(model_filename)
        if artifact.tokenizer_type != self.TOKENIZER_TYPE:
            raise ModelLoadError(
                "tokenizer type mismatch",
                type_mismatch=(artifact.tokenizer_type, [self.TOKENIZER_TYPE]),
            )

        # update tokenizer state only after a successful read
        self._restore(artifact.merges.pattern)
        self.special_tokens = tuple(artifact.vocab.special_tokens)
        self.vocab = artifact.vocab
        self.merges = artifact.merges
        self._trained = True
        self._encoder = None

    def _restore(self, pattern: str | None) -> None:
        """Adopt state that depends on the loaded split pattern."""

    def _check_trained(self, action: str) -> None:
        if not self._trained:
            raise TrainingError(
                f"{self.__class__.__name__} must be trained before {action}"
            )

    def _get_encoder(self, action: str) -> Encoder:
        """Build or return the cached encoder."""
        self._check_trained(action)
        if self._encoder is None:
            self._encoder = Encoder(self.vocab, self.merges)
        return self._encoder

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(vocab_size={len(self.vocab)}, "
            f"merges={len(self.merges)}, special_tokens={len(self.special_tokens)})"
        )

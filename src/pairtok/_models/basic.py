"""Basic byte-level tokenizer implementation."""

from typing_extensions import override

from .base import Tokenizer


class BasicTokenizer(Tokenizer):
    """
    Tokenizer that treats every document as one symbol sequence.

    Merges may cross whitespace and punctuation; they never cross document
    boundaries or special token markers.
    """

    TOKENIZER_TYPE = "basic"

    @override
    def _get_pattern(self) -> None:
        return None

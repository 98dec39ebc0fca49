"""
Sequence boundary policies: regex patterns that cut text into units before BPE.
"""

from collections.abc import Sequence
from enum import Enum

import regex as re

from .errors import PatternError
from .types import Document, TokenBytes


class TokenPattern(str, Enum):
    """
    Pre-defined regex patterns for splitting text into training/encoding units.

    Sources:
    - GPT2 and GPT4: https://github.com/openai/tiktoken/blob/main/tiktoken_ext/openai_public.py
    - Others: https://github.com/ggerganov/llama.cpp
    """

    # runs of whitespace and runs of everything else
    WHITESPACE = r"\s+|\S+"

    # OpenAI models
    GPT2 = (
        r"'(?:[sdmt]|ll|ve|re)|"
        r" ?\p{L}+|"
        r" ?\p{N}+|"
        r" ?[^\s\p{L}\p{N}]+|"
        r"\s+(?!\S)|"
        r"\s+"
    )

    GPT4 = (
        r"'(?i:[sdmt]|ll|ve|re)|"
        r"[^\r\n\p{L}\p{N}]?+\p{L}+|"
        r"\p{N}{1,3}|"
        r" ?[^\s\p{L}\p{N}]++[\r\n]*|"
        r"\s*[\r\n]|"
        r"\s+(?!\S)|"
        r"\s+"
    )

    # Meta models
    LLAMA3 = (
        r"(?:'[sS]|'[tT]|'[rR][eE]|'[vV][eE]|'[mM]|'[lL][lL]|'[dD])|"
        r"[^\r\n\p{L}\p{N}]?\p{L}+|"
        r"\p{N}{1,3}|"
        r" ?[^\s\p{L}\p{N}]+[\r\n]*|"
        r"\s*[\r\n]+|"
        r"\s+(?!\S)|"
        r"\s+"
    )

    # Alibaba models
    QWEN2 = (
        r"(?:'[sS]|'[tT]|'[rR][eE]|'[vV][eE]|'[mM]|'[lL][lL]|'[dD])|"
        r"[^\r\n\p{L}\p{N}]?\p{L}+|"
        r"\p{N}|"  # single digits (different from LLAMA3)
        r" ?[^\s\p{L}\p{N}]+[\r\n]*|"
        r"\s*[\r\n]+|"
        r"\s+(?!\S)|"
        r"\s+"
    )

    @classmethod
    def get(cls, name: str) -> str:
        """Get patterns by name (case-insensitive)."""
        try:
            return cls[name.upper().replace("-", "_")].value
        except KeyError:
            raise PatternError(
                f"Unknown pattern: {name!r}. "
                f"Valid patterns: {', '.join(pat.name.lower() for pat in cls)}"
            ) from None


def to_bytes(doc: Document) -> TokenBytes:
    """
    UTF-8 bytes of a document.

    Lone surrogates in ``str`` input are kept with ``surrogatepass`` rather
    than replaced, so ``decode_text(..., errors="surrogatepass")`` restores
    the original string.
    """
    if isinstance(doc, str):
        return doc.encode("utf-8", errors="surrogatepass")
    return bytes(doc)


def list_patterns() -> list[str]:
    """Return names of all available built-in patterns."""
    return [pat.name.lower() for pat in TokenPattern]


def get_pattern(name: str) -> str:
    return TokenPattern.get(name)


def resolve_pattern(pattern: str | None) -> str | None:
    """
    Resolve a boundary policy to a regex string.

    ``None`` keeps a whole document as one sequence, a built-in pattern name
    resolves to its regex and anything else is taken as a custom regex.
    """
    if pattern is None:
        return None
    try:
        return TokenPattern.get(pattern)
    except PatternError:
        return pattern


def compile_pattern(pattern: str) -> re.Pattern:
    """
    Compile and validate a regex pattern.

    :param pattern: Regex pattern string to compile.
    :return: Compiled regex pattern.
    :raises PatternError: If pattern is invalid.
    """
    try:
        return re.compile(pattern)
    except re.error as e:
        raise PatternError("invalid regex pattern", pattern=pattern, regex_err=e) from e


class Splitter:
    """
    Cuts a byte span into units according to a boundary policy.

    Bytes are viewed as text through the ``surrogateescape`` handler so
    non-UTF-8 runs survive the regex pass and are restored exactly. Text the
    pattern does not match is kept as its own unit, so no byte is ever lost.
    """

    def __init__(self, pattern: str | None = None) -> None:
        self.pattern = resolve_pattern(pattern)
        self._compiled = None if self.pattern is None else compile_pattern(self.pattern)

    def split(self, data: TokenBytes) -> list[TokenBytes]:
        if not data:
            return []
        if self._compiled is None:
            return [data]

        text = data.decode("utf-8", errors="surrogateescape")
        units: list[str] = []
        pos = 0
        for m in self._compiled.finditer(text):
            start, end = m.span()
            if start > pos:
                units.append(text[pos:start])
            # zero-width matches carry no bytes
            if end > start:
                units.append(m.group(0))
            pos = max(pos, end)
        if pos < len(text):
            units.append(text[pos:])

        return [unit.encode("utf-8", errors="surrogateescape") for unit in units]


def split_on_special(
    data: TokenBytes, specials: Sequence[TokenBytes]
) -> list[tuple[TokenBytes, bool]]:
    """
    Split ``data`` on literal special token markers.

    Longer markers win when one marker is a prefix of another. Empty spans
    between adjacent markers are dropped.

    :return: ``(span, is_special)`` parts in input order.
    """
    if not specials:
        return [(data, False)] if data else []

    # escape regex metachars like "+" in special tokens to avoid unwanted effects
    ordered = sorted(specials, key=len, reverse=True)
    special_pat = re.compile(b"(" + b"|".join(re.escape(seq) for seq in ordered) + b")")
    special_set = set(specials)

    parts: list[tuple[TokenBytes, bool]] = []
    # the capturing group keeps the matched markers in the split result
    for idx, chunk in enumerate(special_pat.split(data)):
        if not chunk:
            continue
        # odd positions are the captured delimiters
        parts.append((chunk, idx % 2 == 1 and chunk in special_set))
    return parts

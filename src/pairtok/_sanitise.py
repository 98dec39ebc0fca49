"""
Printable renderings of token byte sequences for logs and the .vocab listing.
"""

import unicodedata

from .merges import MergeRule
from .vocab import Vocabulary


def _escape_ctrl_chars(s: str) -> str:
    """Replace Unicode control and format characters with ``\\uXXXX`` escapes."""
    # category codes Cc, Cf, Cn, Co, Cs all start with "C"
    return "".join(
        c if unicodedata.category(c)[0] != "C" else f"\\u{ord(c):04x}" for c in s
    )


def render_bytes(b: bytes) -> str:
    """
    Decode bytes as UTF-8 and escape control characters.

    Merged tokens often hold partial UTF-8 sequences; those bytes are shown
    as ``\\xNN`` escapes so distinct tokens never render identically.
    """
    return _escape_ctrl_chars(b.decode("utf-8", errors="backslashreplace"))


def render_merge(vocab: Vocabulary, rule: MergeRule) -> str:
    """Render a rule as ``[left][right] -> merged``."""
    left = render_bytes(vocab.id_to_bytes(rule.left))
    right = render_bytes(vocab.id_to_bytes(rule.right))
    merged = render_bytes(vocab.id_to_bytes(rule.new_id))
    return f"[{left}][{right}] -> {merged}"

"""
Persisted vocabulary artifact: a `.model` file to reload from and a `.vocab` file to read.
"""

from dataclasses import dataclass
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Final, TextIO
import logging

from ._sanitise import render_bytes, render_merge
from .errors import ModelLoadError, PairTokError
from .merges import MergeRule, MergeTable
from .types import Token, TokenBytes
from .vocab import N_BASE_TOKENS, Vocabulary

PREFIX: Final[str] = "PairTok"
try:
    _version = version("pairtok")
except PackageNotFoundError:
    _version = "dev"

VERSION: Final[str] = _version
MODEL_SUFFIX: Final[str] = ".model"
VOCAB_SUFFIX: Final[str] = ".vocab"
SECTION_MARKER: Final[str] = "---"

log = logging.getLogger(__name__)


@dataclass
class ModelArtifact:
    """Everything needed to encode and decode without retraining."""

    vocab: Vocabulary
    merges: MergeTable
    tokenizer_type: str = "basic"


def save_model(
    file_prefix: str | Path,
    vocab: Vocabulary,
    merges: MergeTable,
    tokenizer_type: str = "basic",
) -> Path:
    """
    Write ``<prefix>.model`` and ``<prefix>.vocab``.

    The model file lists the header (version, tokenizer type, split
    pattern, hex encoded), the special tokens, every ``(id, bytes)`` vocabulary entry and
    every merge rule as ``left right new_id rank`` in rank order. Byte
    sequences are hex encoded so any byte value survives.

    :return: Path of the written ``.model`` file.
    """
    model_path = Path(file_prefix).with_suffix(MODEL_SUFFIX)
    # create directory if does not exist
    model_path.parent.mkdir(parents=True, exist_ok=True)

    log.info(f"saving tokenizer to {model_path}")
    special = vocab.special_tokens

    with model_path.open("w", encoding="utf-8", newline="\n") as f:
        # header: version, tokenizer type, hex encoded regex pattern if exists
        f.write(f"{PREFIX} {VERSION}\n")
        f.write(f"type {tokenizer_type}\n")
        f.write(f"re {_encode_pattern(merges.pattern)}\n")
        # body 1: special tokens
        f.write(f"{SECTION_MARKER}\n")
        f.write(f"{len(special)}\n")
        for seq, tok in special.items():
            f.write(f"{tok} {seq.hex()}\n")
        # body 2: vocabulary entries for ids 0..N-1
        f.write(f"{SECTION_MARKER}\n")
        f.write(f"{len(vocab)}\n")
        for tok, seq in vocab.items():
            f.write(f"{tok} {seq.hex()}\n")
        # body 3: merge rules in rank order
        f.write(f"{SECTION_MARKER}\n")
        for rule in merges:
            f.write(f"{rule.left} {rule.right} {rule.new_id} {rule.rank}\n")

    _save_vocab(model_path.with_suffix(VOCAB_SUFFIX), vocab, merges)
    log.info(
        f"tokenizer saved: {len(special)} special tokens, {len(merges)} merge rules, "
        f"{len(vocab)} total tokens"
    )
    return model_path


def _save_vocab(vocab_path: Path, vocab: Vocabulary, merges: MergeTable) -> None:
    """Persist human-readable token representations to a .vocab file."""
    log.debug(f"saving vocab to {vocab_path}")

    inverted_merges = {rule.new_id: rule for rule in merges}

    with vocab_path.open("w", encoding="utf-8", newline="\n") as f:
        for tok, b in vocab.items():
            subword = render_bytes(b)
            if vocab.is_special(tok):
                f.write(f"ST [{tok}] {subword}\n")
            # token arises from merging: show derivation from child tokens
            elif tok in inverted_merges:
                rule = inverted_merges[tok]
                f.write(f"[{tok}] {render_merge(vocab, rule)} (rank {rule.rank})\n")
            else:
                # one of base 256 tokens: no merging
                f.write(f"[{tok}] {subword}\n")


def _encode_pattern(pattern: str | None) -> str:
    # patterns may hold newlines, so they are stored on one line as hex
    return "" if pattern is None else pattern.encode("utf-8").hex()


def _decode_pattern(raw: str) -> str | None:
    if not raw.strip():
        return None
    try:
        return bytes.fromhex(raw).decode("utf-8")
    except ValueError:
        raise ModelLoadError(f"invalid split pattern: {raw}") from None


def _read_line(f: TextIO, what: str) -> str:
    line = f.readline()
    if not line:
        raise ModelLoadError(f"unexpected end of file while reading {what}")
    return line.rstrip("\n")


def _read_marker(f: TextIO) -> None:
    marker = _read_line(f, "section marker").strip()
    if marker != SECTION_MARKER:
        raise ModelLoadError(
            f"section marker missing: (expected {SECTION_MARKER}) (got {marker})"
        )


def _read_count(f: TextIO, what: str) -> int:
    raw = _read_line(f, what).strip()
    try:
        count = int(raw)
        if count < 0:
            raise ValueError()
    except ValueError:
        raise ModelLoadError(f"invalid {what}: {raw}") from None
    return count


def _read_entry(f: TextIO, what: str) -> tuple[Token, TokenBytes]:
    line = _read_line(f, what)
    parts = line.split()
    if len(parts) != 2:
        raise ModelLoadError(f"invalid {what} entry: {line}")
    try:
        return int(parts[0]), bytes.fromhex(parts[1])
    except ValueError:
        raise ModelLoadError(f"invalid {what} entry: {line}") from None


def read_model_type(model_path: str | Path) -> str:
    """Read the tokenizer type from a model file header."""
    path = _check_path(model_path)
    with path.open("r", encoding="utf-8") as f:
        # skip version to get tokenizer type
        _ = f.readline()
        tok_type = f.readline().strip()
    if not tok_type.startswith("type "):
        raise ModelLoadError(f"expected tokenizer type got {tok_type}", model_path=str(path))
    return tok_type[5:]


def _check_path(model_path: str | Path) -> Path:
    path = Path(model_path)
    if not path.exists():
        raise ModelLoadError("model filepath does not exist", model_path=str(path))
    if path.suffix != MODEL_SUFFIX:
        raise ModelLoadError("expected .model file", model_path=str(path))
    return path


def load_model(model_path: str | Path) -> ModelArtifact:
    """
    Load a `.model` file written by :func:`save_model`.

    The merge table is checked against the vocabulary: ranks must be
    contiguous and each merged token's bytes must equal the concatenation
    of its parts, so encode-time behaviour is reproduced exactly.

    :raises ModelLoadError: If the file is missing, malformed, from another
        version or internally inconsistent.
    """
    path = _check_path(model_path)
    log.info(f"loading model from {path}")

    with path.open("r", encoding="utf-8") as f:
        # verify version match
        header = _read_line(f, "header").split(" ")
        if len(header) != 2 or header[0] != PREFIX:
            raise ModelLoadError("not a pairtok model file", model_path=str(path))
        if header[1] != VERSION:
            raise ModelLoadError(
                "model version mismatch", version_mismatch=(header[1], VERSION)
            )

        tok_type = _read_line(f, "tokenizer type")
        if not tok_type.startswith("type "):
            raise ModelLoadError(f"expected tokenizer type got {tok_type}")
        tok_type = tok_type[5:]

        model_re = _read_line(f, "split pattern")
        if not model_re.startswith("re "):
            raise ModelLoadError(f"expected split pattern got {model_re}")
        pattern = _decode_pattern(model_re[3:])

        _read_marker(f)
        n_special = _read_count(f, "special token count")
        special: dict[TokenBytes, Token] = {}
        for _ in range(n_special):
            tok, seq = _read_entry(f, "special token")
            special[seq] = tok
        log.debug(f"{n_special} special tokens loaded")

        _read_marker(f)
        n_vocab = _read_count(f, "vocab size")
        if n_vocab < N_BASE_TOKENS:
            raise ModelLoadError(f"vocab size below base alphabet: {n_vocab}")
        entries = [_read_entry(f, "vocab") for _ in range(n_vocab)]

        _read_marker(f)
        rules: list[MergeRule] = []
        for line in f:
            if not line.strip():
                continue
            try:
                left, right, new_id, rank = map(int, line.split())
            except ValueError:
                raise ModelLoadError(
                    f"invalid merge format at line: {line.strip()}"
                ) from None
            rules.append(MergeRule(left, right, new_id, rank))
        log.debug(f"loaded {len(rules)} merge rules")

    try:
        vocab = Vocabulary.from_entries(entries, special)
        merges = MergeTable(rules, pattern=pattern)
    except PairTokError as e:
        raise ModelLoadError(f"inconsistent model: {e}", model_path=str(path)) from e

    if len(vocab.special_tokens) != len(special):
        raise ModelLoadError("special tokens missing from vocabulary", model_path=str(path))

    for rule in merges:
        if rule.new_id not in vocab or rule.left not in vocab or rule.right not in vocab:
            raise ModelLoadError(
                f"merge rule {rule.rank} refers to unknown token", model_path=str(path)
            )
        expected = vocab.id_to_bytes(rule.left) + vocab.id_to_bytes(rule.right)
        if vocab.id_to_bytes(rule.new_id) != expected:
            raise ModelLoadError(
                f"merge rule {rule.rank} does not match vocabulary bytes",
                model_path=str(path),
            )

    vocab.freeze()
    log.info(
        f"model loaded successfully: {len(special)} special tokens, "
        f"{len(merges)} merge rules, {len(vocab)} total tokens"
    )
    return ModelArtifact(vocab=vocab, merges=merges, tokenizer_type=tok_type)


__all__ = [
    "ModelArtifact",
    "save_model",
    "load_model",
    "read_model_type",
    "MODEL_SUFFIX",
    "VOCAB_SUFFIX",
]

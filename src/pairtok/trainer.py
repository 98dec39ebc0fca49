"""BPE training: learn ranked merge rules from a corpus."""

from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
import logging

from ._decorators import measure_time
from ._progress import MergeProgress
from ._sanitise import render_merge
from .counter import PairFrequencyCounter
from .errors import (
    InvalidConfigurationError,
    NotInVocabularyError,
    TrainingStalledError,
)
from .merges import MergeRule, MergeTable
from .pattern import Splitter, split_on_special, to_bytes
from .types import Document, TokenBytes
from .vocab import N_BASE_TOKENS, Vocabulary

log = logging.getLogger(__name__)


class LearnerState(str, Enum):
    """Phases of the merge learning loop."""

    COLLECTING = "collecting"
    SELECT_PAIR = "select-pair"
    APPLY_MERGE = "apply-merge"
    STOPPED = "stopped"


class StopReason(str, Enum):
    """Why the merge learning loop stopped."""

    TARGET_REACHED = "target-reached"
    EXHAUSTED = "exhausted"
    BELOW_MIN_FREQUENCY = "below-min-frequency"
    CANCELLED = "cancelled"


@dataclass
class TrainerConfig:
    """
    Training options.

    :param target_vocab_size: Stop once the vocabulary (base bytes, special
        tokens and merges) reaches this size.
    :param min_frequency: Stop when the most frequent pair occurs fewer times.
    :param special_tokens: Reserved markers, registered before training and
        never merged. ``str`` entries are stored as UTF-8.
    :param pattern: Sequence boundary policy. ``None`` treats each document
        as one sequence; otherwise a built-in pattern name (see
        :class:`~pairtok.pattern.TokenPattern`) or a custom regex whose
        matches become separate sequences.
    :param num_workers: Thread count for the initial sharded pair count;
        ``None`` counts serially.
    :param strict: Raise :class:`TrainingStalledError` instead of warning when
        the corpus runs out of pairs before the target size.
    :param verbose: Log each learned merge.
    """

    target_vocab_size: int
    min_frequency: int = 1
    special_tokens: Sequence[str | bytes] = ()
    pattern: str | None = None
    num_workers: int | None = None
    strict: bool = False
    verbose: bool = False
    _specials: tuple[TokenBytes, ...] = field(init=False, repr=False, default=())

    def __post_init__(self) -> None:
        specials = tuple(
            seq.encode("utf-8") if isinstance(seq, str) else bytes(seq)
            for seq in self.special_tokens
        )
        if any(not seq for seq in specials):
            raise InvalidConfigurationError(
                "special tokens must not be empty", name="special_tokens", value=specials
            )
        if len(set(specials)) != len(specials):
            raise InvalidConfigurationError(
                "duplicate special tokens", name="special_tokens", value=specials
            )
        self._specials = specials

        if self.target_vocab_size < N_BASE_TOKENS + len(specials):
            raise InvalidConfigurationError(
                f"target vocab size must be at least {N_BASE_TOKENS + len(specials)}",
                name="target_vocab_size",
                value=self.target_vocab_size,
            )
        if self.min_frequency < 1:
            raise InvalidConfigurationError(
                "min frequency must be positive",
                name="min_frequency",
                value=self.min_frequency,
            )

    @property
    def specials(self) -> tuple[TokenBytes, ...]:
        """Special tokens as byte strings, in configuration order."""
        return self._specials

    @property
    def n_merges(self) -> int:
        """Upper bound on the number of merges this configuration can learn."""
        return self.target_vocab_size - N_BASE_TOKENS - len(self._specials)


@dataclass
class TrainingResult:
    """Results from one BPE training run."""

    vocab: Vocabulary
    merges: MergeTable
    stop_reason: StopReason | None
    n_merges_completed: int

    @property
    def stalled(self) -> bool:
        """``True`` when the corpus ran out of pairs before the target size."""
        return self.stop_reason in (
            StopReason.EXHAUSTED,
            StopReason.BELOW_MIN_FREQUENCY,
        )


def _iter_documents(corpus: Document | Iterable[Document]) -> Iterable[TokenBytes]:
    if isinstance(corpus, (str, bytes)):
        corpus = [corpus]
    for doc in corpus:
        yield to_bytes(doc)


def collect_units(
    corpus: Document | Iterable[Document],
    splitter: Splitter,
    specials: Sequence[TokenBytes] = (),
) -> Counter[TokenBytes]:
    """
    Cut a corpus into training units and count identical units.

    Special token markers are removed so they never take part in a merge,
    and no unit spans across one.
    """
    units: Counter[TokenBytes] = Counter()
    for data in _iter_documents(corpus):
        for span, is_special in split_on_special(data, specials):
            if is_special:
                continue
            units.update(splitter.split(span))
    return units


class MergeLearner:
    """
    Learns merge rules by repeatedly merging the most frequent pair.

    The learner walks ``COLLECTING -> SELECT_PAIR -> APPLY_MERGE -> ...`` until
    ``STOPPED``. Each :meth:`step` learns at most one rule so callers can
    drive or interrupt training; :meth:`cancel` stops it early and the rules
    learned so far stay valid.

    Example:
       >>> config = TrainerConfig(target_vocab_size=258, pattern="whitespace")
       >>> learner = MergeLearner("low low lower", config)
       >>> result = learner.run()
       >>> [rule.pair for rule in result.merges]
       [(108, 111), (256, 119)]
    """

    def __init__(
        self, corpus: Document | Iterable[Document], config: TrainerConfig
    ) -> None:
        self.config = config
        self.state = LearnerState.COLLECTING

        self.vocab = Vocabulary()
        for seq in config.specials:
            self.vocab.register_special(seq)

        splitter = Splitter(config.pattern)
        # merge rules remember the boundary policy for encoding
        self.merges = MergeTable(pattern=splitter.pattern)

        units = collect_units(corpus, splitter, config.specials)
        self._counter = PairFrequencyCounter(
            [list(unit) for unit in units],
            weights=list(units.values()),
            num_workers=config.num_workers,
        )
        log.debug(
            f"collected {len(units)} distinct units ({units.total()} total) for training"
        )

        self._cancelled = False
        self._stop_reason: StopReason | None = None
        self._progress = MergeProgress(log, config.n_merges)
        self.state = LearnerState.SELECT_PAIR

    @property
    def counter(self) -> PairFrequencyCounter:
        return self._counter

    def cancel(self) -> None:
        """Stop before the next merge; learned rules are kept."""
        self._cancelled = True

    def step(self) -> MergeRule | None:
        """
        Learn one merge rule.

        :return: The new rule, or ``None`` once the learner has stopped.
        :raises TrainingStalledError: In strict mode, if the corpus runs out
            of pairs before the target size.
        """
        if self.state is LearnerState.STOPPED:
            return None
        if self._cancelled:
            self._stop(StopReason.CANCELLED)
            return None
        if len(self.vocab) >= self.config.target_vocab_size:
            self._stop(StopReason.TARGET_REACHED)
            return None

        while True:
            best = self._counter.most_common()
            if best is None:
                self._stop(StopReason.EXHAUSTED)
                return None
            pair, count = best
            if count < self.config.min_frequency:
                self._stop(StopReason.BELOW_MIN_FREQUENCY)
                return None

            merged = self.vocab.id_to_bytes(pair[0]) + self.vocab.id_to_bytes(pair[1])
            try:
                owner = self.vocab.bytes_to_id(merged)
            except NotInVocabularyError:
                break
            # another pair already produced this surface form
            log.debug(f"skipping pair {pair}: bytes {merged!r} already token {owner}")
            self._counter.exclude(pair)

        self.state = LearnerState.APPLY_MERGE
        new_tok = self.vocab.register(merged)
        rule = self.merges.add(pair, new_tok)
        self._counter.apply_merge(pair, new_tok)

        if self.config.verbose:
            log.info(
                f"merge {len(self.merges)}/{self.config.n_merges}: "
                f"{pair} -> {new_tok} {render_merge(self.vocab, rule)} had {count} occurrences"
            )
        else:
            self._progress.update(len(self.merges))

        self.state = LearnerState.SELECT_PAIR
        return rule

    @measure_time
    def run(self) -> TrainingResult:
        """Learn merges until a stopping condition is met."""
        while self.step() is not None:
            pass
        return self.result()

    def result(self) -> TrainingResult:
        """Return the vocabulary and rules learned so far."""
        return TrainingResult(
            vocab=self.vocab,
            merges=self.merges,
            stop_reason=self._stop_reason,
            n_merges_completed=len(self.merges),
        )

    def _stop(self, reason: StopReason) -> None:
        self.state = LearnerState.STOPPED
        self._stop_reason = reason
        self.vocab.freeze()

        log.info(
            f"training stopped ({reason.value}): {len(self.merges)} merges, "
            f"{len(self.vocab)} total tokens"
        )
        if reason in (StopReason.EXHAUSTED, StopReason.BELOW_MIN_FREQUENCY):
            log.warning(
                f"no more byte pairs to merge after {len(self.merges)} merges "
                f"(requested {self.config.n_merges}) stopping early"
            )
            if self.config.strict:
                raise TrainingStalledError(
                    "training stalled before reaching target vocab size",
                    vocab_size=len(self.vocab),
                    target_vocab_size=self.config.target_vocab_size,
                )


def train(
    corpus: Document | Iterable[Document], config: TrainerConfig
) -> tuple[Vocabulary, MergeTable]:
    """
    Train merge rules on ``corpus``.

    :param corpus: A document or an iterable of documents (str or bytes).
    :param config: Training options.
    :return: The frozen vocabulary and the ranked merge rules.
    """
    result = MergeLearner(corpus, config).run()
    return result.vocab, result.merges


__all__ = [
    "LearnerState",
    "StopReason",
    "TrainerConfig",
    "TrainingResult",
    "MergeLearner",
    "collect_units",
    "train",
]

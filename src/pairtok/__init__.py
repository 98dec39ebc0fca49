"""PairTok: byte-level BPE training, encoding, decoding and windowed datasets."""

from ._models.base import Tokenizer
from ._models.basic import BasicTokenizer
from ._models.regex import RegexTokenizer
from ._progress import disable_progress, enable_progress
from .counter import PairFrequencyCounter, count_all
from .dataset import Window, WindowedDataset, build_windows
from .decoder import decode, decode_text
from .encoder import Encoder, encode
from .errors import (
    InsufficientTokensError,
    InvalidConfigurationError,
    ModelLoadError,
    NotInVocabularyError,
    PairTokError,
    PatternError,
    SpecialTokenError,
    StrategyError,
    TrainingError,
    TrainingStalledError,
    UnencodableInputError,
    UnknownTokenError,
    VocabularyError,
)
from .factory import from_pretrained, get_tokenizer
from .merges import MergeRule, MergeTable
from .parallel import ParallelMode, list_parallel_modes
from .pattern import TokenPattern, get_pattern, list_patterns
from .serialization import load_model, save_model
from .strategy import (
    AllowAllStrategy,
    AllowCustomStrategy,
    AllowNoneRaiseStrategy,
    AllowNoneStrategy,
    SpecialTokenStrategy,
    get_strategy,
    list_strategies,
)
from .trainer import (
    MergeLearner,
    StopReason,
    TrainerConfig,
    TrainingResult,
    train,
)
from .vocab import Vocabulary

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pairtok")
except PackageNotFoundError:
    __version__ = "dev"

__all__ = [
    # core pipeline
    "train",
    "encode",
    "decode",
    "decode_text",
    "build_windows",
    "save_model",
    "load_model",
    # data model
    "Vocabulary",
    "MergeRule",
    "MergeTable",
    "Window",
    "WindowedDataset",
    # training
    "TrainerConfig",
    "TrainingResult",
    "StopReason",
    "MergeLearner",
    "PairFrequencyCounter",
    "count_all",
    # encoding
    "Encoder",
    "ParallelMode",
    "list_parallel_modes",
    # tokenizers
    "Tokenizer",
    "BasicTokenizer",
    "RegexTokenizer",
    "get_tokenizer",
    "from_pretrained",
    "TokenPattern",
    "get_pattern",
    "list_patterns",
    # special tokens
    "SpecialTokenStrategy",
    "AllowAllStrategy",
    "AllowNoneStrategy",
    "AllowNoneRaiseStrategy",
    "AllowCustomStrategy",
    "get_strategy",
    "list_strategies",
    # progress
    "enable_progress",
    "disable_progress",
    # errors
    "PairTokError",
    "VocabularyError",
    "UnknownTokenError",
    "NotInVocabularyError",
    "InvalidConfigurationError",
    "InsufficientTokensError",
    "TrainingError",
    "TrainingStalledError",
    "SpecialTokenError",
    "UnencodableInputError",
    "ModelLoadError",
    "PatternError",
    "StrategyError",
]

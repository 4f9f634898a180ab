# Version: v1.0
"""
semsplit.config — Service defaults, logging, and the validated ChunkerConfig.

Everything the pipeline needs is carried by one immutable ChunkerConfig built
once at process start (load_config()) and passed by reference; no module in
the pipeline reads the environment on its own.
"""

import logging
import math
import os
from dataclasses import dataclass, field, fields
from typing import Mapping, Optional

from semsplit.exceptions import ConfigurationError

# ---------------------------------------------------------------------------
# Service defaults
# ---------------------------------------------------------------------------
DEFAULT_OLLAMA_URL = os.environ.get("OLLAMA_URL", "http://localhost:11434")
DEFAULT_EMBED_MODEL = os.environ.get("EMBED_MODEL", "nomic-embed-text")
DEFAULT_LLM_MODEL = os.environ.get("LLM_MODEL", "llama3.2:3b")
DEFAULT_LLM_TIMEOUT = float(os.environ.get("LLM_TIMEOUT", "300.0"))
DEFAULT_CONTEXT_WINDOW = int(os.environ.get("CONTEXT_WINDOW", "8192"))

# ---------------------------------------------------------------------------
# Validation constants
# ---------------------------------------------------------------------------
WEIGHT_SUM_TOLERANCE = 0.01
MAX_TEMPERATURE = 2.0

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("semsplit")


# ---------------------------------------------------------------------------
# Configuration records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BoundaryWeights:
    """Relative weight of each boundary signal in the fused score."""

    topic: float = 0.25
    discourse: float = 0.25
    structure: float = 0.20
    embedding: float = 0.30

    def as_dict(self) -> dict[str, float]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def total(self) -> float:
        return sum(self.as_dict().values())


@dataclass(frozen=True)
class AdaptiveThresholdConfig:
    """Pass-1 candidate selection bounds."""

    enabled: bool = True
    min_threshold: float = 0.3
    max_threshold: float = 0.8
    candidate_limit: int = 500


@dataclass(frozen=True)
class AnalyzerSettings:
    """Sampling settings for one oracle-backed analyzer."""

    temperature: float = 0.1
    max_tokens: int = 300
    model: Optional[str] = None


@dataclass(frozen=True)
class ChunkerConfig:
    """Immutable configuration for one SemanticChunker.

    Sizes are in characters. Call validate() (or use load_config()) before
    handing the config to the pipeline.
    """

    min_size: int = 300
    max_size: int = 1500
    target_size: int = 1000
    atomic_max_size: int = 2000
    overlap_size: int = 0
    boundary_threshold: float = 0.6
    weights: BoundaryWeights = field(default_factory=BoundaryWeights)
    adaptive_threshold: AdaptiveThresholdConfig = field(
        default_factory=AdaptiveThresholdConfig
    )
    topic: AnalyzerSettings = field(
        default_factory=lambda: AnalyzerSettings(temperature=0.1, max_tokens=300)
    )
    discourse: AnalyzerSettings = field(
        default_factory=lambda: AnalyzerSettings(temperature=0.1, max_tokens=400)
    )
    structure: AnalyzerSettings = field(
        default_factory=lambda: AnalyzerSettings(temperature=0.1, max_tokens=500)
    )
    tags: AnalyzerSettings = field(
        default_factory=lambda: AnalyzerSettings(temperature=0.3, max_tokens=500)
    )
    max_retries: int = 3
    max_concurrency: int = 4
    tag_extraction_enabled: bool = True
    progress_interval: int = 10

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ChunkerConfig":
        """Build a config from SEMANTIC_* / OLLAMA_* environment variables.

        Args:
            environ: Mapping to read from; defaults to os.environ.

        Returns:
            An unvalidated ChunkerConfig; unset variables keep their defaults.

        Raises:
            ConfigurationError: If a variable holds a non-numeric value where
                a number is expected.
        """
        env = _EnvReader(os.environ if environ is None else environ)
        defaults = cls()

        weights = BoundaryWeights(
            topic=env.get_float("SEMANTIC_WEIGHT_TOPIC", defaults.weights.topic),
            discourse=env.get_float("SEMANTIC_WEIGHT_DISCOURSE", defaults.weights.discourse),
            structure=env.get_float("SEMANTIC_WEIGHT_STRUCTURE", defaults.weights.structure),
            embedding=env.get_float("SEMANTIC_WEIGHT_EMBEDDING", defaults.weights.embedding),
        )
        adaptive = AdaptiveThresholdConfig(
            enabled=env.get_bool("SEMANTIC_ADAPTIVE_THRESHOLD_ENABLED", defaults.adaptive_threshold.enabled),
            min_threshold=env.get_float("SEMANTIC_ADAPTIVE_THRESHOLD_MIN", defaults.adaptive_threshold.min_threshold),
            max_threshold=env.get_float("SEMANTIC_ADAPTIVE_THRESHOLD_MAX", defaults.adaptive_threshold.max_threshold),
            candidate_limit=env.get_int("SEMANTIC_ADAPTIVE_CANDIDATE_LIMIT", defaults.adaptive_threshold.candidate_limit),
        )

        def analyzer(name: str, base: AnalyzerSettings) -> AnalyzerSettings:
            key = name.upper()
            return AnalyzerSettings(
                temperature=env.get_float(f"OLLAMA_{key}_TEMPERATURE", base.temperature),
                max_tokens=env.get_int(f"OLLAMA_{key}_NUM_PREDICT", base.max_tokens),
                model=env.get_str(f"OLLAMA_{key}_MODEL", base.model),
            )

        return cls(
            min_size=env.get_int("SEMANTIC_CHUNK_MIN_SIZE", defaults.min_size),
            max_size=env.get_int("SEMANTIC_CHUNK_MAX_SIZE", defaults.max_size),
            target_size=env.get_int("SEMANTIC_CHUNK_TARGET_SIZE", defaults.target_size),
            atomic_max_size=env.get_int("SEMANTIC_CHUNK_ATOMIC_MAX_SIZE", defaults.atomic_max_size),
            overlap_size=env.get_int("SEMANTIC_CHUNK_OVERLAP_SIZE", defaults.overlap_size),
            boundary_threshold=env.get_float("SEMANTIC_BOUNDARY_THRESHOLD", defaults.boundary_threshold),
            weights=weights,
            adaptive_threshold=adaptive,
            topic=analyzer("topic", defaults.topic),
            discourse=analyzer("discourse", defaults.discourse),
            structure=analyzer("structure", defaults.structure),
            tags=analyzer("tag", defaults.tags),
            max_retries=env.get_int("SEMANTIC_MAX_RETRIES", defaults.max_retries),
            max_concurrency=env.get_int("SEMANTIC_MAX_CONCURRENCY", defaults.max_concurrency),
            tag_extraction_enabled=env.get_bool("SEMANTIC_TAG_EXTRACTION_ENABLED", defaults.tag_extraction_enabled),
            progress_interval=env.get_int("SEMANTIC_PROGRESS_INTERVAL", defaults.progress_interval),
        )

    def validate(self) -> "ChunkerConfig":
        """Check every invariant, failing on the first violation.

        Returns:
            self, so calls can be chained.

        Raises:
            ConfigurationError: Naming the offending field.
        """
        self._validate_weights()
        self._validate_sizes()
        self._validate_thresholds()
        self._validate_runtime()
        for name in ("topic", "discourse", "structure", "tags"):
            _validate_analyzer(name, getattr(self, name))
        return self

    def _validate_weights(self) -> None:
        for name, value in self.weights.as_dict().items():
            if not math.isfinite(value) or value < 0:
                raise ConfigurationError(
                    f"weights.{name}", f"must be a non-negative number, got {value}"
                )
        total = self.weights.total()
        if abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
            raise ConfigurationError(
                "weights",
                f"must sum to 1.0 (±{WEIGHT_SUM_TOLERANCE}), got {total:.3f}",
            )

    def _validate_sizes(self) -> None:
        for name in ("min_size", "max_size", "target_size", "atomic_max_size"):
            value = getattr(self, name)
            if value <= 0:
                raise ConfigurationError(name, f"must be positive, got {value}")
        if self.min_size >= self.target_size:
            raise ConfigurationError(
                "min_size",
                f"({self.min_size}) must be < target_size ({self.target_size})",
            )
        if self.target_size >= self.max_size:
            raise ConfigurationError(
                "target_size",
                f"({self.target_size}) must be < max_size ({self.max_size})",
            )
        if self.atomic_max_size < self.max_size:
            raise ConfigurationError(
                "atomic_max_size",
                f"({self.atomic_max_size}) must be >= max_size ({self.max_size})",
            )
        if self.overlap_size < 0 or self.overlap_size >= self.min_size:
            raise ConfigurationError(
                "overlap_size",
                f"must be in [0, min_size={self.min_size}), got {self.overlap_size}",
            )

    def _validate_thresholds(self) -> None:
        adaptive = self.adaptive_threshold
        _require_unit_interval("boundary_threshold", self.boundary_threshold)
        _require_unit_interval("adaptive_threshold.min_threshold", adaptive.min_threshold)
        _require_unit_interval("adaptive_threshold.max_threshold", adaptive.max_threshold)
        if adaptive.min_threshold > adaptive.max_threshold:
            raise ConfigurationError(
                "adaptive_threshold.min_threshold",
                f"({adaptive.min_threshold}) must be <= max_threshold "
                f"({adaptive.max_threshold})",
            )
        if adaptive.candidate_limit <= 0:
            raise ConfigurationError(
                "adaptive_threshold.candidate_limit",
                f"must be positive, got {adaptive.candidate_limit}",
            )

    def _validate_runtime(self) -> None:
        for name in ("max_retries", "max_concurrency", "progress_interval"):
            value = getattr(self, name)
            if value < 1:
                raise ConfigurationError(name, f"must be >= 1, got {value}")


def _require_unit_interval(name: str, value: float) -> None:
    if not (0.0 <= value <= 1.0):
        raise ConfigurationError(name, f"must be between 0.0 and 1.0, got {value}")


def _validate_analyzer(name: str, settings: AnalyzerSettings) -> None:
    if not (0.0 <= settings.temperature <= MAX_TEMPERATURE):
        raise ConfigurationError(
            f"{name}.temperature",
            f"must be between 0.0 and {MAX_TEMPERATURE}, got {settings.temperature}",
        )
    if settings.max_tokens <= 0:
        raise ConfigurationError(
            f"{name}.max_tokens", f"must be positive, got {settings.max_tokens}"
        )


class _EnvReader:
    """Typed accessors over an environment mapping."""

    def __init__(self, environ: Mapping[str, str]):
        self._environ = environ

    def get_str(self, key: str, default: Optional[str]) -> Optional[str]:
        value = self._environ.get(key)
        return value if value else default

    def get_int(self, key: str, default: int) -> int:
        raw = self._environ.get(key)
        if raw is None or raw.strip() == "":
            return default
        try:
            return int(raw)
        except ValueError:
            raise ConfigurationError(key, f"expected an integer, got {raw!r}") from None

    def get_float(self, key: str, default: float) -> float:
        raw = self._environ.get(key)
        if raw is None or raw.strip() == "":
            return default
        try:
            return float(raw)
        except ValueError:
            raise ConfigurationError(key, f"expected a number, got {raw!r}") from None

    def get_bool(self, key: str, default: bool) -> bool:
        raw = self._environ.get(key)
        if raw is None or raw.strip() == "":
            return default
        return raw.strip().lower() != "false"


def load_config(environ: Optional[Mapping[str, str]] = None) -> ChunkerConfig:
    """Read and validate the chunker configuration once.

    Args:
        environ: Optional mapping to read instead of os.environ.

    Returns:
        A validated ChunkerConfig.

    Raises:
        ConfigurationError: On the first invalid field.
    """
    config = ChunkerConfig.from_env(environ).validate()
    logger.info(
        f"Chunker config loaded: sizes={config.min_size}/{config.target_size}/"
        f"{config.max_size} (atomic {config.atomic_max_size}), "
        f"boundary_threshold={config.boundary_threshold}, "
        f"adaptive={config.adaptive_threshold.enabled}"
    )
    return config

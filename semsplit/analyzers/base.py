# Version: v1.0
"""
semsplit.analyzers.base — Shared analyzer contract and the analyzer registry.

Each boundary analyzer asks the oracle one schema-bound question about a pair
of adjacent text segments and maps the reply to a boundary strength in [0, 1].
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, TypeVar

from semsplit.config import AnalyzerSettings, logger
from semsplit.exceptions import AnalysisFailure, GenerationFailure
from semsplit.generator import SchemaBoundGenerator


@dataclass(frozen=True)
class AnalyzerResult:
    """Outcome of one analyzer on one boundary."""

    name: str
    strength: float
    confidence: float
    raw: Mapping[str, Any] = field(default_factory=dict)
    keep_atomic: bool = False


def pair_prompt(task: str, left: str, right: str, questions: str, legend: str) -> str:
    """Lay out the two-segment prompt every boundary analyzer uses."""
    return (
        f"Analyze the {task} of these two text segments:\n\n"
        f"SEGMENT 1:\n{left}\n\n"
        f"SEGMENT 2:\n{right}\n\n"
        f"Determine:\n{questions}\n\n"
        f"{legend}"
    )


def legend(title: str, descriptions: Mapping[str, str]) -> str:
    lines = [f"{title}:"]
    lines.extend(f"- {key}: {text}" for key, text in descriptions.items())
    return "\n".join(lines)


class BoundaryAnalyzer:
    """Base class for oracle-backed boundary analyzers.

    Subclasses set ``name`` and ``schema`` and implement ``build_prompt`` and
    ``strength``. ``gated`` analyzers only run on pass-1 candidates when
    adaptive thresholding is on.
    """

    name: str = ""
    schema: Mapping[str, Any] = {}
    gated: bool = True

    def __init__(
        self,
        generator: SchemaBoundGenerator,
        settings: Optional[AnalyzerSettings] = None,
    ):
        self.generator = generator
        self.settings = settings or AnalyzerSettings()

    def build_prompt(self, left: str, right: str) -> str:
        raise NotImplementedError

    def strength(self, raw: Mapping[str, Any]) -> float:
        raise NotImplementedError

    def keep_atomic(self, raw: Mapping[str, Any]) -> bool:
        return False

    async def analyze(self, left: str, right: str) -> AnalyzerResult:
        """Judge the boundary between *left* and *right*.

        Raises:
            AnalysisFailure: When the generator exhausts its retries.
        """
        prompt = self.build_prompt(left, right)
        try:
            raw = await self.generator.generate(
                prompt,
                schema=self.schema,
                temperature=self.settings.temperature,
                max_tokens=self.settings.max_tokens,
            )
        except GenerationFailure as e:
            logger.error(f"{self.name} analyzer failed after {e.attempts} attempts: {e}")
            raise AnalysisFailure(self.name, e.attempts, e.last_error or e) from e

        return AnalyzerResult(
            name=self.name,
            strength=float(self.strength(raw)),
            confidence=float(raw.get("confidence", 1.0)),
            raw=raw,
            keep_atomic=self.keep_atomic(raw),
        )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------
_REGISTRY: dict[str, type[BoundaryAnalyzer]] = {}

A = TypeVar("A", bound=type[BoundaryAnalyzer])


def register_analyzer(cls: A) -> A:
    """Class decorator adding an analyzer to the registry under ``cls.name``."""
    if not cls.name:
        raise ValueError(f"{cls.__name__} must define a non-empty name")
    _REGISTRY[cls.name] = cls
    return cls


def get_analyzer(name: str) -> type[BoundaryAnalyzer]:
    try:
        return _REGISTRY[name]
    except KeyError:
        raise KeyError(
            f"Unknown analyzer '{name}'. Registered: {sorted(_REGISTRY)}"
        ) from None


def registered_analyzers() -> dict[str, type[BoundaryAnalyzer]]:
    return dict(_REGISTRY)


def build_analyzers(
    names: list[str],
    settings_for: Callable[[str], AnalyzerSettings],
    generator_for: Callable[[AnalyzerSettings], SchemaBoundGenerator],
) -> list[BoundaryAnalyzer]:
    """Instantiate the named analyzers with their own settings and generator."""
    analyzers = []
    for name in names:
        settings = settings_for(name)
        analyzers.append(get_analyzer(name)(generator_for(settings), settings))
    return analyzers

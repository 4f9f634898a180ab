# Version: v1.0
"""
semsplit.exceptions — Error taxonomy for the chunking pipeline.

InputError subclasses are fatal and never retried. TransientOracleError
subclasses describe one failed oracle attempt and are retried inside
SchemaBoundGenerator; exhaustion surfaces as GenerationFailure, which the
analyzers re-raise as AnalysisFailure.
"""

from typing import Optional


class SemsplitError(Exception):
    """Base exception for all semsplit errors."""


# ---------------------------------------------------------------------------
# Input / configuration errors: fatal, never retried
# ---------------------------------------------------------------------------


class InputError(SemsplitError, ValueError):
    """Malformed input or configuration."""


class InvalidInput(InputError):
    """Invalid arguments to a pure computation (vectors, distances, text)."""


class ConfigurationError(InputError):
    """A configuration field is missing, malformed or out of range."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"{field}: {message}")


# ---------------------------------------------------------------------------
# Oracle errors: one failed attempt, retried by SchemaBoundGenerator
# ---------------------------------------------------------------------------


class TransientOracleError(SemsplitError):
    """A single generate() attempt failed or produced unusable output."""


class OracleCallError(TransientOracleError):
    """The text-generation capability itself raised."""


class JSONExtractionError(TransientOracleError):
    """No JSON object could be located in the oracle response."""


class JSONParseError(TransientOracleError):
    """The extracted JSON could not be parsed, even after repair."""


class SchemaViolation(TransientOracleError):
    """Parsed JSON does not satisfy the requested schema."""


# ---------------------------------------------------------------------------
# Escalated failures: abort the run
# ---------------------------------------------------------------------------


class GenerationFailure(SemsplitError):
    """SchemaBoundGenerator exhausted its attempts.

    Attributes:
        attempts: Number of attempts made.
        last_error: The error raised by the final attempt.
    """

    def __init__(self, attempts: int, last_error: Optional[BaseException]):
        self.attempts = attempts
        self.last_error = last_error
        detail = str(last_error) if last_error is not None else "unknown error"
        super().__init__(f"Generation failed after {attempts} attempts: {detail}")


class AnalysisFailure(SemsplitError):
    """A boundary analyzer could not obtain a valid judgment."""

    def __init__(self, analyzer: str, attempts: int, cause: BaseException):
        self.analyzer = analyzer
        self.attempts = attempts
        super().__init__(
            f"{analyzer} analysis failed after {attempts} attempts: {cause}"
        )


class EmbeddingFailure(SemsplitError):
    """The embedding capability failed for a span."""


class ChunkingCancelled(SemsplitError):
    """The caller requested cancellation of an in-progress run."""

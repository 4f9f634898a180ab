# Version: v1.0
"""
semsplit.models — Immutable records shared across the pipeline, plus the
consumed oracle/embedding capability protocols.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, Sequence, runtime_checkable


# ---------------------------------------------------------------------------
# Consumed capabilities
# ---------------------------------------------------------------------------


@runtime_checkable
class TextCompletion(Protocol):
    """Text-generation oracle. Output is untrusted."""

    async def generate(self, prompt: str, max_tokens: int, temperature: float) -> str:
        ...


@runtime_checkable
class Embedding(Protocol):
    """Maps text to a fixed-dimension vector."""

    async def embed(self, text: str) -> Sequence[float]:
        ...


# ---------------------------------------------------------------------------
# Spans and boundaries
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TextSpan:
    """A contiguous, trimmed slice of the source document."""

    content: str
    start_offset: int

    @property
    def end_offset(self) -> int:
        return self.start_offset + len(self.content)

    def __len__(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class BoundaryCandidate:
    """A pass-1 candidate boundary between spans[index] and spans[index + 1]."""

    index: int
    left_span: TextSpan
    right_span: TextSpan
    embedding_distance: float


@dataclass(frozen=True)
class BoundarySignal:
    name: str
    strength: float
    confidence: float = 1.0


@dataclass(frozen=True)
class BoundaryScore:
    signals: tuple[BoundarySignal, ...]
    weighted_score: float


@dataclass(frozen=True)
class ScoredSpan:
    """A span plus the score of the boundary that follows it."""

    span: TextSpan
    boundary_score: float
    is_atomic: bool = False


# ---------------------------------------------------------------------------
# Chunks
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChunkRelationship:
    prev_id: Optional[str]
    next_id: Optional[str]
    position: str


@dataclass(frozen=True)
class ChunkMetadata:
    coherence_score: float
    tags: tuple[str, ...] = ()
    topics: tuple[str, ...] = ()
    entities: tuple[str, ...] = ()
    key_phrases: tuple[str, ...] = ()
    relationship: Optional[ChunkRelationship] = None
    strategy: str = "semantic"
    overlap: int = 0


@dataclass(frozen=True)
class Chunk:
    """One output chunk; content is an exact slice of the source text."""

    chunk_id: str
    content: str
    start_offset: int
    end_offset: int
    metadata: ChunkMetadata = field(default_factory=lambda: ChunkMetadata(0.0))

    def __len__(self) -> int:
        return len(self.content)

    def to_dict(self) -> dict[str, Any]:
        """Flatten the chunk into a JSON-serialisable payload for storage.

        Returns:
            Dict with content, offsets and snake_case metadata.
        """
        meta = self.metadata
        rel = meta.relationship
        return {
            "chunk_id": self.chunk_id,
            "content": self.content,
            "start_offset": self.start_offset,
            "end_offset": self.end_offset,
            "metadata": {
                "strategy": meta.strategy,
                "coherence_score": meta.coherence_score,
                "tags": list(meta.tags),
                "topics": list(meta.topics),
                "entities": list(meta.entities),
                "key_phrases": list(meta.key_phrases),
                "overlap": meta.overlap,
                "relationship": {
                    "prev_id": rel.prev_id if rel else None,
                    "next_id": rel.next_id if rel else None,
                    "position": rel.position if rel else None,
                },
            },
        }

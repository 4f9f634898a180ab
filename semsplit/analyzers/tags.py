# Version: v1.0
"""
semsplit.analyzers.tags — Per-chunk metadata extraction (entities, topics,
key phrases, tags).
"""

from dataclasses import dataclass
from typing import Any, Optional

from semsplit.config import AnalyzerSettings
from semsplit.generator import SchemaBoundGenerator

_STRING_ARRAY = {"type": "array", "items": {"type": "string"}}

TAG_SCHEMA = {
    "type": "object",
    "required": ["entities", "topics", "keyPhrases", "tags", "confidence"],
    "properties": {
        "entities": _STRING_ARRAY,
        "topics": _STRING_ARRAY,
        "keyPhrases": _STRING_ARRAY,
        "tags": _STRING_ARRAY,
        "confidence": {"type": "number", "minimum": 0, "maximum": 1},
    },
}

TAG_PROMPT = (
    "Extract semantic metadata from the following text:\n\n"
    "TEXT:\n{text}\n\n"
    "Extract:\n"
    "1. entities: Named entities (people, places, organizations, projects)\n"
    "2. topics: Main topics or themes discussed\n"
    "3. keyPhrases: Important phrases or terms (2-4 words each)\n"
    "4. tags: General categorization tags (single words)\n"
    "5. confidence: Your confidence in these extractions (0-1)\n\n"
    "Guidelines:\n"
    "- Extract 0-5 items for each category (only include relevant ones)\n"
    '- Entities should be proper nouns (e.g., "NASA", "Project Odyssey")\n'
    '- Topics should be themes or subjects (e.g., "space exploration", "technology")\n'
    '- Key phrases should be important multi-word terms (e.g., "Mars colonization")\n'
    '- Tags should be single-word categories (e.g., "space", "science")\n'
    "- Use lowercase for topics, keyPhrases, and tags\n"
    "- Keep original capitalization for entities"
)


@dataclass(frozen=True)
class ExtractedTags:
    entities: tuple[str, ...] = ()
    topics: tuple[str, ...] = ()
    key_phrases: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    confidence: float = 0.0


def _clean(values: Any) -> tuple[str, ...]:
    """Keep non-empty strings, stripped, first occurrence wins."""
    seen: dict[str, None] = {}
    for value in values or ():
        if isinstance(value, str) and value.strip():
            seen.setdefault(value.strip(), None)
    return tuple(seen)


class TagExtractor:
    """Asks the oracle for descriptive metadata about one chunk."""

    def __init__(
        self,
        generator: SchemaBoundGenerator,
        settings: Optional[AnalyzerSettings] = None,
    ):
        self.generator = generator
        self.settings = settings or AnalyzerSettings(temperature=0.3, max_tokens=500)

    async def extract(self, text: str) -> ExtractedTags:
        """Extract metadata for *text*.

        Raises:
            GenerationFailure: When the generator exhausts its retries; the
                chunker degrades that chunk to empty metadata.
        """
        raw = await self.generator.generate(
            TAG_PROMPT.format(text=text),
            schema=TAG_SCHEMA,
            temperature=self.settings.temperature,
            max_tokens=self.settings.max_tokens,
        )
        return ExtractedTags(
            entities=_clean(raw["entities"]),
            topics=_clean(raw["topics"]),
            key_phrases=_clean(raw["keyPhrases"]),
            tags=_clean(raw["tags"]),
            confidence=float(raw["confidence"]),
        )

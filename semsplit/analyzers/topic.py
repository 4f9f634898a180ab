# Version: v1.0
"""
semsplit.analyzers.topic — Topic-shift detection between adjacent segments.
"""

from typing import Any, Mapping

from semsplit.analyzers.base import BoundaryAnalyzer, legend, pair_prompt, register_analyzer

RELATIONSHIPS = {
    "continuation": "Direct continuation of the same thought",
    "elaboration": "Expanding on the same topic with more detail",
    "related": "Related topics but distinct concepts",
    "contrast": "Contrasting or comparing different aspects",
    "new_topic": "Completely different topic",
}

RELATIONSHIP_STRENGTHS = {
    "continuation": 0.0,
    "elaboration": 0.2,
    "related": 0.5,
    "contrast": 0.7,
    "new_topic": 1.0,
}

UNKNOWN_STRENGTH = 0.5
SAME_TOPIC_FACTOR = 0.5


@register_analyzer
class TopicAnalyzer(BoundaryAnalyzer):
    name = "topic"
    schema = {
        "type": "object",
        "required": ["sameTopic", "confidence", "relationship", "reason"],
        "properties": {
            "sameTopic": {"type": "boolean"},
            "confidence": {"type": "number", "minimum": 0, "maximum": 1},
            "relationship": {"type": "string", "enum": list(RELATIONSHIPS)},
            "reason": {"type": "string"},
        },
    }

    def build_prompt(self, left: str, right: str) -> str:
        return pair_prompt(
            "topic relationship",
            left,
            right,
            "1. Do they discuss the same topic? (sameTopic: boolean)\n"
            "2. How confident are you? (confidence: 0-1)\n"
            "3. What is their relationship? (relationship: one of the enum values)\n"
            "4. Brief explanation (reason: string)",
            legend("Relationships", RELATIONSHIPS),
        )

    def strength(self, raw: Mapping[str, Any]) -> float:
        base = RELATIONSHIP_STRENGTHS.get(raw["relationship"], UNKNOWN_STRENGTH)
        factor = SAME_TOPIC_FACTOR if raw["sameTopic"] else 1.0
        return base * raw["confidence"] * factor

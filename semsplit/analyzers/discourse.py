# Version: v1.0
"""
semsplit.analyzers.discourse — Rhetorical relation between adjacent segments.

Strong relations (cause/effect, elaboration, example) keep segments together.
"""

from typing import Any, Mapping

from semsplit.analyzers.base import BoundaryAnalyzer, legend, pair_prompt, register_analyzer

RELATIONS = {
    "cause_effect": "One segment causes or results from the other",
    "elaboration": "Second segment expands on or clarifies the first",
    "temporal": "Segments describe events in sequence",
    "comparison": "Segments compare similar things",
    "contrast": "Segments contrast different things",
    "example": "Second segment provides an example of the first",
    "background": "Second segment provides context for the first",
    "none": "No clear discourse relationship",
}

RELATION_STRENGTHS = {
    "cause_effect": 0.2,
    "elaboration": 0.3,
    "example": 0.3,
    "temporal": 0.5,
    "comparison": 0.6,
    "contrast": 0.7,
    "background": 0.5,
    "none": 0.9,
}

UNKNOWN_STRENGTH = 0.5
STRONG_RELATION_STRENGTH = 0.1


@register_analyzer
class DiscourseAnalyzer(BoundaryAnalyzer):
    name = "discourse"
    schema = {
        "type": "object",
        "required": ["relation", "strongRelation", "confidence", "explanation"],
        "properties": {
            "relation": {"type": "string", "enum": list(RELATIONS)},
            "strongRelation": {"type": "boolean"},
            "confidence": {"type": "number", "minimum": 0, "maximum": 1},
            "explanation": {"type": "string"},
        },
    }

    def build_prompt(self, left: str, right: str) -> str:
        return pair_prompt(
            "discourse relationship",
            left,
            right,
            "1. What discourse relationship connects them? (relation: one of the enum values)\n"
            "2. Is it a strong relationship that should keep them together? (strongRelation: boolean)\n"
            "3. How confident are you? (confidence: 0-1)\n"
            "4. Brief explanation (explanation: string)",
            legend("Discourse Relations", RELATIONS)
            + "\n\nStrong relationships (cause_effect, elaboration, example) suggest "
            "keeping segments together.\n"
            "Weak or no relationships suggest a potential boundary.",
        )

    def strength(self, raw: Mapping[str, Any]) -> float:
        if raw["strongRelation"]:
            return STRONG_RELATION_STRENGTH * raw["confidence"]
        return RELATION_STRENGTHS.get(raw["relation"], UNKNOWN_STRENGTH) * raw["confidence"]

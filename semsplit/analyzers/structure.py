# Version: v1.0
"""
semsplit.analyzers.structure — Document-structure detection.

Besides a boundary strength, this analyzer decides whether two segments form
an atomic unit (table, Q&A pair, definition, code block) that must not be
split. It runs on every boundary, never just on candidates.
"""

from typing import Any, Mapping

from semsplit.analyzers.base import BoundaryAnalyzer, legend, pair_prompt, register_analyzer

STRUCTURE_TYPES = {
    "header": "Section header or title",
    "list": "Bulleted or numbered list",
    "table": "Tabular data or structured fields",
    "qa_pair": "Question and answer pair",
    "definition": "Term and its definition",
    "code_block": "Code snippet or technical syntax",
    "quote": "Quoted text or citation",
    "paragraph": "Regular paragraph text",
    "none": "No specific structure",
}

STRUCTURE_STRENGTHS = {
    "header": 0.9,
    "list": 0.4,
    "table": 0.2,
    "qa_pair": 0.2,
    "definition": 0.3,
    "code_block": 0.2,
    "quote": 0.5,
    "paragraph": 0.6,
    "none": 0.5,
}

UNKNOWN_STRENGTH = 0.5
ATOMIC_STRENGTH = 0.1


@register_analyzer
class StructureAnalyzer(BoundaryAnalyzer):
    name = "structure"
    gated = False
    schema = {
        "type": "object",
        "required": ["structureType", "shouldKeepAtomic", "confidence", "explanation"],
        "properties": {
            "structureType": {"type": "string", "enum": list(STRUCTURE_TYPES)},
            "shouldKeepAtomic": {"type": "boolean"},
            "confidence": {"type": "number", "minimum": 0, "maximum": 1},
            "explanation": {"type": "string"},
        },
    }

    def build_prompt(self, left: str, right: str) -> str:
        return pair_prompt(
            "document structure",
            left,
            right,
            "1. What type of structure do they form together? (structureType: one of the enum values)\n"
            "2. Should they be kept as an atomic unit (not split)? (shouldKeepAtomic: boolean)\n"
            "3. How confident are you? (confidence: 0-1)\n"
            "4. Brief explanation (explanation: string)",
            legend("Structure Types", STRUCTURE_TYPES)
            + "\n\nAtomic structures (tables, Q&A pairs, definitions, code blocks) "
            "should NOT be split.\n"
            "Headers indicate strong section boundaries.",
        )

    def keep_atomic(self, raw: Mapping[str, Any]) -> bool:
        return bool(raw["shouldKeepAtomic"])

    def strength(self, raw: Mapping[str, Any]) -> float:
        if raw["shouldKeepAtomic"]:
            return ATOMIC_STRENGTH * raw["confidence"]
        return STRUCTURE_STRENGTHS.get(raw["structureType"], UNKNOWN_STRENGTH) * raw["confidence"]

# Version: v1.0
"""
semsplit.analyzers — Oracle-backed boundary analyzers and tag extraction.

Importing this package registers the built-in analyzers (topic, discourse,
structure).
"""

from semsplit.analyzers.base import (
    AnalyzerResult,
    BoundaryAnalyzer,
    build_analyzers,
    get_analyzer,
    register_analyzer,
    registered_analyzers,
)
from semsplit.analyzers.discourse import DiscourseAnalyzer
from semsplit.analyzers.structure import StructureAnalyzer
from semsplit.analyzers.tags import ExtractedTags, TagExtractor
from semsplit.analyzers.topic import TopicAnalyzer

__all__ = [
    "AnalyzerResult",
    "BoundaryAnalyzer",
    "DiscourseAnalyzer",
    "ExtractedTags",
    "StructureAnalyzer",
    "TagExtractor",
    "TopicAnalyzer",
    "build_analyzers",
    "get_analyzer",
    "register_analyzer",
    "registered_analyzers",
]

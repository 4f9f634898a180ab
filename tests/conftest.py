# Version: v1.0
"""
tests/conftest.py — Shared stubs and fixtures for the semsplit test suite.

Provides scripted and prompt-aware fake oracles plus a keyword-driven fake
embedder so every test runs without an Ollama server.
"""

import json

import pytest

from semsplit.config import AdaptiveThresholdConfig, ChunkerConfig


# ---------------------------------------------------------------------------
# Fake TextCompletion implementations
# ---------------------------------------------------------------------------


class ScriptedCompletion:
    """Return queued responses in order; Exception instances are raised.

    The last response repeats once the script is exhausted.
    """

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    async def generate(self, prompt, max_tokens, temperature):
        self.calls.append(
            {"prompt": prompt, "max_tokens": max_tokens, "temperature": temperature}
        )
        index = min(len(self.calls) - 1, len(self.responses) - 1)
        response = self.responses[index]
        if isinstance(response, BaseException):
            raise response
        return response


TOPIC_REPLY = {
    "sameTopic": False,
    "confidence": 1.0,
    "relationship": "new_topic",
    "reason": "different subjects",
}
DISCOURSE_REPLY = {
    "relation": "none",
    "strongRelation": False,
    "confidence": 1.0,
    "explanation": "unrelated",
}
STRUCTURE_REPLY = {
    "structureType": "paragraph",
    "shouldKeepAtomic": False,
    "confidence": 1.0,
    "explanation": "plain paragraphs",
}
TAG_REPLY = {
    "entities": ["NASA"],
    "topics": ["space exploration"],
    "keyPhrases": ["mars colonization"],
    "tags": ["space"],
    "confidence": 0.9,
}


class PromptAwareCompletion:
    """Answer each analyzer with a canned JSON reply chosen from the prompt.

    Args:
        topic / discourse / structure / tags: Reply dicts, or a callable
            taking the prompt and returning a dict, or an Exception to raise.
    """

    def __init__(self, topic=None, discourse=None, structure=None, tags=None):
        self.replies = {
            "topic relationship": topic if topic is not None else TOPIC_REPLY,
            "discourse relationship": discourse if discourse is not None else DISCOURSE_REPLY,
            "document structure": structure if structure is not None else STRUCTURE_REPLY,
            "Extract semantic metadata": tags if tags is not None else TAG_REPLY,
        }
        self.calls = []

    def kind_of(self, prompt):
        for marker in self.replies:
            if marker in prompt:
                return marker
        raise AssertionError(f"Unrecognised prompt: {prompt[:60]!r}")

    async def generate(self, prompt, max_tokens, temperature):
        kind = self.kind_of(prompt)
        self.calls.append((kind, prompt))
        reply = self.replies[kind]
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            reply = reply(prompt)
        return json.dumps(reply)

    def count(self, kind):
        return sum(1 for k, _ in self.calls if k == kind)


# ---------------------------------------------------------------------------
# Fake Embedding
# ---------------------------------------------------------------------------


class KeywordEmbedder:
    """One-hot embedding on the first keyword found in the text.

    Text containing none of the keywords maps to an extra shared axis, so
    such spans are identical (distance 0) to each other.
    """

    def __init__(self, keywords):
        self.keywords = list(keywords)
        self.calls = []

    async def embed(self, text):
        self.calls.append(text)
        vector = [0.0] * (len(self.keywords) + 1)
        lowered = text.lower()
        for i, keyword in enumerate(self.keywords):
            if keyword in lowered:
                vector[i] = 1.0
                return vector
        vector[-1] = 1.0
        return vector


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def small_config():
    """Config with small sizes so short test documents split per paragraph."""
    return ChunkerConfig(
        min_size=20,
        target_size=50,
        max_size=80,
        atomic_max_size=200,
        adaptive_threshold=AdaptiveThresholdConfig(enabled=False),
    ).validate()


@pytest.fixture()
def oracle():
    return PromptAwareCompletion()


@pytest.fixture()
def embedder():
    return KeywordEmbedder(["volcano", "violin", "tax"])


@pytest.fixture()
def scripted():
    """Factory for ScriptedCompletion instances."""
    return ScriptedCompletion


@pytest.fixture()
def make_oracle():
    """Factory for PromptAwareCompletion instances with custom replies."""
    return PromptAwareCompletion


@pytest.fixture()
def make_embedder():
    """Factory for KeywordEmbedder instances."""
    return KeywordEmbedder

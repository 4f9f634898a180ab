# Version: v1.0
"""
semsplit.providers — llama_index Ollama adapters and chunker wiring.

OllamaTextCompletion and OllamaEmbedder satisfy the TextCompletion and
Embedding protocols. get_completion() / get_embedder() return process-level
singletons; use reset_providers() in tests to clear them.
"""

import threading
from typing import Optional, Sequence

from llama_index.embeddings.ollama import OllamaEmbedding
from llama_index.llms.ollama import Ollama

from semsplit.analyzers import TagExtractor, build_analyzers
from semsplit.chunker import SemanticChunker
from semsplit.config import (
    DEFAULT_CONTEXT_WINDOW,
    DEFAULT_EMBED_MODEL,
    DEFAULT_LLM_MODEL,
    DEFAULT_LLM_TIMEOUT,
    DEFAULT_OLLAMA_URL,
    AnalyzerSettings,
    ChunkerConfig,
    load_config,
    logger,
)
from semsplit.generator import SchemaBoundGenerator
from semsplit.models import Embedding, TextCompletion
from semsplit.scorer import BoundaryScorer

BOUNDARY_ANALYZERS = ["topic", "discourse", "structure"]


class OllamaTextCompletion:
    """TextCompletion backed by llama_index's Ollama LLM.

    Ollama fixes temperature and num_predict at construction, so one LLM is
    built and cached per distinct (temperature, max_tokens) pair.
    """

    def __init__(
        self,
        model: str = DEFAULT_LLM_MODEL,
        base_url: str = DEFAULT_OLLAMA_URL,
        request_timeout: float = DEFAULT_LLM_TIMEOUT,
        context_window: int = DEFAULT_CONTEXT_WINDOW,
    ):
        self.model = model
        self.base_url = base_url
        self.request_timeout = request_timeout
        self.context_window = context_window
        self._llms: dict[tuple[float, int], Ollama] = {}
        self._lock = threading.Lock()

    def _llm_for(self, temperature: float, max_tokens: int) -> Ollama:
        key = (temperature, max_tokens)
        llm = self._llms.get(key)
        if llm is not None:
            return llm
        with self._lock:
            llm = self._llms.get(key)
            if llm is None:
                llm = Ollama(
                    model=self.model,
                    base_url=self.base_url,
                    request_timeout=self.request_timeout,
                    context_window=self.context_window,
                    temperature=temperature,
                    additional_kwargs={"num_predict": max_tokens},
                )
                self._llms[key] = llm
            return llm

    async def generate(self, prompt: str, max_tokens: int, temperature: float) -> str:
        response = await self._llm_for(temperature, max_tokens).acomplete(prompt)
        return response.text


class OllamaEmbedder:
    """Embedding backed by llama_index's OllamaEmbedding."""

    def __init__(self, model: str = DEFAULT_EMBED_MODEL, base_url: str = DEFAULT_OLLAMA_URL):
        self._embed_model = OllamaEmbedding(model_name=model, base_url=base_url)

    async def embed(self, text: str) -> Sequence[float]:
        return await self._embed_model.aget_text_embedding(text)


# ---------------------------------------------------------------------------
# Process-level singletons
# ---------------------------------------------------------------------------
_completion: Optional[OllamaTextCompletion] = None
_embedder: Optional[OllamaEmbedder] = None
_provider_lock = threading.Lock()


def get_completion() -> OllamaTextCompletion:
    """Return the shared OllamaTextCompletion (thread-safe, lazy)."""
    global _completion
    if _completion is not None:
        return _completion
    with _provider_lock:
        if _completion is None:
            logger.info(f"Initialising Ollama LLM: {DEFAULT_LLM_MODEL} @ {DEFAULT_OLLAMA_URL}")
            _completion = OllamaTextCompletion()
        return _completion


def get_embedder() -> OllamaEmbedder:
    """Return the shared OllamaEmbedder (thread-safe, lazy)."""
    global _embedder
    if _embedder is not None:
        return _embedder
    with _provider_lock:
        if _embedder is None:
            logger.info(f"Initialising Ollama embeddings: {DEFAULT_EMBED_MODEL} @ {DEFAULT_OLLAMA_URL}")
            _embedder = OllamaEmbedder()
        return _embedder


def reset_providers() -> None:
    """Clear the cached providers. Intended for tests only."""
    global _completion, _embedder
    with _provider_lock:
        _completion = None
        _embedder = None


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def build_chunker(
    config: Optional[ChunkerConfig] = None,
    completion: Optional[TextCompletion] = None,
    embedder: Optional[Embedding] = None,
) -> SemanticChunker:
    """Assemble a SemanticChunker from one validated config.

    Args:
        config: Chunker config; load_config() when omitted. Always validated.
        completion: Text-generation capability; the shared Ollama LLM when
            omitted.
        embedder: Embedding capability; the shared Ollama embedder when
            omitted.

    Returns:
        A ready SemanticChunker.

    Raises:
        ConfigurationError: If the config is invalid.
    """
    config = load_config() if config is None else config.validate()
    completion = completion if completion is not None else get_completion()
    embedder = embedder if embedder is not None else get_embedder()

    default_generator = SchemaBoundGenerator(completion, max_retries=config.max_retries)
    model_generators: dict[str, SchemaBoundGenerator] = {}

    def generator_for(settings: AnalyzerSettings) -> SchemaBoundGenerator:
        # A per-analyzer model only applies to the Ollama-backed default.
        if settings.model is None or not isinstance(completion, OllamaTextCompletion):
            return default_generator
        if settings.model not in model_generators:
            model_generators[settings.model] = SchemaBoundGenerator(
                OllamaTextCompletion(
                    model=settings.model,
                    base_url=completion.base_url,
                    request_timeout=completion.request_timeout,
                    context_window=completion.context_window,
                ),
                max_retries=config.max_retries,
            )
        return model_generators[settings.model]

    analyzers = build_analyzers(
        BOUNDARY_ANALYZERS,
        lambda name: getattr(config, name),
        generator_for,
    )
    tag_extractor = (
        TagExtractor(generator_for(config.tags), config.tags)
        if config.tag_extraction_enabled
        else None
    )
    return SemanticChunker(
        config=config,
        embedder=embedder,
        analyzers=analyzers,
        scorer=BoundaryScorer(config.weights.as_dict()),
        tag_extractor=tag_extractor,
    )

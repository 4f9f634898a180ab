# Version: v1.0
"""
semsplit.chunker — SemanticChunker: the two-pass boundary-detection and
chunk-assembly pipeline.

Run states, in order:
    SEGMENTING -> ANALYZING_BOUNDARIES -> ASSEMBLING -> ENRICHING -> LINKING -> DONE

Pass 1 embeds every sentence and measures consecutive cosine distances. Pass 2
asks the analyzers about each boundary (gated analyzers only see pass-1
candidates when adaptive thresholding is on) and fuses the signals. Spans are
then packed greedily under the size and atomicity rules, tagged and linked.
"""

import asyncio
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Sequence

from semsplit.analyzers.base import AnalyzerResult, BoundaryAnalyzer
from semsplit.analyzers.tags import ExtractedTags, TagExtractor
from semsplit.config import ChunkerConfig, logger
from semsplit.distance import batch_distances
from semsplit.exceptions import (
    ChunkingCancelled,
    EmbeddingFailure,
    GenerationFailure,
    InputError,
    InvalidInput,
)
from semsplit.models import (
    BoundarySignal,
    Chunk,
    ChunkMetadata,
    ChunkRelationship,
    Embedding,
    ScoredSpan,
    TextSpan,
)
from semsplit.scorer import BoundaryScorer
from semsplit.segmenter import split_sentences
from semsplit.threshold import adaptive_threshold, select_candidates

DOCUMENT_END_SCORE = 1.0
EMBEDDING_SIGNAL = "embedding"


class ChunkerState(Enum):
    IDLE = "idle"
    SEGMENTING = "segmenting"
    ANALYZING_BOUNDARIES = "analyzing_boundaries"
    ASSEMBLING = "assembling"
    ENRICHING = "enriching"
    LINKING = "linking"
    DONE = "done"


_STATE_ORDER = list(ChunkerState)


@dataclass
class _Run:
    """Mutable per-call state; never shared between chunk() calls."""

    min_size: int
    max_size: int
    overlap: int
    cancel_event: Optional[asyncio.Event]
    state: ChunkerState = ChunkerState.IDLE

    def advance(self, new_state: ChunkerState) -> None:
        if _STATE_ORDER.index(new_state) != _STATE_ORDER.index(self.state) + 1:
            raise RuntimeError(f"Illegal transition {self.state.name} -> {new_state.name}")
        logger.info(f"Chunker state: {self.state.name} -> {new_state.name}")
        self.state = new_state

    def check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise ChunkingCancelled(f"Chunking cancelled during {self.state.name}")


async def _gather_or_cancel(aws: Sequence[Awaitable[Any]]) -> list[Any]:
    """gather() that cancels and awaits the siblings of a failed awaitable."""
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


@dataclass(frozen=True)
class _PairOutcome:
    score: float
    is_atomic: bool


class SemanticChunker:
    """Split documents into semantically coherent, linked chunks.

    Args:
        config: Validated chunker configuration.
        embedder: Embedding capability used for pass 1.
        analyzers: Boundary analyzers consulted in pass 2.
        scorer: Signal fusion; defaults to one built from config.weights.
        tag_extractor: Optional per-chunk metadata extractor.
    """

    def __init__(
        self,
        config: ChunkerConfig,
        embedder: Embedding,
        analyzers: Sequence[BoundaryAnalyzer],
        scorer: Optional[BoundaryScorer] = None,
        tag_extractor: Optional[TagExtractor] = None,
    ):
        self.config = config
        self.embedder = embedder
        self.analyzers = list(analyzers)
        self.scorer = scorer or BoundaryScorer(config.weights.as_dict())
        self.tag_extractor = tag_extractor

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def chunk(
        self,
        text: str,
        min_size: Optional[int] = None,
        max_size: Optional[int] = None,
        overlap: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> list[Chunk]:
        """Chunk *text* into a linked list of semantic chunks.

        Args:
            text: Source document.
            min_size: Optional override of config.min_size.
            max_size: Optional override of config.max_size.
            overlap: Optional override of config.overlap_size.
            cancel_event: When set, the run stops at the next checkpoint and
                in-flight oracle calls are cancelled.

        Returns:
            Chunks in document order, linked via metadata.relationship.

        Raises:
            InputError: Empty text or invalid size overrides.
            EmbeddingFailure: The embedding capability failed.
            AnalysisFailure: A boundary analyzer exhausted its retries.
            ChunkingCancelled: cancel_event was set.
        """
        run = self._new_run(min_size, max_size, overlap, cancel_event)

        run.advance(ChunkerState.SEGMENTING)
        spans = split_sentences(text)
        logger.info(f"Segmented {len(text)} chars into {len(spans)} spans")
        run.check_cancelled()

        run.advance(ChunkerState.ANALYZING_BOUNDARIES)
        scored = await self._score_boundaries(spans, run)
        run.check_cancelled()

        run.advance(ChunkerState.ASSEMBLING)
        groups = self._assemble(scored, run)
        chunks = [self._build_chunk(text, group, groups, i, run) for i, group in enumerate(groups)]
        logger.info(f"Assembled {len(chunks)} chunks")

        run.advance(ChunkerState.ENRICHING)
        chunks = await self._enrich(chunks, run)
        run.check_cancelled()

        run.advance(ChunkerState.LINKING)
        chunks = self._link(chunks)

        run.advance(ChunkerState.DONE)
        return chunks

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def _new_run(
        self,
        min_size: Optional[int],
        max_size: Optional[int],
        overlap: Optional[int],
        cancel_event: Optional[asyncio.Event],
    ) -> _Run:
        cfg = self.config
        min_size = cfg.min_size if min_size is None else min_size
        max_size = cfg.max_size if max_size is None else max_size
        overlap = cfg.overlap_size if overlap is None else overlap

        if min_size <= 0 or max_size <= 0:
            raise InputError(
                f"Chunk sizes must be positive, got min={min_size}, max={max_size}"
            )
        if min_size >= max_size:
            raise InputError(f"min_size ({min_size}) must be < max_size ({max_size})")
        if max_size > cfg.atomic_max_size:
            raise InputError(
                f"max_size ({max_size}) must be <= atomic_max_size ({cfg.atomic_max_size})"
            )
        if overlap < 0 or overlap >= min_size:
            raise InputError(f"overlap must be in [0, {min_size}), got {overlap}")

        return _Run(min_size=min_size, max_size=max_size, overlap=overlap, cancel_event=cancel_event)

    # ------------------------------------------------------------------
    # Concurrency
    # ------------------------------------------------------------------

    async def _run_bounded(
        self,
        factories: Sequence[Callable[[], Awaitable[Any]]],
        run: _Run,
    ) -> list[Any]:
        """Run coroutine factories under the concurrency bound.

        Results keep input order. The first failure, or cancel_event being
        set, cancels every outstanding task before propagating.
        """
        if not factories:
            return []
        semaphore = asyncio.Semaphore(self.config.max_concurrency)

        async def guarded(factory: Callable[[], Awaitable[Any]]) -> Any:
            async with semaphore:
                run.check_cancelled()
                return await factory()

        tasks = [asyncio.ensure_future(guarded(f)) for f in factories]
        watcher = (
            asyncio.ensure_future(run.cancel_event.wait())
            if run.cancel_event is not None
            else None
        )
        try:
            remaining = set(tasks)
            while remaining:
                waiting = remaining | ({watcher} if watcher is not None else set())
                done, _ = await asyncio.wait(waiting, return_when=asyncio.FIRST_COMPLETED)
                if watcher is not None and watcher in done:
                    raise ChunkingCancelled(f"Chunking cancelled during {run.state.name}")
                for task in done:
                    remaining.discard(task)
                    error = task.exception()
                    if error is not None:
                        raise error
            return [task.result() for task in tasks]
        finally:
            outstanding = [t for t in tasks if not t.done()]
            if watcher is not None and not watcher.done():
                outstanding.append(watcher)
            for task in outstanding:
                task.cancel()
            if outstanding:
                await asyncio.gather(*outstanding, return_exceptions=True)

    # ------------------------------------------------------------------
    # Boundary analysis
    # ------------------------------------------------------------------

    async def _embed(self, span: TextSpan) -> Sequence[float]:
        try:
            return await self.embedder.embed(span.content)
        except Exception as e:
            raise EmbeddingFailure(
                f"Embedding failed for span at offset {span.start_offset}: {e}"
            ) from e

    async def _score_boundaries(self, spans: list[TextSpan], run: _Run) -> list[ScoredSpan]:
        if len(spans) == 1:
            return [ScoredSpan(spans[0], DOCUMENT_END_SCORE)]

        vectors = await self._run_bounded([lambda s=s: self._embed(s) for s in spans], run)
        try:
            distances = batch_distances(vectors)
        except InvalidInput as e:
            raise EmbeddingFailure(f"Unusable embeddings: {e}") from e

        adaptive = self.config.adaptive_threshold
        candidate_indices: Optional[set[int]] = None
        if adaptive.enabled:
            threshold = adaptive_threshold(
                distances,
                adaptive.min_threshold,
                adaptive.max_threshold,
                adaptive.candidate_limit,
            )
            candidates = select_candidates(spans, distances, threshold)
            candidate_indices = {c.index for c in candidates}
            logger.info(
                f"Pass 1: {len(candidates)}/{len(distances)} candidate boundaries "
                f"(threshold {threshold:.3f})"
            )

        total = len(distances)
        completed = 0

        async def analyze_pair(i: int) -> _PairOutcome:
            nonlocal completed
            is_candidate = candidate_indices is None or i in candidate_indices
            outcome = await self._analyze_pair(spans[i], spans[i + 1], distances[i], is_candidate)
            completed += 1
            if completed % self.config.progress_interval == 0 or completed == total:
                logger.info(f"Analyzed {completed}/{total} boundaries")
            return outcome

        outcomes = await self._run_bounded(
            [lambda i=i: analyze_pair(i) for i in range(total)], run
        )

        scored = [
            ScoredSpan(spans[i], outcome.score, outcome.is_atomic)
            for i, outcome in enumerate(outcomes)
        ]
        scored.append(ScoredSpan(spans[-1], DOCUMENT_END_SCORE))
        return scored

    async def _analyze_pair(
        self,
        left: TextSpan,
        right: TextSpan,
        distance: float,
        is_candidate: bool,
    ) -> _PairOutcome:
        active = [a for a in self.analyzers if is_candidate or not a.gated]
        results: list[AnalyzerResult] = await _gather_or_cancel(
            [a.analyze(left.content, right.content) for a in active]
        )
        signals = [BoundarySignal(EMBEDDING_SIGNAL, min(max(distance, 0.0), 1.0), 1.0)]
        signals.extend(BoundarySignal(r.name, r.strength, r.confidence) for r in results)
        # Skipped analyzers count as "no boundary" at their full weight.
        signals.extend(
            BoundarySignal(a.name, 0.0, 0.0) for a in self.analyzers if a not in active
        )
        score = self.scorer.score(signals)
        return _PairOutcome(
            score=score.weighted_score,
            is_atomic=any(r.keep_atomic for r in results),
        )

    # ------------------------------------------------------------------
    # Assembly
    # ------------------------------------------------------------------

    def _assemble(self, scored: list[ScoredSpan], run: _Run) -> list[list[ScoredSpan]]:
        """Greedily pack spans into groups under the size and atomicity rules."""
        groups: list[list[ScoredSpan]] = []
        current: list[ScoredSpan] = []
        for item in scored:
            if current and self._should_split(current, item, run):
                groups.append(current)
                current = []
            current.append(item)
        if current:
            groups.append(current)
        return groups

    def _should_split(self, current: list[ScoredSpan], item: ScoredSpan, run: _Run) -> bool:
        chunk_start = current[0].span.start_offset
        projected = item.span.end_offset - chunk_start
        if projected > self.config.atomic_max_size:
            return True
        previous = current[-1]
        current_length = previous.span.end_offset - chunk_start
        return (
            projected > run.max_size
            and current_length >= run.min_size
            and previous.boundary_score >= self.config.boundary_threshold
            and not previous.is_atomic
        )

    def _overlap_start(self, text: str, start: int, floor: int, overlap: int) -> int:
        """Earliest word start within *overlap* chars before *start*."""
        pos = max(floor, start - overlap)
        if pos >= start:
            return start
        if pos > 0 and not text[pos - 1].isspace():
            while pos < start and not text[pos].isspace():
                pos += 1
        while pos < start and text[pos].isspace():
            pos += 1
        return pos

    def _build_chunk(
        self,
        text: str,
        group: list[ScoredSpan],
        groups: list[list[ScoredSpan]],
        index: int,
        run: _Run,
    ) -> Chunk:
        start = group[0].span.start_offset
        end = group[-1].span.end_offset
        extension = 0
        if run.overlap > 0 and index > 0:
            prev_start = groups[index - 1][0].span.start_offset
            new_start = self._overlap_start(text, start, prev_start, run.overlap)
            extension = start - new_start
            start = new_start

        mean_score = sum(s.boundary_score for s in group) / len(group)
        return Chunk(
            chunk_id=f"chunk-{index}",
            content=text[start:end],
            start_offset=start,
            end_offset=end,
            metadata=ChunkMetadata(
                coherence_score=min(max(1.0 - mean_score, 0.0), 1.0),
                overlap=extension,
            ),
        )

    # ------------------------------------------------------------------
    # Enrichment and linking
    # ------------------------------------------------------------------

    async def _tags_for(self, chunk: Chunk) -> ExtractedTags:
        try:
            return await self.tag_extractor.extract(chunk.content)
        except GenerationFailure as e:
            logger.warning(f"Tag extraction failed for {chunk.chunk_id}, using empty metadata: {e}")
            return ExtractedTags()

    async def _enrich(self, chunks: list[Chunk], run: _Run) -> list[Chunk]:
        if self.tag_extractor is None or not self.config.tag_extraction_enabled:
            logger.info("Tag extraction disabled; skipping enrichment")
            return chunks

        extracted = await self._run_bounded(
            [lambda c=c: self._tags_for(c) for c in chunks], run
        )
        return [
            replace(
                chunk,
                metadata=replace(
                    chunk.metadata,
                    tags=tags.tags,
                    topics=tags.topics,
                    entities=tags.entities,
                    key_phrases=tags.key_phrases,
                ),
            )
            for chunk, tags in zip(chunks, extracted)
        ]

    def _link(self, chunks: list[Chunk]) -> list[Chunk]:
        total = len(chunks)
        linked = []
        for i, chunk in enumerate(chunks):
            relationship = ChunkRelationship(
                prev_id=f"chunk-{i - 1}" if i > 0 else None,
                next_id=f"chunk-{i + 1}" if i < total - 1 else None,
                position=f"{i + 1}/{total}",
            )
            linked.append(
                replace(
                    chunk,
                    chunk_id=f"chunk-{i}",
                    metadata=replace(chunk.metadata, relationship=relationship),
                )
            )
        return linked

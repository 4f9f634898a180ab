# Version: v1.0
"""
tests/test_chunker.py — End-to-end tests for SemanticChunker with fake
oracle and embedder.
"""

import asyncio
from dataclasses import replace

import pytest

from semsplit.analyzers import DiscourseAnalyzer, StructureAnalyzer, TagExtractor, TopicAnalyzer
from semsplit.chunker import ChunkerState, SemanticChunker, _Run
from semsplit.config import AdaptiveThresholdConfig, ChunkerConfig
from semsplit.exceptions import (
    AnalysisFailure,
    ChunkingCancelled,
    EmbeddingFailure,
    InputError,
)
from semsplit.generator import SchemaBoundGenerator
from semsplit.models import TextSpan

P1 = "The volcano erupted at dawn and covered the valley in thick ash."
P2 = "A violin needs careful tuning before every concert performance."
P3 = "The new tax rules change how small firms report their income."
THREE_TOPICS = f"{P1}\n\n{P2}\n\n{P3}"

QUESTION = "What is the boiling point of water at sea level in degrees?"
ANSWER = "It boils at one hundred degrees Celsius under normal pressure."

ATOMIC_REPLY = {
    "structureType": "qa_pair",
    "shouldKeepAtomic": True,
    "confidence": 1.0,
    "explanation": "question and answer",
}


def make_chunker(config, oracle, embedder, tags=True):
    generator = SchemaBoundGenerator(oracle, max_retries=config.max_retries)
    analyzers = [
        TopicAnalyzer(generator, config.topic),
        DiscourseAnalyzer(generator, config.discourse),
        StructureAnalyzer(generator, config.structure),
    ]
    tag_extractor = TagExtractor(generator, config.tags) if tags else None
    return SemanticChunker(config, embedder, analyzers, tag_extractor=tag_extractor)


def assert_linked(chunks):
    total = len(chunks)
    for i, chunk in enumerate(chunks):
        rel = chunk.metadata.relationship
        assert chunk.chunk_id == f"chunk-{i}"
        assert rel.position == f"{i + 1}/{total}"
        assert rel.prev_id == (chunks[i - 1].chunk_id if i > 0 else None)
        assert rel.next_id == (chunks[i + 1].chunk_id if i < total - 1 else None)


# ---------------------------------------------------------------------------
# Core behaviour
# ---------------------------------------------------------------------------


class TestSemanticChunker:
    async def test_three_unrelated_paragraphs_give_three_linked_chunks(
        self, small_config, oracle, embedder
    ):
        chunks = await make_chunker(small_config, oracle, embedder).chunk(THREE_TOPICS)
        assert [c.content for c in chunks] == [P1, P2, P3]
        assert [c.metadata.relationship.position for c in chunks] == ["1/3", "2/3", "3/3"]
        assert_linked(chunks)

    async def test_contents_are_exact_source_slices(self, small_config, oracle, embedder):
        chunks = await make_chunker(small_config, oracle, embedder).chunk(THREE_TOPICS)
        previous_end = 0
        for chunk in chunks:
            assert THREE_TOPICS[chunk.start_offset:chunk.end_offset] == chunk.content
            assert chunk.end_offset == chunk.start_offset + len(chunk.content)
            assert chunk.start_offset >= previous_end
            assert THREE_TOPICS[previous_end:chunk.start_offset].strip() == ""
            previous_end = chunk.end_offset
        assert THREE_TOPICS[previous_end:].strip() == ""

    async def test_coherence_is_one_minus_mean_boundary_score(
        self, small_config, oracle, embedder
    ):
        chunks = await make_chunker(small_config, oracle, embedder).chunk(THREE_TOPICS)
        # topic 1.0, discourse 0.9, structure 0.6, embedding 1.0
        expected_boundary = 0.25 * 1.0 + 0.25 * 0.9 + 0.20 * 0.6 + 0.30 * 1.0
        assert chunks[0].metadata.coherence_score == pytest.approx(1 - expected_boundary)
        # The final span closes the document with score 1.0.
        assert chunks[-1].metadata.coherence_score == pytest.approx(0.0)

    async def test_short_document_stays_one_chunk_and_is_idempotent(self, oracle, embedder):
        config = ChunkerConfig().validate()
        chunker = make_chunker(config, oracle, embedder)
        text = "The volcano is quiet today. Tourists climb its slopes. Guides watch the vents."
        chunks = await chunker.chunk(text)
        assert len(chunks) == 1
        assert chunks[0].content == text

        again = await chunker.chunk(chunks[0].content)
        assert len(again) == 1
        assert again[0].content == chunks[0].content

    async def test_single_span_skips_boundary_analysis(self, small_config, oracle, embedder):
        chunks = await make_chunker(small_config, oracle, embedder).chunk("Just one sentence.")
        assert len(chunks) == 1
        assert embedder.calls == []
        assert oracle.count("topic relationship") == 0
        assert chunks[0].metadata.relationship.position == "1/1"

    async def test_tags_attached_to_every_chunk(self, small_config, oracle, embedder):
        chunks = await make_chunker(small_config, oracle, embedder).chunk(THREE_TOPICS)
        for chunk in chunks:
            assert chunk.metadata.tags == ("space",)
            assert chunk.metadata.entities == ("NASA",)
            assert chunk.metadata.topics == ("space exploration",)
            assert chunk.metadata.key_phrases == ("mars colonization",)
            assert chunk.metadata.strategy == "semantic"

    async def test_to_dict_payload(self, small_config, oracle, embedder):
        chunks = await make_chunker(small_config, oracle, embedder).chunk(THREE_TOPICS)
        payload = chunks[1].to_dict()
        assert payload["chunk_id"] == "chunk-1"
        assert payload["content"] == P2
        assert payload["metadata"]["relationship"] == {
            "prev_id": "chunk-0",
            "next_id": "chunk-2",
            "position": "2/3",
        }
        assert payload["metadata"]["tags"] == ["space"]


# ---------------------------------------------------------------------------
# Assembly rules
# ---------------------------------------------------------------------------


class TestAssembly:
    async def test_atomic_boundary_not_split(self, small_config, make_oracle, make_embedder):
        oracle = make_oracle(structure=ATOMIC_REPLY)
        embedder = make_embedder(["boiling", "celsius"])
        text = f"{QUESTION} {ANSWER}"
        chunks = await make_chunker(small_config, oracle, embedder).chunk(text)
        assert len(chunks) == 1
        assert chunks[0].content == text

    async def test_same_pair_splits_without_atomic_flag(
        self, small_config, make_oracle, make_embedder
    ):
        embedder = make_embedder(["boiling", "celsius"])
        chunks = await make_chunker(small_config, make_oracle(), embedder).chunk(
            f"{QUESTION} {ANSWER}"
        )
        assert [c.content for c in chunks] == [QUESTION, ANSWER]

    async def test_atomic_max_size_forces_split(self, make_oracle, make_embedder):
        config = ChunkerConfig(
            min_size=20,
            target_size=50,
            max_size=80,
            atomic_max_size=100,
            adaptive_threshold=AdaptiveThresholdConfig(enabled=False),
        ).validate()
        oracle = make_oracle(structure=ATOMIC_REPLY)
        embedder = make_embedder(["boiling", "celsius"])
        chunks = await make_chunker(config, oracle, embedder).chunk(f"{QUESTION} {ANSWER}")
        assert [c.content for c in chunks] == [QUESTION, ANSWER]

    async def test_weak_boundary_not_split(self, small_config, make_oracle, make_embedder):
        weak_topic = {
            "sameTopic": True,
            "confidence": 1.0,
            "relationship": "continuation",
            "reason": "same",
        }
        oracle = make_oracle(topic=weak_topic)
        embedder = make_embedder([])
        chunks = await make_chunker(small_config, oracle, embedder).chunk(THREE_TOPICS)
        assert len(chunks) == 1

    async def test_below_min_size_not_split(self, make_oracle, make_embedder):
        config = ChunkerConfig(
            min_size=70,
            target_size=75,
            max_size=80,
            atomic_max_size=500,
            adaptive_threshold=AdaptiveThresholdConfig(enabled=False),
        ).validate()
        embedder = make_embedder(["volcano", "violin", "tax"])
        chunks = await make_chunker(config, make_oracle(), embedder).chunk(THREE_TOPICS)
        # P1 alone (64 chars) is below min_size, so P2 joins it.
        assert chunks[0].content == f"{P1}\n\n{P2}"

    async def test_overlap_extends_chunk_backwards_to_word_start(
        self, small_config, oracle, embedder
    ):
        chunks = await make_chunker(small_config, oracle, embedder).chunk(THREE_TOPICS, overlap=10)
        assert chunks[0].metadata.overlap == 0
        assert chunks[0].content == P1
        second = chunks[1]
        p2_start = THREE_TOPICS.index(P2)
        assert second.metadata.overlap > 0
        assert second.start_offset == p2_start - second.metadata.overlap
        assert second.metadata.overlap <= 10
        assert THREE_TOPICS[second.start_offset - 1].isspace()
        assert not second.content[0].isspace()
        assert second.content.endswith(P2)
        assert THREE_TOPICS[second.start_offset:second.end_offset] == second.content


# ---------------------------------------------------------------------------
# Two-pass gating
# ---------------------------------------------------------------------------


GATING_TEXT = (
    "Lava flows from the volcano. "
    "The volcano rumbles at night. "
    "The volcano sleeps in winter. "
    "Tax forms are due in April."
)


ALPHA = "Alpha waves were recorded during the first night of the study."
BETA = "Beta readings rose steadily as the sleepers began to wake up."
GAMMA = "Gamma rays from the distant quasar reached the orbiting probe."

HEADER_REPLY = {
    "structureType": "header",
    "shouldKeepAtomic": False,
    "confidence": 1.0,
    "explanation": "new section",
}


class VectorEmbedder:
    """Distances: ALPHA|BETA 0.5 (below the 0.8 threshold), BETA|GAMMA 1.0."""

    VECTORS = {
        "Alpha": [1.0, 0.0, 0.0],
        "Beta": [0.5, 0.75 ** 0.5, 0.0],
        "Gamma": [0.0, 0.0, 1.0],
    }

    async def embed(self, text):
        return self.VECTORS[text.split()[0]]


class TestGating:
    async def test_adaptive_threshold_gates_topic_and_discourse(self, oracle, make_embedder):
        config = ChunkerConfig().validate()
        embedder = make_embedder(["volcano", "tax"])
        await make_chunker(config, oracle, embedder, tags=False).chunk(GATING_TEXT)
        assert oracle.count("topic relationship") == 1
        assert oracle.count("discourse relationship") == 1
        assert oracle.count("document structure") == 3

    async def test_disabled_adaptive_threshold_analyzes_every_pair(
        self, small_config, oracle, make_embedder
    ):
        embedder = make_embedder(["volcano", "tax"])
        await make_chunker(small_config, oracle, embedder, tags=False).chunk(GATING_TEXT)
        assert oracle.count("topic relationship") == 3
        assert oracle.count("discourse relationship") == 3
        assert oracle.count("document structure") == 3

    async def test_skipped_analyzers_score_zero_at_full_weight(self, make_oracle, embedder):
        oracle = make_oracle(structure=HEADER_REPLY)
        chunker = make_chunker(ChunkerConfig().validate(), oracle, embedder, tags=False)
        outcome = await chunker._analyze_pair(
            TextSpan(ALPHA, 0), TextSpan(BETA, len(ALPHA) + 1), 0.5, is_candidate=False
        )
        # (0.5 * 0.30 + 0.9 * 0.20) / 1.0
        assert outcome.score == pytest.approx(0.33)
        assert oracle.count("topic relationship") == 0
        assert oracle.count("discourse relationship") == 0

    async def test_non_candidate_boundary_does_not_split(self, make_oracle):
        config = ChunkerConfig(min_size=20, target_size=50, max_size=80, atomic_max_size=200)
        oracle = make_oracle(structure=HEADER_REPLY)
        text = f"{ALPHA} {BETA} {GAMMA}"
        chunks = await make_chunker(config.validate(), oracle, VectorEmbedder(), tags=False).chunk(
            text
        )
        assert [c.content for c in chunks] == [f"{ALPHA} {BETA}", GAMMA]
        assert oracle.count("topic relationship") == 1


# ---------------------------------------------------------------------------
# Failure handling
# ---------------------------------------------------------------------------


class TestFailures:
    async def test_tag_failure_degrades_only_metadata(self, small_config, make_oracle, embedder):
        oracle = make_oracle(tags=RuntimeError("model crashed"))
        chunks = await make_chunker(small_config, oracle, embedder).chunk(THREE_TOPICS)
        assert len(chunks) == 3
        for chunk in chunks:
            assert chunk.metadata.tags == ()
            assert chunk.metadata.entities == ()
        assert_linked(chunks)

    async def test_tag_extraction_disabled(self, small_config, oracle, embedder):
        config = replace(small_config, tag_extraction_enabled=False)
        chunks = await make_chunker(config, oracle, embedder).chunk(THREE_TOPICS)
        assert oracle.count("Extract semantic metadata") == 0
        assert chunks[0].metadata.tags == ()

    async def test_analysis_failure_aborts_run(self, small_config, make_oracle, embedder):
        oracle = make_oracle(topic={"sameTopic": False})
        with pytest.raises(AnalysisFailure) as exc_info:
            await make_chunker(small_config, oracle, embedder).chunk(THREE_TOPICS)
        assert exc_info.value.analyzer == "topic"
        assert exc_info.value.attempts == small_config.max_retries

    async def test_embedding_failure_aborts_run(self, small_config, oracle):
        class BrokenEmbedder:
            async def embed(self, text):
                raise ConnectionError("embedding backend down")

        with pytest.raises(EmbeddingFailure, match="embedding backend down"):
            await make_chunker(small_config, oracle, BrokenEmbedder()).chunk(THREE_TOPICS)

    async def test_zero_vector_embedding_is_embedding_failure(self, small_config, oracle):
        class ZeroEmbedder:
            async def embed(self, text):
                return [0.0, 0.0]

        with pytest.raises(EmbeddingFailure):
            await make_chunker(small_config, oracle, ZeroEmbedder()).chunk(THREE_TOPICS)

    async def test_empty_text_rejected(self, small_config, oracle, embedder):
        with pytest.raises(InputError):
            await make_chunker(small_config, oracle, embedder).chunk("   ")


# ---------------------------------------------------------------------------
# Cancellation and concurrency
# ---------------------------------------------------------------------------


class TestCancellationAndConcurrency:
    async def test_preset_cancel_event_stops_run(self, small_config, oracle, embedder):
        event = asyncio.Event()
        event.set()
        with pytest.raises(ChunkingCancelled):
            await make_chunker(small_config, oracle, embedder).chunk(THREE_TOPICS, cancel_event=event)
        assert embedder.calls == []

    async def test_cancel_during_embedding_cancels_in_flight_calls(self, small_config, oracle):
        event = asyncio.Event()
        cancelled = []

        class HangingEmbedder:
            async def embed(self, text):
                event.set()
                try:
                    await asyncio.Event().wait()
                except asyncio.CancelledError:
                    cancelled.append(text)
                    raise

        chunker = make_chunker(small_config, oracle, HangingEmbedder())
        with pytest.raises(ChunkingCancelled):
            await asyncio.wait_for(chunker.chunk(THREE_TOPICS, cancel_event=event), timeout=5)
        assert cancelled

    async def test_concurrency_is_bounded(self, oracle):
        config = ChunkerConfig(max_concurrency=2).validate()
        in_flight = 0
        peak = 0

        class SlowEmbedder:
            async def embed(self, text):
                nonlocal in_flight, peak
                in_flight += 1
                peak = max(peak, in_flight)
                await asyncio.sleep(0.01)
                in_flight -= 1
                return [1.0, 0.0]

        text = " ".join(f"Sentence number {i}." for i in range(8))
        await make_chunker(config, oracle, SlowEmbedder(), tags=False).chunk(text)
        assert peak == 2

    async def test_analyzers_for_one_pair_run_concurrently(self, small_config, oracle, embedder):
        config = replace(small_config, max_concurrency=1)
        in_flight = 0
        peak = 0

        class SlowOracle:
            async def generate(self, prompt, max_tokens, temperature):
                nonlocal in_flight, peak
                in_flight += 1
                peak = max(peak, in_flight)
                await asyncio.sleep(0.01)
                in_flight -= 1
                return await oracle.generate(prompt, max_tokens, temperature)

        await make_chunker(config, SlowOracle(), embedder, tags=False).chunk(f"{P1} {P2}")
        assert peak == 3
        assert len(oracle.calls) == 3


# ---------------------------------------------------------------------------
# Size overrides
# ---------------------------------------------------------------------------


class TestOverrides:
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"min_size": 0},
            {"max_size": -5},
            {"min_size": 90, "max_size": 80},
            {"max_size": 500},
            {"overlap": -1},
            {"overlap": 20},
        ],
    )
    async def test_invalid_overrides_rejected(self, small_config, oracle, embedder, kwargs):
        with pytest.raises(InputError):
            await make_chunker(small_config, oracle, embedder).chunk(THREE_TOPICS, **kwargs)

    async def test_max_size_override_changes_packing(self, oracle, embedder):
        config = ChunkerConfig(
            min_size=20,
            target_size=50,
            max_size=300,
            atomic_max_size=400,
            adaptive_threshold=AdaptiveThresholdConfig(enabled=False),
        ).validate()
        chunker = make_chunker(config, oracle, embedder)
        assert len(await chunker.chunk(THREE_TOPICS)) == 1
        assert len(await chunker.chunk(THREE_TOPICS, max_size=80)) == 3


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------


class TestRunStates:
    def test_states_advance_in_order(self):
        run = _Run(min_size=1, max_size=2, overlap=0, cancel_event=None)
        for state in list(ChunkerState)[1:]:
            run.advance(state)
        assert run.state is ChunkerState.DONE

    def test_skipping_a_state_is_rejected(self):
        run = _Run(min_size=1, max_size=2, overlap=0, cancel_event=None)
        run.advance(ChunkerState.SEGMENTING)
        with pytest.raises(RuntimeError):
            run.advance(ChunkerState.ASSEMBLING)

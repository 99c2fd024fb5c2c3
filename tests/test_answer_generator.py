"""
Relevance filtering, confidence blending and context assembly.
"""

import pytest

from core.answer_generator import (
    INSUFFICIENT_TEXT,
    MARGINAL_TEXT,
    NO_INFO_TEXT,
    NOTHING_FOUND_TEXT,
    AnswerGenerator,
    ConfidencePolicy,
    RelevancePolicy,
    _truncate_at_sentence,
)
from core.entities import SearchPayload, SearchResult
from tests.fakes import FakeLLM


def hit(score: float, page: int = 1, doc_id: str = "manual", text: str = "The warranty lasts two years.") -> SearchResult:
    return SearchResult(
        id=f"{doc_id}-{page}-{score}",
        score=score,
        payload=SearchPayload(text=text, doc_id=doc_id, page=page, chunk_index=0),
    )


@pytest.fixture
def generator(llm):
    return AnswerGenerator(llm)


class TestRelevancePolicy:
    @pytest.mark.parametrize(
        "max_score,expected",
        [(0.9, 0.5), (0.76, 0.5), (0.75, 0.4), (0.61, 0.4), (0.6, 0.3), (0.2, 0.3)],
    )
    def test_threshold_tightens_with_stronger_hits(self, max_score, expected):
        assert RelevancePolicy().threshold(max_score) == expected


class TestConfidencePolicy:
    def test_strong_consistent_hits(self):
        # 0.6*0.92 + 0.25*0.90 + 0.15 bonus + 0.05 consistency, scaled by 0.9
        assert ConfidencePolicy().blend([0.92, 0.88]) == pytest.approx(0.8793)

    def test_single_weak_hit_falls_below_rejection(self):
        # 0.85*0.45 - 0.05 penalty, scaled by 0.9
        value = ConfidencePolicy().blend([0.45])
        assert value == pytest.approx(0.29925)
        assert value < ConfidencePolicy().reject_below

    def test_bonus_and_penalty_are_capped(self):
        policy = ConfidencePolicy()
        high = policy.blend([0.95] * 5)
        assert high == pytest.approx((0.6 * 0.95 + 0.25 * 0.95 + 0.15 + 0.05) * 0.9)
        # std of 0.056 still earns the consistency bonus
        low = policy.blend([0.5, 0.45, 0.4, 0.35])
        assert low == pytest.approx((0.6 * 0.5 + 0.25 * 0.425 - 0.15 + 0.05) * 0.9)

    def test_clamp(self):
        policy = ConfidencePolicy()
        assert policy.clamp(0.05) == 0.2
        assert policy.clamp(0.99) == 0.95
        assert policy.clamp(0.5) == 0.5


class TestGenerateAnswer:
    @pytest.mark.asyncio
    async def test_no_hits(self, generator, llm):
        answer = await generator.generate_answer("What is the warranty?", [])

        assert answer.text == NO_INFO_TEXT
        assert answer.confidence == 0.0
        assert answer.sources == []
        assert llm.prompts == []

    @pytest.mark.asyncio
    async def test_everything_below_base_threshold(self, generator, llm):
        answer = await generator.generate_answer("What is the warranty?", [hit(0.25), hit(0.1, page=2)])

        assert answer.text == NOTHING_FOUND_TEXT
        assert answer.confidence == 0.0
        assert llm.prompts == []

    @pytest.mark.asyncio
    async def test_marginal_hits_return_capped_confidence(self, llm):
        policy = RelevancePolicy(base=0.3, mid=0.7, high=0.8, mid_trigger=0.6, high_trigger=0.9)
        generator = AnswerGenerator(llm, relevance=policy)

        answer = await generator.generate_answer(
            "What is the warranty?", [hit(0.65), hit(0.5, page=2), hit(0.45, page=3), hit(0.4, page=4)]
        )

        assert answer.text == MARGINAL_TEXT
        assert answer.confidence == 0.4
        assert [s.page for s in answer.sources] == [1, 2, 3]
        assert llm.prompts == []

    @pytest.mark.asyncio
    async def test_weak_single_hit_is_rejected_without_generation(self, generator, llm):
        answer = await generator.generate_answer("What is the warranty?", [hit(0.45)])

        assert answer.text == INSUFFICIENT_TEXT
        assert answer.confidence == 0.0
        assert answer.sources == []
        assert llm.prompts == []

    @pytest.mark.asyncio
    async def test_strong_hits_produce_grounded_answer(self, generator, llm):
        hits = [hit(0.92, page=1), hit(0.88, page=2), hit(0.45, page=3)]

        answer = await generator.generate_answer("How long is the warranty?", hits)

        assert answer.text == "The warranty lasts two years."
        assert answer.confidence == pytest.approx(0.879, abs=1e-3)
        assert [(s.doc_id, s.page) for s in answer.sources] == [("manual", 1), ("manual", 2)]
        assert answer.sources[0].relevance_score == 0.92
        prompt = llm.prompts[0]
        assert "[Document: Manual | Page 1 | Relevance 92%]" in prompt
        assert "Page 3" not in prompt
        assert prompt.rstrip().endswith("QUESTION: How long is the warranty?\n\nANSWER:")

    @pytest.mark.asyncio
    async def test_confidence_is_clamped_to_ceiling(self, llm):
        generator = AnswerGenerator(llm, confidence=ConfidencePolicy(scale=1.0))

        answer = await generator.generate_answer(
            "How long is the warranty?", [hit(0.99, page=p) for p in range(1, 4)]
        )

        assert answer.confidence == 0.95

    @pytest.mark.asyncio
    async def test_greeting_short_circuits(self, generator, llm):
        answer = await generator.generate_answer("Hello!", [hit(0.9)])

        assert answer.confidence == 1.0
        assert answer.sources == []
        assert llm.prompts == []

    @pytest.mark.asyncio
    async def test_answer_is_cleaned_before_returning(self, generator, llm):
        llm.answer = "As an AI language model, the warranty lasts two years [Source: manual.pdf, Page 1]."

        answer = await generator.generate_answer("How long is the warranty?", [hit(0.92), hit(0.9, page=2)])

        assert answer.text == "The warranty lasts two years."


class TestContext:
    def test_keeps_best_hit_per_page(self, generator):
        hits = [hit(0.7, page=1, text="weaker"), hit(0.9, page=1, text="stronger"), hit(0.8, page=2)]

        selected = generator.select_sources(hits)

        assert [(h.payload.page, h.score) for h in selected] == [(1, 0.9), (2, 0.8)]

    def test_limits_number_of_sources(self, llm):
        generator = AnswerGenerator(llm, max_sources=3)

        selected = generator.select_sources([hit(0.5 + i / 100, page=i) for i in range(10)])

        assert [h.payload.page for h in selected] == [9, 8, 7]

    def test_respects_character_budget_and_truncates_last_block(self, llm):
        generator = AnswerGenerator(llm, max_context_chars=400)
        body = " ".join(["alpha"] * 33)  # 197 chars, no sentence end
        hits = [hit(0.9, page=1, text=body), hit(0.85, page=2, text=body), hit(0.8, page=3, text=body)]

        context, used = generator.build_context(hits)

        assert len(context) <= 400
        assert [h.payload.page for h in used] == [1, 2]
        assert context.endswith("...")
        assert "Page 3" not in context

    def test_drops_block_when_remaining_room_is_too_small(self, llm):
        generator = AnswerGenerator(llm, max_context_chars=300)
        body = " ".join(["alpha"] * 33)

        context, used = generator.build_context([hit(0.9, page=1, text=body), hit(0.85, page=2, text=body)])

        assert len(used) == 1
        assert "Page 2" not in context


class TestTruncate:
    def test_prefers_sentence_boundary(self):
        text = "First sentence here. Second sentence is quite a bit longer than the first."

        assert _truncate_at_sentence(text, 40) == "First sentence here."

    def test_falls_back_to_word_boundary(self):
        out = _truncate_at_sentence("word " * 50, 40)

        assert len(out) <= 40
        assert out.endswith("...")
        assert not out[:-3].endswith(" ")

    def test_short_text_is_unchanged(self):
        assert _truncate_at_sentence("short", 40) == "short"

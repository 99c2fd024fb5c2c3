# core/answer_generator.py
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple
import numpy as np
from config.settings import Settings
from core import conversation
from core.entities import AnswerSource, GeneratedAnswer, SearchResult
from core.llm_client import GenerationClient
from core.response_formatter import ResponseFormatter
from util.functions import humanize_doc_id
import logging

logger = logging.getLogger(__name__)

NO_INFO_TEXT = (
    "I couldn't find relevant information to answer your question. Please try rephrasing "
    "your question or check if the document has been properly ingested."
)
NOTHING_FOUND_TEXT = (
    "I couldn't find anything in the uploaded documents that matches your question. "
    "Try different wording or make sure the relevant document has been ingested."
)
MARGINAL_TEXT = (
    "I found some content that may be related, but it doesn't appear to directly answer "
    "your question. You might want to rephrase it or check the sources listed below."
)
INSUFFICIENT_TEXT = (
    "The documents don't contain enough information to answer this question reliably. "
    "Try asking something more specific or ingest a document that covers this topic."
)

_SENTENCE_END = re.compile(r"[.!?](?=\s|$)")
_MIN_TRUNCATED_CHARS = 100


@dataclass(frozen=True)
class RelevancePolicy:
    base: float = 0.3
    mid: float = 0.4
    high: float = 0.5
    mid_trigger: float = 0.6
    high_trigger: float = 0.75
    marginal_max_confidence: float = 0.4
    marginal_sources: int = 3

    def threshold(self, max_score: float) -> float:
        if max_score > self.high_trigger:
            return self.high
        if max_score > self.mid_trigger:
            return self.mid
        return self.base


@dataclass(frozen=True)
class ConfidencePolicy:
    """
    Weighted blend of hit scores. The weights are tuned by hand; treat them as knobs.
    """

    top_weight: float = 0.6
    mean_weight: float = 0.25
    high_score: float = 0.8
    very_high_score: float = 0.9
    high_bonus: float = 0.05
    very_high_bonus: float = 0.05
    max_hit_bonus: float = 0.15
    low_score: float = 0.7
    low_penalty: float = 0.05
    max_low_penalty: float = 0.15
    consistency_max_std: float = 0.1
    consistency_bonus: float = 0.05
    scale: float = 0.9
    floor: float = 0.2
    ceiling: float = 0.95
    reject_below: float = 0.35

    def blend(self, scores: Sequence[float]) -> float:
        """Unclamped confidence for a non-empty score list."""
        arr = np.asarray(scores, dtype=np.float64)
        top = float(arr.max())
        mean = float(arr.mean())
        n_high = int((arr > self.high_score).sum())
        n_very_high = int((arr > self.very_high_score).sum())
        n_low = int((arr < self.low_score).sum())

        bonus = min(
            self.max_hit_bonus, n_high * self.high_bonus + n_very_high * self.very_high_bonus
        )
        penalty = min(self.max_low_penalty, n_low * self.low_penalty)
        consistency = 0.0
        if arr.size > 1 and float(arr.std()) < self.consistency_max_std:
            consistency = self.consistency_bonus

        raw = self.top_weight * top + self.mean_weight * mean + bonus - penalty + consistency
        return raw * self.scale

    def clamp(self, value: float) -> float:
        return max(self.floor, min(self.ceiling, value))


def _truncate_at_sentence(text: str, limit: int) -> str:
    """
    Cut `text` to at most `limit` chars, preferring the last sentence end;
    falls back to the last word boundary with an ellipsis.
    """
    if len(text) <= limit:
        return text
    window = text[:limit]
    ends = [m.end() for m in _SENTENCE_END.finditer(window)]
    if ends and ends[-1] >= limit // 3:
        return window[: ends[-1]].rstrip()
    cut = window.rfind(" ", 0, max(0, limit - 3))
    if cut <= 0:
        cut = max(0, limit - 3)
    return window[:cut].rstrip() + "..."


class AnswerGenerator:
    def __init__(
        self,
        llm: GenerationClient,
        *,
        relevance: Optional[RelevancePolicy] = None,
        confidence: Optional[ConfidencePolicy] = None,
        formatter: Optional[ResponseFormatter] = None,
        instructions: str = "",
        max_context_chars: int = 8000,
        max_sources: int = 8,
    ) -> None:
        self._llm = llm
        self._relevance = relevance or RelevancePolicy()
        self._confidence = confidence or ConfidencePolicy()
        self._formatter = formatter or ResponseFormatter()
        self._instructions = instructions
        self._max_context = max_context_chars
        self._max_sources = max_sources

    @classmethod
    def from_settings(cls, cfg: Settings, llm: GenerationClient) -> "AnswerGenerator":
        return cls(
            llm,
            relevance=RelevancePolicy(
                base=cfg.RELEVANCE_BASE_THRESHOLD,
                mid=cfg.RELEVANCE_MID_THRESHOLD,
                high=cfg.RELEVANCE_HIGH_THRESHOLD,
                mid_trigger=cfg.RELEVANCE_MID_TRIGGER,
                high_trigger=cfg.RELEVANCE_HIGH_TRIGGER,
                marginal_max_confidence=cfg.MARGINAL_MAX_CONFIDENCE,
            ),
            confidence=ConfidencePolicy(
                top_weight=cfg.CONF_TOP_WEIGHT,
                mean_weight=cfg.CONF_MEAN_WEIGHT,
                high_score=cfg.CONF_HIGH_SCORE,
                very_high_score=cfg.CONF_VERY_HIGH_SCORE,
                high_bonus=cfg.CONF_HIGH_BONUS,
                very_high_bonus=cfg.CONF_VERY_HIGH_BONUS,
                max_hit_bonus=cfg.CONF_MAX_HIT_BONUS,
                low_score=cfg.CONF_LOW_SCORE,
                low_penalty=cfg.CONF_LOW_PENALTY,
                max_low_penalty=cfg.CONF_MAX_LOW_PENALTY,
                consistency_max_std=cfg.CONF_CONSISTENCY_MAX_STD,
                consistency_bonus=cfg.CONF_CONSISTENCY_BONUS,
                scale=cfg.CONF_SCALE,
                floor=cfg.CONF_FLOOR,
                ceiling=cfg.CONF_CEILING,
                reject_below=cfg.CONF_REJECT_BELOW,
            ),
            formatter=ResponseFormatter(
                disclaimer=cfg.HEDGE_DISCLAIMER,
                hedge_max_avg_score=cfg.HEDGE_DISCLAIMER_MAX_AVG,
            ),
            instructions=cfg.ANSWER_SYSTEM_PROMPT,
            max_context_chars=cfg.MAX_CONTEXT_CHARS,
            max_sources=cfg.MAX_CONTEXT_SOURCES,
        )

    # ---------------- Conversational shortcut ----------------

    @staticmethod
    def conversational_reply(question: str) -> Optional[GeneratedAnswer]:
        intent = conversation.classify(question)
        if intent is None:
            return None
        logger.info("answer.conversational intent=%s", intent)
        return GeneratedAnswer(text=conversation.reply_for(intent), sources=[], confidence=1.0)

    # ---------------- Context ----------------

    def select_sources(self, hits: Sequence[SearchResult]) -> List[SearchResult]:
        """
        Best hit per (doc_id, page), strongest first, at most max_sources groups.
        """
        best: Dict[Tuple[str, int], SearchResult] = {}
        for h in hits:
            key = (h.payload.doc_id, h.payload.page)
            if key not in best or h.score > best[key].score:
                best[key] = h
        ranked = sorted(best.values(), key=lambda h: h.score, reverse=True)
        return ranked[: self._max_sources]

    def build_context(self, sources: Sequence[SearchResult]) -> Tuple[str, List[SearchResult]]:
        """
        Returns the context block and the sources that made it in.
        """
        blocks: List[str] = []
        used: List[SearchResult] = []
        length = 0
        for h in sources:
            header = (
                f"[Document: {humanize_doc_id(h.payload.doc_id)} | Page {h.payload.page} | "
                f"Relevance {round(h.score * 100)}%]\n"
            )
            body = h.payload.text.strip()
            block = f"{header}{body}\n\n"
            if length + len(block) <= self._max_context:
                blocks.append(block)
                used.append(h)
                length += len(block)
                continue

            room = self._max_context - length - len(header) - 2
            if room >= _MIN_TRUNCATED_CHARS:
                blocks.append(f"{header}{_truncate_at_sentence(body, room)}\n\n")
                used.append(h)
            break
        return "".join(blocks).strip(), used

    def build_prompt(self, question: str, context: str) -> str:
        return (
            f"{self._instructions}\n"
            f"DOCUMENT EXCERPTS:\n{context}\n\n"
            f"QUESTION: {question.strip()}\n\n"
            f"ANSWER:"
        )

    # ---------------- Answer ----------------

    async def generate_answer(
        self, question: str, hits: Sequence[SearchResult]
    ) -> GeneratedAnswer:
        shortcut = self.conversational_reply(question)
        if shortcut is not None:
            return shortcut

        if not hits:
            return GeneratedAnswer(text=NO_INFO_TEXT, sources=[], confidence=0.0)

        max_score = max(h.score for h in hits)
        threshold = self._relevance.threshold(max_score)
        relevant = [h for h in hits if h.score >= threshold]
        logger.info(
            "answer.filter hits=%d relevant=%d max=%.3f threshold=%.2f",
            len(hits),
            len(relevant),
            max_score,
            threshold,
        )

        if not relevant:
            if max_score > self._relevance.base:
                marginal = sorted(hits, key=lambda h: h.score, reverse=True)
                marginal = marginal[: self._relevance.marginal_sources]
                return GeneratedAnswer(
                    text=MARGINAL_TEXT,
                    sources=[_source(h) for h in marginal],
                    confidence=round(
                        min(self._relevance.marginal_max_confidence, max_score), 3
                    ),
                )
            return GeneratedAnswer(text=NOTHING_FOUND_TEXT, sources=[], confidence=0.0)

        scores = [h.score for h in relevant]
        blended = self._confidence.blend(scores)
        if blended < self._confidence.reject_below:
            # Too weak to trust whatever the model would say
            logger.info("answer.rejected confidence=%.3f", blended)
            return GeneratedAnswer(text=INSUFFICIENT_TEXT, sources=[], confidence=0.0)

        context, used = self.build_context(self.select_sources(relevant))
        prompt = self.build_prompt(question, context)
        raw = await self._llm.generate(prompt)

        text = self._formatter.format(raw, scores=[h.score for h in used])
        if not text:
            return GeneratedAnswer(text=INSUFFICIENT_TEXT, sources=[], confidence=0.0)

        confidence = round(self._confidence.clamp(blended), 3)
        logger.info(
            "answer.ok sources=%d context_chars=%d confidence=%.3f",
            len(used),
            len(context),
            confidence,
        )
        return GeneratedAnswer(
            text=text, sources=[_source(h) for h in used], confidence=confidence
        )


def _source(h: SearchResult) -> AnswerSource:
    return AnswerSource(
        doc_id=h.payload.doc_id,
        page=h.payload.page,
        relevance_score=round(h.score, 4),
    )

# core/response_formatter.py
import re
from typing import Sequence


class ResponseFormatter:
    """
    Cleans raw model output before it reaches the caller: echoed source markers,
    AI self-references and messy spacing are removed; line breaks survive.
    """

    def __init__(self, disclaimer: str = "", hedge_max_avg_score: float = 0.7) -> None:
        self._disclaimer = disclaimer
        self._hedge_max_avg = hedge_max_avg_score

        # [Source: report.pdf, Page 3], [Sources: ...], [Document: ... | Page 2 | ...], (Source: ...)
        self.citation_pattern = re.compile(
            r"\s*(?:\[(?:sources?|documents?|doc|ref)\s*:[^\]]*\]|\((?:sources?|documents?)\s*:[^)]*\))",
            re.IGNORECASE,
        )

        # Leading filler: "As an AI language model, ...", "Based on the provided context, ..."
        self.preamble_pattern = re.compile(
            r"^(?:(?:certainly|sure|of course|absolutely)[.,!]*\s*)?"
            r"(?:as an ai(?: language model| assistant)?[^,.]*[,.]\s*"
            r"|i am an ai(?: language model| assistant)?[^.]*\.\s*"
            r"|based (?:solely |only )?on (?:the )?(?:provided |given |available )?"
            r"(?:context|documents?|excerpts?|information|sources?)[^,:]*[,:]\s*"
            r"|according to (?:the )?(?:provided |given )?(?:context|documents?|excerpts?)[^,:]*[,:]\s*"
            r"|here(?: is|'s) (?:the|your|an?) (?:answer|response|summary)[^:]*:\s*)+",
            re.IGNORECASE,
        )

        # Self-referential sentences anywhere in the text
        self.self_ref_pattern = re.compile(
            r"(?:^|(?<=[.!?]\s))(?:as an ai|i am an ai|i'm an ai)[^.!?]*[.!?]\s*",
            re.IGNORECASE | re.MULTILINE,
        )

        self.horizontal_ws_pattern = re.compile(r"[ \t\u00a0]+")
        self.trailing_ws_pattern = re.compile(r"[ \t]+$", re.MULTILINE)
        self.spacing_pattern = re.compile(r"\n{3,}")
        self.space_before_punct = re.compile(r" +([.,;:!?])")

        self.hedge_pattern = re.compile(
            r"\b(?:might|could|may|possibly|perhaps|likely|unclear|not (?:entirely )?(?:sure|certain))\b",
            re.IGNORECASE,
        )

    def format(self, text: str, scores: Sequence[float] = ()) -> str:
        if not text or not isinstance(text, str):
            return ""
        text = text.strip()
        text = self._strip_citations(text)
        text = self._strip_self_references(text)
        text = self._normalize_spacing(text)
        text = self._capitalize(text)
        return self._maybe_disclaim(text, scores)

    def _strip_citations(self, text: str) -> str:
        return self.citation_pattern.sub("", text)

    def _strip_self_references(self, text: str) -> str:
        text = self.preamble_pattern.sub("", text, count=1)
        return self.self_ref_pattern.sub("", text)

    def _normalize_spacing(self, text: str) -> str:
        # Indentation is kept so nested lists survive
        lines = []
        for line in text.split("\n"):
            indent = line[: len(line) - len(line.lstrip(" \t"))]
            body = self.horizontal_ws_pattern.sub(" ", line.strip(" \t"))
            lines.append(indent + body if body else "")
        text = "\n".join(lines)
        text = self.space_before_punct.sub(r"\1", text)
        text = self.trailing_ws_pattern.sub("", text)
        text = self.spacing_pattern.sub("\n\n", text)
        return text.strip()

    @staticmethod
    def _capitalize(text: str) -> str:
        if text and text[0].islower():
            return text[0].upper() + text[1:]
        return text

    def is_hedged(self, text: str) -> bool:
        return bool(self.hedge_pattern.search(text or ""))

    def _maybe_disclaim(self, text: str, scores: Sequence[float]) -> str:
        if not self._disclaimer or not scores or not text:
            return text
        avg = sum(scores) / len(scores)
        if avg < self._hedge_max_avg and self.is_hedged(text):
            return text + self._disclaimer
        return text

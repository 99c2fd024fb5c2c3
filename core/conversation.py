# core/conversation.py
import re
from typing import Dict, List, Optional, Pattern, Tuple

# Whole-message patterns only; "hello, what does section 3 say" still goes to retrieval.
_TAIL = r"(?:\s+(?:there|again|everyone|all|bot|assistant))?[\s!.,?]*$"

_PATTERNS: List[Tuple[str, Pattern[str]]] = [
    (
        "greeting",
        re.compile(
            r"^(?:hi+|hello+|hey+|hiya|howdy|greetings|yo|good\s+(?:morning|afternoon|evening|day))"
            + _TAIL,
            re.IGNORECASE,
        ),
    ),
    (
        "identity",
        re.compile(
            r"^(?:who\s+are\s+you|what\s+are\s+you|what\s+can\s+you\s+do|what\s+do\s+you\s+do"
            r"|what\s+is\s+your\s+name|introduce\s+yourself)[\s!.,?]*$",
            re.IGNORECASE,
        ),
    ),
    (
        "wellbeing",
        re.compile(r"^how\s+are\s+you(?:\s+doing)?(?:\s+today)?[\s!.,?]*$", re.IGNORECASE),
    ),
    (
        "thanks",
        re.compile(
            r"^(?:thanks?|thank\s+you|thx|ty|many\s+thanks|thanks\s+a\s+lot|much\s+appreciated)"
            r"(?:\s+(?:so\s+much|very\s+much|a\s+lot))?[\s!.,?]*$",
            re.IGNORECASE,
        ),
    ),
    (
        "farewell",
        re.compile(
            r"^(?:bye+|goodbye|good\s+bye|see\s+you(?:\s+later)?|see\s+ya|farewell|take\s+care|cya)"
            r"[\s!.,?]*$",
            re.IGNORECASE,
        ),
    ),
]

_REPLIES: Dict[str, str] = {
    "greeting": (
        "Hello! I can answer questions about the documents you've uploaded. "
        "What would you like to know?"
    ),
    "identity": (
        "I'm a document assistant. I search the PDFs that have been ingested into this "
        "service and answer your questions using what they contain."
    ),
    "wellbeing": (
        "I'm doing well, thanks for asking! Ask me anything about your documents."
    ),
    "thanks": "You're welcome! Let me know if there's anything else you'd like to find in your documents.",
    "farewell": "Goodbye! Come back any time you have questions about your documents.",
}


def classify(message: str) -> Optional[str]:
    """
    Return the conversational intent of `message`, or None for a real question.
    """
    text = (message or "").strip()
    if not text or len(text) > 60:
        return None
    for intent, pattern in _PATTERNS:
        if pattern.match(text):
            return intent
    return None


def reply_for(intent: str) -> str:
    return _REPLIES[intent]

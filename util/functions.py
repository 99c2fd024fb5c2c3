# util/functions.py
from datetime import datetime, timezone


def clip_chars(text: str, max_chars: int = 100) -> str:
    """
    Shorten `text` for log lines. Adds an ellipsis when trimming occurs.
    """
    text = text or ""
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "..."


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def humanize_doc_id(doc_id: str) -> str:
    """
    'annual_report-2023.pdf' -> 'Annual Report 2023'
    """
    name = doc_id or ""
    if name.lower().endswith(".pdf"):
        name = name[:-4]
    name = name.replace("_", " ").replace("-", " ")
    words = [w for w in name.split() if w]
    if not words:
        return doc_id
    return " ".join(w if w.isupper() else w.capitalize() for w in words)

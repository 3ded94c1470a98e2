# questions.py
from __future__ import annotations
import base64
import re
from typing import Optional

LEAD_WORDS = ("what", "how", "why", "when", "where", "which", "can", "could")
CACHE_KEY_PREFIX = "analysis_"

_LEAD = "|".join(LEAD_WORDS)
# a lead word at the start of the text or after whitespace, followed by more words
LEAD_RE = re.compile(rf"(?:^|(?<=\s))(?:{_LEAD})\s+(?=\S)", re.IGNORECASE)
LEAD_WORD_RE = re.compile(rf"(?:{_LEAD})\s+", re.IGNORECASE)
NEXT_LEAD_RE = re.compile(rf"\s+(?:{_LEAD})\b", re.IGNORECASE)


def _normalize(text: str) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def _question_from(text: str, start: int) -> str:
    """Question text starting at a lead word: up to the next '?', else up to
    the next lead word or the end of the text."""
    body_start = LEAD_WORD_RE.match(text, start).end()
    qmark = text.find("?", body_start)
    if qmark != -1:
        return text[start:qmark + 1].strip()
    nxt = NEXT_LEAD_RE.search(text, body_start)
    end = nxt.start() if nxt else len(text)
    return text[start:end].strip()


def extract_latest_question(text: str) -> Optional[str]:
    """Return the most recently asked question in a transcript, or None.

    >>> extract_latest_question("What is X? Also, how do you handle outages?")
    'how do you handle outages?'
    """
    clean = _normalize(text)
    starts = [m.start() for m in LEAD_RE.finditer(clean)]
    if not starts:
        return None
    return _question_from(clean, starts[-1]) or None


def cache_key_for(text: str) -> Optional[str]:
    question = extract_latest_question(text)
    if not question:
        return None
    return CACHE_KEY_PREFIX + base64.b64encode(question.encode("utf-8")).decode("ascii")


def question_from_key(key: str) -> str:
    if not key.startswith(CACHE_KEY_PREFIX):
        raise ValueError(f"not an analysis cache key: {key!r}")
    return base64.b64decode(key[len(CACHE_KEY_PREFIX):]).decode("utf-8")

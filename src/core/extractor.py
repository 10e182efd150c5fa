"""
Quicktask — Temporal Extractor.

Turns free-form text (typed, or a confirmed voice transcript) into a task
title plus at most two time anchors. The first recognised date/time phrase
becomes the deadline, the second the reminder. Binding is positional only.

Extraction never fails: a parser error or a text without any date/time
phrase degrades to a title-only result.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime

from pydantic import BaseModel

from src.ports.temporal_parser_port import TemporalParserPort

logger = logging.getLogger(__name__)

_DEFAULT_PLACEHOLDER = "voice task"

# ---------------------------------------------------------------------------
# Title-cleaning vocabulary
# ---------------------------------------------------------------------------

_CONNECTIVES = r"at|by|before|on|when|until"

_REMINDER_MARKERS = re.compile(
    r"\b(?:remind\s+me\s+to|remind\s+me|reminder|remind)\b",
    re.IGNORECASE,
)

_LEADING_CONNECTIVES = re.compile(rf"^(?:(?:{_CONNECTIVES}|to)\s+)+", re.IGNORECASE)
_TRAILING_CONNECTIVES = re.compile(rf"(?:\s+(?:{_CONNECTIVES}|to))+$", re.IGNORECASE)

# Chinese markers carried over from the voice flow of the mobile app.
# Longer phrases first so 之前提醒 is not split by 之前.
_ZH_MARKERS = re.compile(r"之前提醒|提醒我|之前|提醒|几号|几点|什么时候|在|到")

_EDGE_PUNCTUATION = " \t\n,.;:!?-，。；：！？、"


class ExtractedTask(BaseModel):
    """Structured result of temporal extraction.

    JSON example:
    {
        "title": "call mom",
        "deadline": "2025-01-02T17:00:00",
        "reminder": null,
        "phrases": ["tomorrow at 5pm"]
    }
    """
    title: str
    deadline: datetime | None = None
    reminder: datetime | None = None
    phrases: list[str] = []


class TemporalExtractor:
    """Finds deadline/reminder phrases in text and cleans them out of the title."""

    def __init__(
        self,
        parser: TemporalParserPort,
        placeholder_title: str = _DEFAULT_PLACEHOLDER,
        languages: list[str] | None = None,
    ) -> None:
        self._parser = parser
        self._placeholder = placeholder_title
        self._strip_chinese = "zh" in (languages or [])

    def extract(self, raw_text: str, now: datetime) -> ExtractedTask:
        """Extract a title, deadline and reminder from *raw_text*.

        Relative phrases resolve against *now*; the same (raw_text, now)
        pair always yields the same result.
        """
        text = (raw_text or "").strip()
        matches = self._find_phrases(text, now)

        if len(matches) > 2:
            logger.debug(
                "Found %d date/time phrases, keeping the first two: %s",
                len(matches), [span for span, _ in matches],
            )
            matches = matches[:2]

        deadline = matches[0][1] if matches else None
        reminder = matches[1][1] if len(matches) > 1 else None
        phrases = [span for span, _ in matches]

        title = self._clean_title(text, phrases) or self._placeholder
        logger.info(
            "Extracted '%s' (deadline=%s, reminder=%s)",
            title,
            deadline.isoformat() if deadline else None,
            reminder.isoformat() if reminder else None,
        )
        return ExtractedTask(title=title, deadline=deadline, reminder=reminder, phrases=phrases)

    def _find_phrases(self, text: str, now: datetime) -> list[tuple[str, datetime]]:
        if not text:
            return []
        try:
            return list(self._parser.parse(text, now))
        except Exception as exc:
            logger.warning("Temporal parsing failed for '%s': %s", text[:80], exc)
            return []

    def _clean_title(self, text: str, phrases: list[str]) -> str:
        cleaned = text
        for span in phrases:
            # Take a connective sitting right before the phrase with it ("call mom at 5pm").
            pattern = rf"(?:\b(?:{_CONNECTIVES})\s+)?{re.escape(span)}"
            cleaned = re.sub(pattern, " ", cleaned, count=1, flags=re.IGNORECASE)

        cleaned = _REMINDER_MARKERS.sub(" ", cleaned)
        if self._strip_chinese:
            cleaned = _ZH_MARKERS.sub("", cleaned)

        cleaned = " ".join(cleaned.split())
        cleaned = cleaned.strip(_EDGE_PUNCTUATION)
        cleaned = _LEADING_CONNECTIVES.sub("", cleaned)
        cleaned = _TRAILING_CONNECTIVES.sub("", cleaned)
        return cleaned.strip(_EDGE_PUNCTUATION)

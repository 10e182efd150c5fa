"""dateparser adapter — implements TemporalParserPort.

Wraps ``dateparser.search.search_dates`` so relative expressions
("tomorrow at 5pm", "in two hours") resolve against the caller's ``now``
instead of the process clock.

Weekday phrases ("friday at 10am", "next Friday") are resolved here before
dateparser sees the text: search_dates splits them into odd fragments and
can turn "at 10" into October. Their spans are blanked out of the text that
goes to search_dates, and the two sets of matches are merged by position.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone

import dateparser
from dateparser.search import search_dates

logger = logging.getLogger(__name__)

_WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

_TIME = r"\d{1,2}(?::\d{2})?\s*[ap]\.?m\b\.?|\d{1,2}:\d{2}\b|noon\b|midnight\b"

_WEEKDAY_PHRASE = re.compile(
    rf"\b(?:(?P<lead>{_TIME})\s+(?:on\s+)?)?"
    rf"(?:(?P<rel>next|this|coming)\s+)?"
    rf"(?P<day>{'|'.join(_WEEKDAYS)})\b"
    rf"(?:\s+(?:at\s+)?(?P<time>{_TIME})|\s+at\s+(?P<hour>\d{{1,2}})\b(?![:.]\d))?",
    re.IGNORECASE,
)

_CLOCK = re.compile(r"(\d{1,2})(?::(\d{2}))?\s*([ap]m)?")

# "chapter 3 tomorrow": a leading number is only part of the date when a
# unit, meridiem or month name follows it.
_LEADING_NUMBER = re.compile(r"(\d+)\s+(\S.*)", re.DOTALL)
_NUMBER_FOLLOWERS = re.compile(
    r"(?:a\.?m\b|p\.?m\b|o'?clock|h\b|hrs?\b|hours?\b|mins?\b|minutes?\b|secs?\b|seconds?\b"
    r"|days?\b|weeks?\b|months?\b|years?\b|st\b|nd\b|rd\b|th\b"
    r"|jan|feb|mar|apr|may\b|jun|jul|aug|sep|oct|nov|dec)",
    re.IGNORECASE,
)
_BARE_NUMBER = re.compile(r"\d{1,4}")


class DateparserTemporalParser:
    """dateparser implementation of TemporalParserPort."""

    def __init__(self, languages: list[str] | None = None) -> None:
        self._languages = list(languages or ["en"])

    def parse(self, text: str, now: datetime) -> list[tuple[str, datetime]]:
        """Return (span, datetime) pairs in the order they appear in *text*.

        dateparser works on wall-clock values; results are re-attached to
        ``now``'s timezone so they compare cleanly with it. A phrase naming
        its own timezone ("5pm EST") is converted into ``now``'s timezone.
        """
        if not text or not text.strip():
            return []

        found = _weekday_matches(text, now)
        masked = text
        for start, span, _ in found:
            masked = masked[:start] + " " * len(span) + masked[start + len(span):]

        found.extend(self._search(masked, now))
        found.sort(key=lambda item: item[0])

        matches = [(span, _align_timezone(dt, now)) for _, span, dt in found]
        if matches:
            logger.debug("dateparser matched %d span(s) in '%s'", len(matches), text[:80])
        return matches

    # -----------------------------------------------------------------------
    # dateparser calls
    # -----------------------------------------------------------------------

    def _settings(self, base: datetime) -> dict:
        # Wall-clock base labelled as UTC: plain phrases keep their written
        # time, phrases with their own zone come back aware and in UTC.
        return {
            "RELATIVE_BASE": base,
            "PREFER_DATES_FROM": "future",
            "TIMEZONE": "UTC",
        }

    def _search(self, text: str, now: datetime) -> list[tuple[int, str, datetime]]:
        if not text.strip():
            return []

        results = search_dates(
            text,
            languages=self._languages,
            settings=self._settings(now.replace(tzinfo=None)),
        )
        if not results:
            return []

        out = []
        cursor = 0
        for span, dt in results:
            start = text.find(span, cursor)
            if start < 0:
                start = text.find(span)
            if start < 0:
                logger.debug("Dropping '%s': not found in the text", span)
                continue
            cursor = start + len(span)

            if _BARE_NUMBER.fullmatch(span.strip()):
                logger.debug("Dropping bare number '%s'", span)
                continue

            start, span, dt = self._trim_leading_number(start, span, dt, now)
            if dt.tzinfo is not None and now.tzinfo is not None:
                # Re-resolve against the real instant of now, not its wall time.
                dt = self._parse_one(span, now.astimezone(timezone.utc).replace(tzinfo=None)) or dt
            out.append((start, span, dt))
        return out

    def _trim_leading_number(
        self, start: int, span: str, dt: datetime, now: datetime,
    ) -> tuple[int, str, datetime]:
        match = _LEADING_NUMBER.fullmatch(span)
        if match is None or _NUMBER_FOLLOWERS.match(match.group(2)):
            return start, span, dt

        rest = match.group(2)
        reparsed = self._parse_one(rest, now.replace(tzinfo=None))
        if reparsed is None:
            return start, span, dt
        logger.debug("Trimmed '%s' to '%s'", span, rest)
        return start + match.start(2), rest, reparsed

    def _parse_one(self, text: str, base: datetime) -> datetime | None:
        return dateparser.parse(text, languages=self._languages, settings=self._settings(base))


# ---------------------------------------------------------------------------
# Weekday phrases
# ---------------------------------------------------------------------------

def _weekday_matches(text: str, now: datetime) -> list[tuple[int, str, datetime]]:
    """Resolve weekday phrases to the next matching day after *now*.

    A bare weekday (or "this"/"coming") is today only when it carries a time
    still ahead of now; "next" always skips today. Without a time of day the
    phrase keeps now's time, like dateparser does for "tomorrow".
    """
    base = now.replace(tzinfo=None)
    out = []
    for match in _WEEKDAY_PHRASE.finditer(text):
        start, end = match.span()

        clock = None
        if match.group("time") or match.group("hour"):
            clock = _clock(match.group("time") or match.group("hour"))
            if clock is None:
                end = match.end("day")
        lead = None
        if match.group("lead"):
            lead = _clock(match.group("lead"))
            if lead is None:
                start = match.start("rel") if match.group("rel") else match.start("day")
        clock = clock or lead

        target = _WEEKDAYS.index(match.group("day").lower())
        days_ahead = (target - base.weekday()) % 7
        when = base + timedelta(days=days_ahead)
        if clock is not None:
            when = when.replace(hour=clock[0], minute=clock[1], second=0, microsecond=0)

        relation = (match.group("rel") or "").lower()
        if days_ahead == 0 and (relation == "next" or when <= base):
            when += timedelta(days=7)

        out.append((start, text[start:end], when))
    return out


def _clock(raw: str) -> tuple[int, int] | None:
    value = raw.strip().lower().replace(".", "")
    if value == "noon":
        return 12, 0
    if value == "midnight":
        return 0, 0

    match = _CLOCK.fullmatch(value)
    if match is None:
        return None
    hour, minute, meridiem = int(match.group(1)), int(match.group(2) or 0), match.group(3)
    if meridiem:
        if not 1 <= hour <= 12:
            return None
        hour = hour % 12 + (12 if meridiem == "pm" else 0)
    if hour > 23 or minute > 59:
        return None
    return hour, minute


def _align_timezone(dt: datetime, now: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=now.tzinfo)
    if now.tzinfo is not None:
        return dt.astimezone(now.tzinfo)
    return dt.astimezone(timezone.utc).replace(tzinfo=None)

"""Temporal parser port — natural-language date/time recognition.

The extractor only needs an ordered list of (matched span, resolved
datetime) pairs, resolved relative to an explicit reference time.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol


class TemporalParserPort(Protocol):
    """Abstract date/time phrase finder used by the extractor."""

    def parse(self, text: str, now: datetime) -> list[tuple[str, datetime]]: ...

"""Keyword and stop-word filtering (core domain)."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Tuple

from core.models import ChannelSource


@dataclass(frozen=True)
class ChannelFilter:
    """Lower-cased keyword lists for one channel."""

    keywords: Tuple[str, ...]
    stop_words: Tuple[str, ...]

    @classmethod
    def for_channel(cls, channel: ChannelSource) -> "ChannelFilter":
        return cls(
            keywords=_lowered(channel.keywords),
            stop_words=_lowered(channel.stop_words),
        )

    def keyword_hits(self, text: str) -> List[str]:
        """Return matched keywords, or an empty list if the text is rejected.

        Matching logic:
        - If any stop-word is present, nothing matches.
        - Otherwise every keyword found as a case-insensitive substring is a hit.
        """

        lowered = text.lower()
        if any(stop in lowered for stop in self.stop_words):
            return []
        return [keyword for keyword in self.keywords if keyword in lowered]

    def accepts(self, text: str) -> bool:
        return bool(self.keyword_hits(text))


def _lowered(values: Iterable[str]) -> Tuple[str, ...]:
    # Blank entries would match every message, so drop them.
    return tuple(value.strip().lower() for value in values if value and value.strip())


def within_lookback(published_at: datetime, cutoff: datetime) -> bool:
    return published_at >= cutoff

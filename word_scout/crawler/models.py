"""
Data models for the WordScout crawler.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

#: normalized word -> number of occurrences on one page
WordFrequency = Dict[str, int]


@dataclass(frozen=True, slots=True)
class ScrapeResult:
    """Outcome of one successful fetch + extract task."""

    url: str
    words: WordFrequency


class FetchError(Exception):
    """Transport failure or non-success response for a single URL."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason

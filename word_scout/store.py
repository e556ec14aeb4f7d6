"""word_scout.store: lookup of word frequencies keyed by URL."""

from __future__ import annotations

from typing import Dict, Iterator, Optional, Protocol

from word_scout.crawler.models import WordFrequency

__all__ = ["ResultStore", "InMemoryResultStore"]


class ResultStore(Protocol):
    """Interface the crawler needs from a result store.

    Implementations are not required to be thread-safe: the crawler is the
    only writer and commits its results one at a time after all tasks finish.
    A store shared with other writers must bring its own locking.
    """

    def exists(self, url: str) -> bool: ...

    def get(self, url: str) -> Optional[WordFrequency]:
        """Return the frequencies for *url*, or ``None`` when not found."""
        ...

    def set(self, url: str, frequencies: WordFrequency) -> None: ...


class InMemoryResultStore:
    """Process-local store backed by a plain dict."""

    def __init__(self) -> None:
        self._data: Dict[str, WordFrequency] = {}

    def exists(self, url: str) -> bool:
        return url in self._data

    def get(self, url: str) -> Optional[WordFrequency]:
        return self._data.get(url)

    def set(self, url: str, frequencies: WordFrequency) -> None:
        self._data[url] = frequencies

    def as_dict(self) -> Dict[str, WordFrequency]:
        """Shallow copy of the contents, e.g. for JSON output."""
        return dict(self._data)

    def __contains__(self, url: object) -> bool:
        return url in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"<InMemoryResultStore urls={len(self._data)}>"

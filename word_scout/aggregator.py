# File: word_scout/aggregator.py
"""word_scout.aggregator: сводка результатов обхода для отчётов."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, TypedDict

from word_scout.crawler.models import WordFrequency
from word_scout.store import ResultStore


class WordCount(TypedDict):
    """Слово и число его вхождений."""

    word: str
    count: int


class PageStats(TypedDict, total=False):
    """Статистика по одной странице."""

    url: str
    total_words: int
    unique_words: int
    top_words: List[WordCount]


@dataclass(slots=True)
class CrawlReport:
    """Итог обхода: статистика страниц, частоты слов, ошибки и пропуски."""

    pages: List[PageStats] = field(default_factory=list)
    frequencies: Dict[str, WordFrequency] = field(default_factory=dict)
    failures: Dict[str, str] = field(default_factory=dict)
    skipped: List[str] = field(default_factory=list)

    def json(self, *, pretty: bool = False) -> str:
        """JSON-представление отчёта."""
        return json.dumps(asdict(self), ensure_ascii=False, indent=2 if pretty else None)


def top_words(words: WordFrequency, n: int) -> List[WordCount]:
    """*n* самых частых слов, при равенстве по алфавиту."""
    ranked = sorted(words.items(), key=lambda item: (-item[1], item[0]))
    return [{"word": w, "count": c} for w, c in ranked[:n]]


def _page_stats(url: str, words: WordFrequency, top_n: int) -> PageStats:
    return {
        "url": url,
        "total_words": sum(words.values()),
        "unique_words": len(words),
        "top_words": top_words(words, top_n),
    }


def aggregate_results(
    urls: Iterable[str],
    store: ResultStore,
    failures: Optional[Dict[str, str]] = None,
    skipped: Sequence[str] = (),
    top_n: int = 10,
) -> CrawlReport:
    """Собирает CrawlReport по запрошенным URL, читая хранилище через get()."""
    report = CrawlReport(failures=dict(failures or {}), skipped=list(skipped))
    for url in urls:
        if url in report.frequencies:
            continue
        words = store.get(url)
        if words is None:
            continue
        report.frequencies[url] = dict(words)
        report.pages.append(_page_stats(url, words, top_n))
    return report


__all__ = ["CrawlReport", "PageStats", "WordCount", "aggregate_results", "top_words"]

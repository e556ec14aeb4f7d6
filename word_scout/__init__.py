# word_scout/__init__.py
"""
WordScout package initializer.
Defines package version and exposes the crawl API.
"""
__version__ = "0.1.0"

from word_scout.crawler.crawler import WordCrawler, crawl_urls
from word_scout.parser.text_extractor import TextExtractor, count_words
from word_scout.store import InMemoryResultStore, ResultStore

__all__ = [
    "__version__",
    "WordCrawler",
    "crawl_urls",
    "TextExtractor",
    "count_words",
    "InMemoryResultStore",
    "ResultStore",
]

# File: tests/conftest.py
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Union

import pytest

from word_scout.config import CrawlerConfig
from word_scout.crawler.models import FetchError


class StaticBody:
    """In-memory page body."""

    def __init__(self, data: bytes) -> None:
        self.data = data

    async def read(self) -> bytes:
        return self.data


class FakeFetcher:
    """
    Serves pages from a dict; an Exception value makes the fetch fail.
    Tracks how many fetches are open at once and how many bodies were released.
    """

    def __init__(self, pages: Dict[str, Union[str, Exception]], delay: float = 0.0) -> None:
        self.pages = pages
        self.delay = delay
        self.active = 0
        self.max_active = 0
        self.calls: list[str] = []
        self.released = 0

    @asynccontextmanager
    async def fetch(self, url: str) -> AsyncIterator[StaticBody]:
        self.calls.append(url)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            page = self.pages.get(url, FetchError(url, "HTTP 404"))
            if isinstance(page, Exception):
                raise page
            try:
                yield StaticBody(page.encode("utf-8"))
            finally:
                self.released += 1
        finally:
            self.active -= 1


@pytest.fixture()
def basic_config() -> CrawlerConfig:
    """
    Return a basic valid CrawlerConfig for crawler tests.
    """
    return CrawlerConfig(concurrency=2, timeout=2.0, user_agent="TestAgent/1.0")


@pytest.fixture()
def sample_pages() -> Dict[str, str]:
    """
    Three small pages with known word counts.
    """
    return {
        "http://example.com/a": "<html><body><h1>Alpha Beta</h1>\n<p>beta gamma</p></body></html>",
        "http://example.com/b": "<p>The Cat's Hat!!</p>",
        "http://example.com/c": "<div>Nothing here</div>",
    }


@pytest.fixture()
def make_fetcher():
    """
    Factory for FakeFetcher instances.
    """
    return FakeFetcher

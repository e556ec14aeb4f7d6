# === FILE: word_scout/crawler/crawler.py ===
from __future__ import annotations

import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Sequence

from aiohttp import ClientSession, ClientTimeout

from word_scout.config import CrawlerConfig
from word_scout.crawler.fetcher import Fetcher, HttpFetcher
from word_scout.crawler.models import FetchError, ScrapeResult
from word_scout.logger import LOGGER_NAME
from word_scout.parser.text_extractor import TextExtractor
from word_scout.store import InMemoryResultStore, ResultStore

__all__ = ("WordCrawler", "crawl_urls")


class WordCrawler:
    """Fetches URLs in parallel, counts their words and fills a result store.

    At most ``config.concurrency`` URLs are between "budget acquired" and
    "result emitted" at any moment.  Results travel through a queue and are
    written to the store only after every task has finished, so the store
    never sees concurrent writers.
    """

    def __init__(
        self,
        config: CrawlerConfig,
        *,
        fetcher: Optional[Fetcher] = None,
        extractor: Optional[TextExtractor] = None,
        store: Optional[ResultStore] = None,
    ) -> None:
        self.config = config
        self.concurrency: int = config.concurrency
        self.fetcher: Optional[Fetcher] = fetcher
        self.extractor = extractor or TextExtractor(config.allowed_tags)
        self.store: ResultStore = store if store is not None else InMemoryResultStore()
        self.failures: Dict[str, str] = {}
        self.skipped: List[str] = []
        self.in_flight = 0
        self.peak_in_flight = 0
        self.session: Optional[ClientSession] = None
        self.logger = logging.getLogger(LOGGER_NAME)
        self._executor: Optional[ThreadPoolExecutor] = None

    async def __aenter__(self) -> WordCrawler:
        if self.fetcher is None:
            self.session = ClientSession(
                timeout=ClientTimeout(total=self.config.timeout),
                headers={"User-Agent": self.config.user_agent},
            )
            self.fetcher = HttpFetcher(self.session)
        self._executor = ThreadPoolExecutor(
            max_workers=self.concurrency, thread_name_prefix="word-scout"
        )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        executor, self._executor = self._executor, None
        if executor is not None:
            if exc_type is None:
                await asyncio.get_running_loop().run_in_executor(None, executor.shutdown)
            else:
                # cancelled or failed: leave running extractions behind
                executor.shutdown(wait=False, cancel_futures=True)
        if self.session and not self.session.closed:
            await self.session.close()

    async def crawl(self, urls: Sequence[str]) -> ResultStore:
        """Scrape every URL and commit the successes to :attr:`store`.

        Fetch failures are logged and collected in :attr:`failures`.  Any
        other exception is re-raised, but only after all tasks are done and
        the results of the others have been committed.
        """
        if self.fetcher is None or self._executor is None:
            raise RuntimeError("Crawler not initialized, use 'async with WordCrawler(...)'")
        self.logger.info("Старт обхода: %d URL, параллельность %d", len(urls), self.concurrency)
        start = time.monotonic()

        budget = asyncio.Semaphore(self.concurrency)
        results: asyncio.Queue[ScrapeResult] = asyncio.Queue()
        tasks = []
        for url in urls:
            if self.config.skip_cached and self.store.exists(url):
                self.logger.debug("Already in store, skipping %s", url)
                self.skipped.append(url)
                continue
            tasks.append(asyncio.create_task(self._scrape(url, budget, results)))

        # barrier: nothing is committed before every task is done
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)
        written = self._commit(results)

        duration = time.monotonic() - start
        self.logger.info(
            "Завершено: %d страниц, %d ошибок за %.2f с", written, len(self.failures), duration
        )
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
        return self.store

    async def _scrape(
        self, url: str, budget: asyncio.Semaphore, results: asyncio.Queue[ScrapeResult]
    ) -> None:
        loop = asyncio.get_running_loop()
        async with budget:
            self.in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
            try:
                async with self.fetcher.fetch(url) as body:  # type: ignore[union-attr]
                    markup = await body.read()
                words = await loop.run_in_executor(
                    self._executor, self.extractor.count_words, markup
                )
                results.put_nowait(ScrapeResult(url, words))
                self.logger.debug("Counted %d distinct words on %s", len(words), url)
            except FetchError as exc:
                self.failures[url] = exc.reason
                self.logger.error("Failed %s: %s", url, exc.reason)
            finally:
                self.in_flight -= 1

    def _commit(self, results: asyncio.Queue[ScrapeResult]) -> int:
        """Drain *results* into the store, writing each URL at most once.

        A URL listed twice keeps the first result that arrived.  Entries left
        by an earlier crawl are replaced.
        """
        written: set[str] = set()
        while not results.empty():
            result = results.get_nowait()
            if result.url in written:
                self.logger.warning("Duplicate result for %s ignored", result.url)
                continue
            self.store.set(result.url, result.words)
            written.add(result.url)
        return len(written)


async def _crawl(
    urls: Sequence[str],
    config: CrawlerConfig,
    store: Optional[ResultStore],
    fetcher: Optional[Fetcher],
) -> ResultStore:
    async with WordCrawler(config, fetcher=fetcher, store=store) as crawler:
        return await crawler.crawl(urls)


def crawl_urls(
    urls: Sequence[str],
    config: Optional[CrawlerConfig] = None,
    *,
    store: Optional[ResultStore] = None,
    fetcher: Optional[Fetcher] = None,
) -> ResultStore:
    """Blocking helper: run one crawl in a fresh event loop."""
    return asyncio.run(_crawl(urls, config or CrawlerConfig(), store, fetcher))

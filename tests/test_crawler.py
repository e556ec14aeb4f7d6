# File: tests/test_crawler.py
# Test-suite for the WordScout crawler: bounded concurrency, failure isolation
# and the single-writer commit into the result store.
from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from aiohttp import ClientSession, ClientTimeout, web

from word_scout.config import CrawlerConfig
from word_scout.crawler.crawler import WordCrawler, crawl_urls
from word_scout.crawler.fetcher import HttpFetcher
from word_scout.crawler.models import FetchError
from word_scout.logger import LOGGER_NAME
from word_scout.parser.text_extractor import TextExtractor
from word_scout.store import InMemoryResultStore


#: number of seconds a “slow” handler sleeps
SLOW_SLEEP: float = 1.0


async def run_crawler(config: CrawlerConfig, urls, **kwargs) -> WordCrawler:
    """Run one crawl with a hard timeout and return the finished crawler."""
    async with WordCrawler(config, **kwargs) as crawler:
        await asyncio.wait_for(crawler.crawl(urls), timeout=15.0)
    return crawler


# --------------------------------------------------------------------------- #
#                         Orchestration (fake fetcher)                        #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio()
async def test_empty_url_list(make_fetcher, basic_config):
    fetcher = make_fetcher({})
    crawler = await run_crawler(basic_config, [], fetcher=fetcher)
    assert len(crawler.store) == 0
    assert crawler.failures == {}
    assert fetcher.calls == []


@pytest.mark.asyncio()
async def test_all_fetches_succeed(make_fetcher, basic_config, sample_pages):
    fetcher = make_fetcher(sample_pages)
    crawler = await run_crawler(basic_config, list(sample_pages), fetcher=fetcher)
    store = crawler.store

    assert len(store) == 3
    assert store.get("http://example.com/a") == {"alpha": 1, "beta": 2, "gamma": 1}
    assert store.get("http://example.com/b") == {"the": 1, "hat": 1}
    # a page without allowed tags is still scraped, just empty
    assert store.get("http://example.com/c") == {}
    assert crawler.failures == {}


@pytest.mark.asyncio()
async def test_single_failing_url_leaves_store_empty(make_fetcher, basic_config):
    fetcher = make_fetcher({})
    crawler = await run_crawler(basic_config, ["http://example.com/missing"], fetcher=fetcher)
    assert len(crawler.store) == 0
    assert crawler.failures == {"http://example.com/missing": "HTTP 404"}
    assert crawler.in_flight == 0


@pytest.mark.asyncio()
async def test_failures_do_not_affect_other_urls(make_fetcher, basic_config, sample_pages):
    pages = dict(sample_pages)
    pages["http://example.com/down"] = FetchError("http://example.com/down", "connection refused")
    urls = ["http://example.com/down", *sample_pages, "http://example.com/missing"]
    fetcher = make_fetcher(pages, delay=0.01)

    crawler = await run_crawler(basic_config, urls, fetcher=fetcher)

    assert set(crawler.store) == set(sample_pages)
    assert not crawler.store.exists("http://example.com/down")
    assert not crawler.store.exists("http://example.com/missing")
    assert crawler.failures == {
        "http://example.com/down": "connection refused",
        "http://example.com/missing": "HTTP 404",
    }


@pytest.mark.asyncio()
async def test_budget_is_never_exceeded(make_fetcher):
    urls = [f"http://example.com/page{i}" for i in range(12)]
    fetcher = make_fetcher({u: "<p>word</p>" for u in urls}, delay=0.05)
    config = CrawlerConfig(concurrency=3)

    crawler = await run_crawler(config, urls, fetcher=fetcher)

    assert fetcher.max_active <= 3
    assert crawler.peak_in_flight == 3
    assert crawler.in_flight == 0
    assert fetcher.active == 0
    assert len(crawler.store) == len(urls)


@pytest.mark.asyncio()
async def test_concurrency_one_runs_sequentially(make_fetcher):
    urls = [f"http://example.com/{i}" for i in range(4)]
    fetcher = make_fetcher({u: "<p>x</p>" for u in urls}, delay=0.01)
    crawler = await run_crawler(CrawlerConfig(concurrency=1), urls, fetcher=fetcher)
    assert fetcher.max_active == 1
    assert crawler.peak_in_flight == 1
    assert fetcher.calls == urls


@pytest.mark.asyncio()
async def test_parallel_fetches_overlap(make_fetcher):
    """Two slow pages with a budget of two finish in about one delay."""
    urls = ["http://example.com/slow1", "http://example.com/slow2"]
    fetcher = make_fetcher({u: "<h1>Slow</h1>" for u in urls}, delay=0.3)
    start = time.perf_counter()
    await run_crawler(CrawlerConfig(concurrency=2), urls, fetcher=fetcher)
    assert time.perf_counter() - start < 0.3 * 1.8
    assert fetcher.max_active == 2


class ThreadTrackingExtractor(TextExtractor):
    """Records which threads ran the extraction and how many overlapped."""

    def __init__(self) -> None:
        super().__init__()
        self._lock = threading.Lock()
        self.active = 0
        self.max_active = 0
        self.threads: set[str] = set()

    def count_words(self, markup):
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            self.threads.add(threading.current_thread().name)
        try:
            time.sleep(0.02)
            return super().count_words(markup)
        finally:
            with self._lock:
                self.active -= 1


@pytest.mark.asyncio()
async def test_extraction_runs_in_bounded_worker_threads(make_fetcher):
    urls = [f"http://example.com/{i}" for i in range(8)]
    fetcher = make_fetcher({u: "<p>thread safe</p>" for u in urls})
    extractor = ThreadTrackingExtractor()

    crawler = await run_crawler(
        CrawlerConfig(concurrency=2), urls, fetcher=fetcher, extractor=extractor
    )

    assert extractor.max_active <= 2
    assert extractor.threads
    assert all(name.startswith("word-scout") for name in extractor.threads)
    assert all(crawler.store.get(u) == {"thread": 1, "safe": 1} for u in urls)


@pytest.mark.asyncio()
async def test_every_opened_body_is_released(make_fetcher, basic_config, sample_pages):
    fetcher = make_fetcher(sample_pages)
    await run_crawler(basic_config, [*sample_pages, "http://example.com/missing"], fetcher=fetcher)
    assert fetcher.released == len(sample_pages)
    assert fetcher.active == 0


@pytest.mark.asyncio()
async def test_skip_cached_urls(make_fetcher, sample_pages):
    store = InMemoryResultStore()
    store.set("http://example.com/a", {"cached": 1})
    fetcher = make_fetcher(sample_pages)
    config = CrawlerConfig(concurrency=2, skip_cached=True)

    crawler = await run_crawler(config, list(sample_pages), fetcher=fetcher, store=store)

    assert "http://example.com/a" not in fetcher.calls
    assert crawler.skipped == ["http://example.com/a"]
    assert store.get("http://example.com/a") == {"cached": 1}
    assert store.exists("http://example.com/b")


@pytest.mark.asyncio()
async def test_cached_urls_are_refetched_by_default(make_fetcher, basic_config, sample_pages):
    store = InMemoryResultStore()
    store.set("http://example.com/b", {"stale": 1})
    fetcher = make_fetcher(sample_pages)
    await run_crawler(basic_config, ["http://example.com/b"], fetcher=fetcher, store=store)
    assert store.get("http://example.com/b") == {"the": 1, "hat": 1}


class ListHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__(level=logging.WARNING)
        self.messages: list[str] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.messages.append(record.getMessage())


class CountingStore(InMemoryResultStore):
    def __init__(self) -> None:
        super().__init__()
        self.writes: list[str] = []

    def set(self, url, words):
        self.writes.append(url)
        super().set(url, words)


@pytest.mark.asyncio()
async def test_duplicate_urls_are_fetched_each_time(make_fetcher, basic_config, sample_pages):
    url = "http://example.com/b"
    fetcher = make_fetcher(sample_pages)
    crawler = await run_crawler(basic_config, [url, url], fetcher=fetcher)
    assert fetcher.calls == [url, url]
    assert len(crawler.store) == 1
    assert crawler.store.get(url) == {"the": 1, "hat": 1}


@pytest.mark.asyncio()
async def test_duplicate_url_is_written_once(make_fetcher, basic_config, sample_pages):
    url = "http://example.com/b"
    store = CountingStore()
    handler = ListHandler()
    project_logger = logging.getLogger(LOGGER_NAME)
    project_logger.addHandler(handler)
    try:
        await run_crawler(
            basic_config, [url, "http://example.com/a", url],
            fetcher=make_fetcher(sample_pages), store=store,
        )
    finally:
        project_logger.removeHandler(handler)

    assert sorted(store.writes) == ["http://example.com/a", url]
    assert f"Duplicate result for {url} ignored" in handler.messages


class SlowExtractor(TextExtractor):
    def count_words(self, markup):
        time.sleep(SLOW_SLEEP)
        return super().count_words(markup)


@pytest.mark.asyncio()
async def test_cancelled_crawl_does_not_wait_for_extraction_threads(
    make_fetcher, basic_config, sample_pages
):
    crawler = WordCrawler(
        basic_config, fetcher=make_fetcher(sample_pages), extractor=SlowExtractor()
    )

    async def run():
        async with crawler:
            await crawler.crawl(list(sample_pages))

    start = time.monotonic()
    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(run(), timeout=0.2)
    elapsed = time.monotonic() - start

    assert elapsed < SLOW_SLEEP * 0.7
    assert crawler._executor is None


class BrokenExtractor(TextExtractor):
    def count_words(self, markup):
        if b"boom" in markup:
            raise ValueError("extractor bug")
        return super().count_words(markup)


@pytest.mark.asyncio()
async def test_unexpected_error_is_raised_after_all_tasks_finish(
    make_fetcher, basic_config, sample_pages
):
    pages = dict(sample_pages)
    pages["http://example.com/boom"] = "<p>boom</p>"
    fetcher = make_fetcher(pages, delay=0.01)

    async with WordCrawler(basic_config, fetcher=fetcher, extractor=BrokenExtractor()) as crawler:
        with pytest.raises(ValueError, match="extractor bug"):
            await crawler.crawl(["http://example.com/boom", *sample_pages])

    assert set(crawler.store) == set(sample_pages)
    assert crawler.in_flight == 0
    assert fetcher.active == 0


@pytest.mark.asyncio()
async def test_crawl_outside_context_is_rejected(make_fetcher, basic_config):
    crawler = WordCrawler(basic_config, fetcher=make_fetcher({}))
    with pytest.raises(RuntimeError):
        await crawler.crawl(["http://example.com"])


def test_crawl_urls_blocking_helper(make_fetcher, sample_pages):
    store = crawl_urls(
        list(sample_pages), CrawlerConfig(concurrency=2), fetcher=make_fetcher(sample_pages)
    )
    assert len(store) == 3
    assert store.get("http://example.com/b") == {"the": 1, "hat": 1}


# --------------------------------------------------------------------------- #
#                         HTTP fetcher (aiohttp server)                       #
# --------------------------------------------------------------------------- #


async def _serve_app(app: web.Application, port: int) -> AsyncIterator[str]:
    """Start *app* on *port*, yield base URL, ensure cleanup."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "localhost", port)
    await site.start()
    try:
        yield f"http://localhost:{port}"
    finally:
        await runner.cleanup()


@pytest_asyncio.fixture
async def page_server(unused_tcp_port: int) -> AsyncIterator[str]:
    app = web.Application()
    seen_agents: list[str] = []
    app["agents"] = seen_agents

    async def handle_article(request):
        seen_agents.append(request.headers.get("User-Agent", ""))
        return web.Response(
            text="<html><body><h1>Breaking News</h1>\n<p>News travels fast</p></body></html>",
            content_type="text/html",
        )

    async def handle_error(_):
        return web.Response(status=500, text="oops")

    async def handle_slow(_):
        await asyncio.sleep(SLOW_SLEEP)
        return web.Response(text="<p>too late</p>", content_type="text/html")

    app.router.add_get("/article", handle_article)
    app.router.add_get("/error", handle_error)
    app.router.add_get("/slow", handle_slow)

    async for url in _serve_app(app, unused_tcp_port):
        yield url


@pytest.mark.asyncio()
async def test_http_fetcher_reads_body(page_server: str):
    async with ClientSession() as session:
        fetcher = HttpFetcher(session)
        async with fetcher.fetch(f"{page_server}/article") as body:
            assert body.status == 200
            data = await body.read()
    assert b"Breaking News" in data


@pytest.mark.asyncio()
@pytest.mark.parametrize("path,reason", [("/missing", "HTTP 404"), ("/error", "HTTP 500")])
async def test_http_fetcher_rejects_error_status(page_server: str, path: str, reason: str):
    async with ClientSession() as session:
        with pytest.raises(FetchError) as info:
            async with HttpFetcher(session).fetch(f"{page_server}{path}"):
                pass
    assert info.value.reason == reason


@pytest.mark.asyncio()
async def test_http_fetcher_connection_refused(unused_tcp_port: int):
    async with ClientSession() as session:
        with pytest.raises(FetchError, match="request failed"):
            async with HttpFetcher(session).fetch(f"http://localhost:{unused_tcp_port}/"):
                pass


@pytest.mark.asyncio()
async def test_http_fetcher_timeout(page_server: str):
    async with ClientSession(timeout=ClientTimeout(total=0.2)) as session:
        with pytest.raises(FetchError):
            async with HttpFetcher(session).fetch(f"{page_server}/slow"):
                pass


@pytest.mark.asyncio()
async def test_crawl_against_http_server(page_server: str):
    config = CrawlerConfig(concurrency=2, timeout=0.3, user_agent="TestAgent/1.0")
    urls = [f"{page_server}/article", f"{page_server}/missing", f"{page_server}/slow"]

    crawler = await run_crawler(config, urls)

    assert crawler.store.get(f"{page_server}/article") == {
        "breaking": 1,
        "news": 2,
        "travels": 1,
        "fast": 1,
    }
    assert set(crawler.failures) == {f"{page_server}/missing", f"{page_server}/slow"}
    assert len(crawler.store) == 1
    assert crawler.session is not None and crawler.session.closed

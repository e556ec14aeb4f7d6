# File: word_scout/engine.py
"""word_scout.engine: запуск обхода и сборка отчёта."""

from __future__ import annotations

import asyncio
from typing import Optional, Sequence

from word_scout.aggregator import CrawlReport, aggregate_results
from word_scout.config import CrawlerConfig, load_config
from word_scout.crawler.crawler import WordCrawler
from word_scout.logger import logger
from word_scout.store import InMemoryResultStore, ResultStore

__all__ = ["Engine", "start_crawl"]


async def start_crawl(
    cfg: CrawlerConfig, urls: Sequence[str], store: Optional[ResultStore] = None
) -> CrawlReport:
    """Обходит urls в контексте WordCrawler и возвращает CrawlReport."""
    async with WordCrawler(cfg, store=store) as crawler:
        result_store = await crawler.crawl(urls)
    return aggregate_results(
        urls,
        result_store,
        failures=crawler.failures,
        skipped=crawler.skipped,
        top_n=cfg.top_words,
    )


class Engine:
    """Фасад над обходом: конфиг, синхронный запуск и отчёт.

    Хранилище живёт столько же, сколько Engine, поэтому при
    ``skip_cached=True`` повторный вызов start_crawl не скачивает
    уже сохранённые URL. CLI создаёт один Engine на запуск.
    """

    @staticmethod
    def load_config(path: Optional[str]) -> CrawlerConfig:
        """Загружает конфиг из YAML/JSON или использует значения по умолчанию."""
        return load_config(path)

    def __init__(self, config: CrawlerConfig, store: Optional[ResultStore] = None) -> None:
        self.config = config
        self.store: ResultStore = store if store is not None else InMemoryResultStore()

    def start_crawl(self, urls: Sequence[str], timeout: Optional[float] = None) -> CrawlReport:
        """Запускает обход; timeout ограничивает весь обход целиком."""
        logger.info("Starting crawl of %d URL(s)", len(urls))
        try:
            return asyncio.run(
                asyncio.wait_for(start_crawl(self.config, urls, self.store), timeout=timeout)
            )
        except asyncio.TimeoutError:
            logger.error("Crawl did not finish within %s seconds", timeout)
            raise
        except Exception as exc:
            logger.error("Crawl failed: %s", exc)
            raise

# File: word_scout/utils.py
"""word_scout.utils: подготовка входного списка URL для CLI."""

from __future__ import annotations

from pathlib import Path
from typing import Collection, List, Sequence, Union
from urllib.parse import urlparse

from word_scout.logger import logger

__all__: Sequence[str] = (
    "is_http_url",
    "read_url_list",
    "remove_duplicates",
)


def is_http_url(url: str) -> bool:
    """Проверяет, что URL использует http(s) и содержит хост."""
    parsed = urlparse(url)
    valid = parsed.scheme in ("http", "https") and bool(parsed.netloc)
    logger.debug("URL valid: %s -> %s", url, valid)
    return valid


def read_url_list(path: Union[str, Path]) -> List[str]:
    """Читает файл со списком URL: по одному на строку, '#' начинает комментарий."""
    p = Path(path).expanduser()
    if not p.exists():
        logger.error("URL list not found: %s", p)
        raise FileNotFoundError(f"URL list file not found: {p}")
    urls = []
    for line in p.read_text(encoding="utf-8").splitlines():
        line = line.split("#", 1)[0].strip()
        if line:
            urls.append(line)
    logger.debug("Loaded %d URLs from %s", len(urls), p)
    return urls


def remove_duplicates(urls: Collection[str]) -> List[str]:
    """Удаляет дубликаты из списка URL, сохраняя порядок."""
    unique = list(dict.fromkeys(urls))
    removed = len(urls) - len(unique)
    if removed:
        logger.debug("Removed %d duplicate URLs", removed)
    return unique

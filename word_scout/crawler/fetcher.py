# word_scout/crawler/fetcher.py
"""
Fetcher module: opens HTTP responses as scoped body streams.

A fetch is an async context manager: entering it either yields a readable
body or raises :class:`FetchError` with nothing left open; leaving it always
releases the underlying connection.
"""
from __future__ import annotations

import asyncio
from contextlib import AsyncExitStack, asynccontextmanager
from typing import AsyncContextManager, AsyncIterator, Protocol

from aiohttp import ClientError, ClientResponse, ClientSession

from word_scout.crawler.models import FetchError


class BodyReader(Protocol):
    """Readable page body handed out by a :class:`Fetcher`."""

    async def read(self) -> bytes: ...


class Fetcher(Protocol):
    """Anything that can open a URL as a scoped :class:`BodyReader`."""

    def fetch(self, url: str) -> AsyncContextManager[BodyReader]: ...


class ResponseBody:
    """Body of an aiohttp response; read errors surface as FetchError."""

    __slots__ = ("url", "_response")

    def __init__(self, url: str, response: ClientResponse) -> None:
        self.url = url
        self._response = response

    @property
    def status(self) -> int:
        return self._response.status

    async def read(self) -> bytes:
        try:
            return await self._response.read()
        except (ClientError, asyncio.TimeoutError) as exc:
            raise FetchError(self.url, f"body read failed: {exc!r}") from exc


class HttpFetcher:
    """Fetches pages through a shared :class:`aiohttp.ClientSession`.

    Timeouts and headers are taken from the session, so one instance may be
    used by any number of concurrent tasks.
    """

    def __init__(self, session: ClientSession) -> None:
        self.session = session

    @asynccontextmanager
    async def fetch(self, url: str) -> AsyncIterator[ResponseBody]:
        """
        Open *url* and yield its body.

        Raises FetchError on transport errors, timeouts and HTTP status >= 400.
        """
        async with AsyncExitStack() as stack:
            try:
                resp = await stack.enter_async_context(
                    self.session.get(url, raise_for_status=False)
                )
            except (ClientError, asyncio.TimeoutError) as exc:
                raise FetchError(url, f"request failed: {exc!r}") from exc
            if resp.status >= 400:
                raise FetchError(url, f"HTTP {resp.status}")
            yield ResponseBody(url, resp)


__all__ = ["BodyReader", "Fetcher", "HttpFetcher", "ResponseBody"]

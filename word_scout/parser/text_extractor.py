"""Word counting over the readable parts of an HTML page.

Only text that *immediately follows* a start or end tag from an allow-list is
considered.  The markup is read front to back by the ``html.parser`` tokenizer
(the one BeautifulSoup's ``"html.parser"`` builder drives) and every event
becomes a flat token, exactly as it appears in the source:

* ``START`` / ``END``: a literal opening or closing tag,
* ``SELF_CLOSING``: a tag written as ``<br/>``,
* ``TEXT``: character data, with entities already decoded,
* ``OTHER``: comments, doctype, CDATA and processing instructions.

No tree is built, so unclosed elements produce no ``END`` token and stray end
tags are kept.  When an allowed ``START`` or ``END`` token is seen, the next
token is consumed.  If it is ``TEXT`` it is split on whitespace and every word
that survives :func:`normalize_word` is counted.  A consumed token is never
looked at again, so in ``<li><a>Home</a></li>`` the word *Home* is not
counted: the ``<a>`` start tag was eaten by ``<li>``.
"""
from __future__ import annotations

import enum
from collections.abc import Iterable, Iterator, Sequence
from html.parser import HTMLParser
from typing import IO, NamedTuple, Optional, Union

from bs4 import UnicodeDammit

from word_scout.crawler.models import WordFrequency

__all__: Sequence[str] = (
    "DEFAULT_ALLOWED_TAGS",
    "TextExtractor",
    "Token",
    "TokenKind",
    "count_words",
    "normalize_word",
)

Markup = Union[str, bytes, IO[str], IO[bytes]]

DEFAULT_ALLOWED_TAGS: frozenset[str] = frozenset(
    {
        "h1", "h2", "h3", "h4", "h5", "h6",
        "p", "li", "dt", "dd", "a",
        "strong", "em", "b", "i",
        "blockquote", "figcaption", "figure",
        "td", "th",
        "dfn", "address", "time", "cite", "abbr",
        "details", "summary", "span",
    }
)


class TokenKind(enum.Enum):
    START = "start"
    END = "end"
    SELF_CLOSING = "self_closing"
    TEXT = "text"
    OTHER = "other"


class Token(NamedTuple):
    kind: TokenKind
    data: str  # tag name for tag tokens, character data for TEXT


# ---------------------------------------------------------------------------
# Word normalisation
# ---------------------------------------------------------------------------


def _trim_non_alphanumeric(word: str) -> str:
    start, end = 0, len(word)
    while start < end and not word[start].isalnum():
        start += 1
    while end > start and not word[end - 1].isalnum():
        end -= 1
    return word[start:end]


def normalize_word(word: str) -> Optional[str]:
    """Return the countable form of *word* or ``None``.

    Trimming keeps digits at the edges but the final check requires letters
    only, so ``"2024"`` and ``"abc123"`` are dropped while ``"(hello)"``
    becomes ``"hello"``.
    """
    word = _trim_non_alphanumeric(word.lower())
    if not word or not word.isalpha():
        return None
    return word


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------


def _as_text(markup: Markup) -> str:
    if not isinstance(markup, (str, bytes)):
        markup = markup.read()
    if isinstance(markup, bytes):
        # same charset sniffing BeautifulSoup applies to byte input
        return UnicodeDammit(markup, is_html=True).unicode_markup or ""
    return markup


class _TokenCollector(HTMLParser):
    """Records parser events as :class:`Token` objects, one per event."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.tokens: list[Token] = []

    def handle_starttag(self, tag, attrs):
        self.tokens.append(Token(TokenKind.START, tag))

    def handle_endtag(self, tag):
        self.tokens.append(Token(TokenKind.END, tag))

    def handle_startendtag(self, tag, attrs):
        self.tokens.append(Token(TokenKind.SELF_CLOSING, tag))

    def handle_data(self, data):
        # html.parser may split one run of text (e.g. around a lone "<")
        if self.tokens and self.tokens[-1].kind is TokenKind.TEXT:
            data = self.tokens.pop().data + data
        self.tokens.append(Token(TokenKind.TEXT, data))

    def handle_comment(self, data):
        self.tokens.append(Token(TokenKind.OTHER, ""))

    handle_decl = handle_pi = unknown_decl = handle_comment


# ---------------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------------


class TextExtractor:
    """Counts words found right after allow-listed tags.

    The allow-list is fixed at construction time; instances hold no other
    state and can be shared between threads.
    """

    def __init__(self, allowed_tags: Iterable[str] = DEFAULT_ALLOWED_TAGS) -> None:
        self.allowed_tags: frozenset[str] = frozenset(t.lower() for t in allowed_tags)

    def tokenize(self, markup: Markup) -> Iterator[Token]:
        """Return an iterator over the tokens of *markup* in source order."""
        collector = _TokenCollector()
        collector.feed(_as_text(markup))
        collector.close()
        return iter(collector.tokens)

    def count_words(self, markup: Markup) -> WordFrequency:
        """Return the word frequencies of *markup*; bad markup just counts less."""
        counts: WordFrequency = {}
        tokens = self.tokenize(markup)
        for token in tokens:
            if token.kind not in (TokenKind.START, TokenKind.END):
                continue
            if token.data not in self.allowed_tags:
                continue
            following = next(tokens, None)
            if following is None:
                break
            if following.kind is not TokenKind.TEXT:
                continue
            for raw in following.data.split():
                word = normalize_word(raw)
                if word is not None:
                    counts[word] = counts.get(word, 0) + 1
        return counts

    def __repr__(self) -> str:
        return f"<TextExtractor tags={len(self.allowed_tags)}>"


_default_extractor = TextExtractor()


def count_words(markup: Markup, allowed_tags: Optional[Iterable[str]] = None) -> WordFrequency:
    """Module-level shortcut around :meth:`TextExtractor.count_words`."""
    extractor = _default_extractor if allowed_tags is None else TextExtractor(allowed_tags)
    return extractor.count_words(markup)

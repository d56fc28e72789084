"""
Chunk-boundary-safe XMLTV tag scanner

Locates complete top-level <channel> and <programme> elements in a text
stream fed in arbitrarily sized chunks. Text outside those elements is handed
back as passthrough as soon as it is provably final, so at most one element
plus a short look-back tail is ever buffered.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterator, Union
from xml.sax.saxutils import unescape

from app.errors import StructuralError

logger = logging.getLogger(__name__)

CHANNEL = "channel"
PROGRAMME = "programme"
ROOT = "tv"

DEFAULT_MAX_ELEMENT_SIZE = 1024 * 1024
COMPACT_THRESHOLD = 64 * 1024

_ATTRIBUTE_RE = re.compile(r"""([A-Za-z_][\w.:-]*)\s*=\s*(?:"([^"]*)"|'([^']*)')""")
_ENTITIES = {"&quot;": '"', "&apos;": "'"}
_TAG_END_RE = re.compile(r"""["'>]""")


@dataclass(frozen=True, slots=True)
class Passthrough:
    """Text outside tracked elements, forwarded verbatim."""
    text: str


@dataclass(frozen=True, slots=True)
class RootClose:
    """The document's closing root tag."""
    text: str


@dataclass(frozen=True, slots=True)
class Element:
    """One complete top-level element, opening tag to closing tag."""
    kind: str
    text: str
    attributes: dict[str, str] = field(default_factory=dict)

    @property
    def channel_id(self) -> str | None:
        if self.kind == CHANNEL:
            return self.attributes.get("id")
        return self.attributes.get("channel")

    @property
    def start(self) -> str | None:
        return self.attributes.get("start")

    def child_text(self, tag: str) -> str | None:
        """Unescaped text of the first direct <tag> child, if any."""
        match = re.search(rf"<{re.escape(tag)}(?:\s[^>]*)?>(.*?)</{re.escape(tag)}>", self.text, re.DOTALL)
        if match is None:
            return None
        return unescape(match.group(1), _ENTITIES).strip() or None


Token = Union[Passthrough, Element, RootClose]


def parse_attributes(open_tag: str) -> dict[str, str]:
    """Parse the attributes of an opening tag into a dict of unescaped values"""
    attributes = {}
    for name, double_quoted, single_quoted in _ATTRIBUTE_RE.findall(open_tag):
        value = double_quoted if double_quoted or not single_quoted else single_quoted
        attributes[name] = unescape(value, _ENTITIES)
    return attributes


class ScanBuffer:
    """
    Growable text buffer with an explicit consumed-prefix offset.

    Positions passed to and returned from every method are relative to the
    first unconsumed character. Consumed text is dropped lazily so taking
    many small slices off the front stays linear.
    """

    def __init__(self) -> None:
        self._data = ""
        self._offset = 0

    def __len__(self) -> int:
        return len(self._data) - self._offset

    def append(self, text: str) -> None:
        if self._offset:
            self._data = self._data[self._offset:]
            self._offset = 0
        self._data += text

    def find(self, sub: str, start: int = 0) -> int:
        index = self._data.find(sub, self._offset + start)
        return -1 if index == -1 else index - self._offset

    def search(self, pattern: re.Pattern[str], start: int = 0) -> tuple[int, int, re.Match[str]] | None:
        match = pattern.search(self._data, self._offset + start)
        if match is None:
            return None
        return match.start() - self._offset, match.end() - self._offset, match

    def peek(self, end: int) -> str:
        return self._data[self._offset:self._offset + end]

    def take(self, count: int) -> str:
        """Consume and return the first `count` characters."""
        text = self._data[self._offset:self._offset + count]
        self._offset += len(text)
        if self._offset >= COMPACT_THRESHOLD and self._offset * 2 >= len(self._data):
            self._data = self._data[self._offset:]
            self._offset = 0
        return text

    def take_all_but(self, keep: int) -> str:
        """Consume everything except the last `keep` characters."""
        return self.take(max(0, len(self) - keep))


@dataclass(slots=True)
class _PendingElement:
    kind: str
    close_marker: str
    search_from: int
    open_end: int | None = None
    quote: str | None = None
    attributes: dict[str, str] = field(default_factory=dict)


class TagScanner:
    """
    Incremental scanner over a flat XMLTV document.

    Feed chunks with `feed()`, then call `next_token()` until it returns None
    ("need more data"). Call `finish()` once the input is exhausted.
    """

    def __init__(
        self,
        tags: tuple[str, ...] = (CHANNEL, PROGRAMME),
        root_tag: str = ROOT,
        max_element_size: int = DEFAULT_MAX_ELEMENT_SIZE,
    ) -> None:
        kinds = "|".join(re.escape(tag) for tag in tags)
        self._marker_re = re.compile(rf"<(?P<kind>{kinds})[\s/>]|(?P<root></{re.escape(root_tag)}>)")
        self._dangling_re = re.compile(rf"<(?:{kinds})$")
        self.max_element_size = max_element_size
        # A marker match is at most this long; anything before the last
        # lookback characters cannot be the start of one.
        self.lookback = max(max(len(tag) + 2 for tag in tags), len(root_tag) + 3) - 1
        self._buffer = ScanBuffer()
        self._pending: _PendingElement | None = None
        self._finished = False

    @property
    def buffered(self) -> int:
        """Number of characters currently held back."""
        return len(self._buffer)

    def feed(self, chunk: str) -> None:
        if self._finished:
            raise RuntimeError("Cannot feed a finished scanner")
        if chunk:
            self._buffer.append(chunk)

    def next_token(self) -> Token | None:
        """Return the next complete token, or None if more input is needed."""
        if self._pending is None:
            found = self._buffer.search(self._marker_re)
            if found is None:
                text = self._buffer.take_all_but(self.lookback)
                return Passthrough(text) if text else None

            start, end, match = found
            if start > 0:
                return Passthrough(self._buffer.take(start))
            if match.group("root"):
                return RootClose(self._buffer.take(end))

            kind = match.group("kind")
            self._pending = _PendingElement(
                kind=kind,
                close_marker=f"</{kind}>",
                search_from=len(kind) + 1,
            )

        return self._complete_pending(self._pending)

    def tokens(self) -> Iterator[Token]:
        """Yield every token completable from the data fed so far."""
        while True:
            token = self.next_token()
            if token is None:
                return
            yield token

    def scan(self, chunk: str) -> Iterator[Token]:
        self.feed(chunk)
        return self.tokens()

    def finish(self) -> list[Token]:
        """
        Flush everything left at end of input.

        Raises:
            StructuralError: If an element is still open
        """
        tokens = list(self.tokens())
        self._finished = True

        if self._pending is not None:
            raise StructuralError(
                f"Unterminated <{self._pending.kind}> element at end of stream "
                f"({len(self._buffer)} characters buffered)"
            )

        remaining = self._buffer.take(len(self._buffer))
        if self._dangling_re.search(remaining):
            raise StructuralError("Stream ended inside an opening tag")
        if remaining:
            tokens.append(Passthrough(remaining))
        return tokens

    def _complete_pending(self, pending: _PendingElement) -> Element | None:
        if pending.open_end is None:
            gt = self._find_open_tag_end(pending)
            if gt == -1:
                pending.search_from = len(self._buffer)
                self._check_element_size(pending)
                return None

            pending.open_end = gt + 1
            open_tag = self._buffer.peek(pending.open_end)
            pending.attributes = parse_attributes(open_tag)
            if open_tag.endswith("/>"):
                return self._emit(pending, pending.open_end)
            pending.search_from = pending.open_end

        close_at = self._buffer.find(pending.close_marker, pending.search_from)
        if close_at == -1:
            pending.search_from = max(
                pending.open_end,
                len(self._buffer) - len(pending.close_marker) + 1,
            )
            self._check_element_size(pending)
            return None

        return self._emit(pending, close_at + len(pending.close_marker))

    def _find_open_tag_end(self, pending: _PendingElement) -> int:
        """Position of the '>' ending the opening tag, skipping quoted values; -1 if not yet buffered."""
        while True:
            if pending.quote is not None:
                end_quote = self._buffer.find(pending.quote, pending.search_from)
                if end_quote == -1:
                    return -1
                pending.quote = None
                pending.search_from = end_quote + 1
                continue

            found = self._buffer.search(_TAG_END_RE, pending.search_from)
            if found is None:
                return -1
            position, _, match = found
            if match.group() == ">":
                return position
            pending.quote = match.group()
            pending.search_from = position + 1

    def _emit(self, pending: _PendingElement, end: int) -> Element:
        self._pending = None
        return Element(kind=pending.kind, text=self._buffer.take(end), attributes=pending.attributes)

    def _check_element_size(self, pending: _PendingElement) -> None:
        if len(self._buffer) > self.max_element_size:
            raise StructuralError(
                f"<{pending.kind}> element exceeds {self.max_element_size} characters "
                "without a closing tag"
            )

"""
Push-based stream transforms over the tag scanner.

A transform receives decoded text chunks through `process()` and returns the
output text it can already commit to; `finish()` flushes the rest. Output is
never reordered relative to input.
"""
from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence

from app.xmltv.scanner import TagScanner, Token


class StreamTransform:
    """Base class for transforms that consume scanner tokens."""

    def __init__(self, scanner: TagScanner | None = None) -> None:
        self.scanner = scanner or TagScanner()

    def process(self, chunk: str) -> Iterator[str]:
        """Feed a chunk and return the output it makes final."""
        self.scanner.feed(chunk)
        return self._drain()

    def finish(self) -> Iterator[str]:
        """Flush remaining output; raises StructuralError on truncated input."""
        for token in self.scanner.finish():
            yield from self.handle(token)
        yield from self.at_end()

    def transform(self, chunks: Iterable[str]) -> Iterator[str]:
        for chunk in chunks:
            yield from self.process(chunk)
        yield from self.finish()

    def handle(self, token: Token) -> Iterable[str]:
        raise NotImplementedError

    def at_end(self) -> Iterable[str]:
        return ()

    def _drain(self) -> Iterator[str]:
        for token in self.scanner.tokens():
            yield from self.handle(token)


class TransformPipeline:
    """
    Chains transforms so the output of each feeds the next.

    Every iterator returned by `push()` must be exhausted before the next
    call; the file-level runners in the transform service do exactly that.
    """

    def __init__(self, transforms: Sequence[StreamTransform]) -> None:
        self.transforms = list(transforms)

    def push(self, chunk: str) -> Iterator[str]:
        return self._through(0, (chunk,))

    def finish(self) -> Iterator[str]:
        for index, transform in enumerate(self.transforms):
            yield from self._through(index + 1, transform.finish())

    def run(self, chunks: Iterable[str]) -> Iterator[str]:
        for chunk in chunks:
            yield from self.push(chunk)
        yield from self.finish()

    def _through(self, start: int, pieces: Iterable[str]) -> Iterator[str]:
        if start >= len(self.transforms):
            yield from pieces
            return
        transform = self.transforms[start]
        for piece in pieces:
            yield from self._through(start + 1, transform.process(piece))

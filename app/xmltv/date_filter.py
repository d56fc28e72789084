"""
Streaming date-range filter

Drops programmes that start on or after a cutoff; everything else, including
programmes whose start time cannot be parsed, passes through byte for byte.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from datetime import datetime

from app.utils.timezone import day_cutoff, parse_xmltv_wall_time
from app.xmltv.scanner import PROGRAMME, Element, TagScanner, Token
from app.xmltv.transform import StreamTransform

logger = logging.getLogger(__name__)


class DateRangeFilter(StreamTransform):
    """
    Keep programmes whose start is strictly before `cutoff`.

    The cutoff is a naive wall-clock datetime; programme start times are
    compared on their wall-clock digits. A cutoff of None makes the filter an
    identity that never touches the scanner.
    """

    def __init__(self, cutoff: datetime | None, scanner: TagScanner | None = None) -> None:
        super().__init__(scanner)
        self.cutoff = cutoff
        self.kept = 0
        self.dropped = 0

    @classmethod
    def for_days(cls, days: int | None, now: datetime, scanner: TagScanner | None = None) -> DateRangeFilter:
        """Build a filter keeping today plus the following `days - 1` days"""
        return cls(day_cutoff(days, now) if days else None, scanner)

    @property
    def is_identity(self) -> bool:
        return self.cutoff is None

    def process(self, chunk: str) -> Iterator[str]:
        if self.is_identity:
            return iter((chunk,)) if chunk else iter(())
        return super().process(chunk)

    def finish(self) -> Iterator[str]:
        if self.is_identity:
            return iter(())
        return self._finish_and_log()

    def handle(self, token: Token) -> Iterable[str]:
        if isinstance(token, Element) and token.kind == PROGRAMME:
            if not self._keep(token):
                self.dropped += 1
                return ()
            self.kept += 1
        return (token.text,)

    def _keep(self, element: Element) -> bool:
        start = parse_xmltv_wall_time(element.start)
        if start is None:
            return True
        return start < self.cutoff

    def _finish_and_log(self) -> Iterator[str]:
        yield from super().finish()
        logger.info(
            "Date filter (cutoff %s): kept %s programmes, dropped %s",
            self.cutoff.isoformat(),
            self.kept,
            self.dropped,
        )

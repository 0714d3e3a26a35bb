"""Logical line reconstruction for iCalendar feeds.

RFC 5545 folds long content lines by inserting a line break followed by a
single space or tab. This module undoes the folding lazily so the record
parser can work one logical line at a time.
"""

import re
from collections.abc import Iterator
from typing import Optional

_LINE_BREAK_RE = re.compile(r"\r\n|\n|\r")

CONTINUATION_MARKERS = (" ", "\t")


def split_physical_lines(text: str) -> Iterator[str]:
    """Yield physical lines split on CRLF, LF or CR without building a list."""
    pos = 0
    for match in _LINE_BREAK_RE.finditer(text):
        yield text[pos : match.start()]
        pos = match.end()
    yield text[pos:]


def unfold_lines(text: str) -> Iterator[str]:
    """Yield logical lines with continuation lines merged.

    A physical line starting with a single space or tab is appended (marker
    stripped) to the previous logical line. A continuation with nothing to
    merge into is yielded on its own.

    Args:
        text: Raw feed content

    Yields:
        Logical lines in feed order
    """
    pending: Optional[str] = None

    for physical in split_physical_lines(text):
        if physical.startswith(CONTINUATION_MARKERS):
            if pending is None:
                pending = physical[1:]
            else:
                pending += physical[1:]
            continue

        if pending is not None:
            yield pending
        pending = physical

    if pending is not None:
        yield pending

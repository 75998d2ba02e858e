"""Script emission: drop boilerplate batches and add batch separators."""

from __future__ import annotations

import sys
from typing import Iterable, Iterator, TextIO

BATCH_SEPARATOR = "GO"

DEFAULT_EXCLUSIONS = frozenset(
    {
        "SET ANSI_NULLS ON",
        "SET QUOTED_IDENTIFIER ON",
    }
)


def filter_batches(
    batches: Iterable[str | None],
    exclusions: Iterable[str] = DEFAULT_EXCLUSIONS,
) -> Iterator[str]:
    """
    Yield output lines for the given batches.

    Empty placeholders and batches present verbatim in `exclusions` are
    dropped. Every kept batch is followed by `GO` and a blank line.
    """
    excluded = frozenset(exclusions)
    for batch in batches:
        if not batch or batch in excluded:
            continue
        yield batch
        yield BATCH_SEPARATOR
        yield ""


def write_script(
    batches: Iterable[str | None],
    stream: TextIO | None = None,
    exclusions: Iterable[str] = DEFAULT_EXCLUSIONS,
) -> int:
    """Write filtered batches to `stream` (stdout by default); return the batch count."""
    out = stream if stream is not None else sys.stdout
    lines = 0
    for line in filter_batches(batches, exclusions):
        out.write(line + "\n")
        lines += 1
    out.flush()
    # each kept batch is written as batch, separator, blank line
    return lines // 3

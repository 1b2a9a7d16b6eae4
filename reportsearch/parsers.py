"""Plain-text report parsing.

Extracts the title, author, synopsis and full text from a line-oriented
document. Only literal marker matching is performed; a document without
markers parses to empty ``name``/``author`` rather than failing.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)

SYNOPSIS_LINE_COUNT = 5
SYNOPSIS_SUFFIX = "..."
TITLE_MARKER = "Title:"
AUTHOR_MARKER = "Author:"


class ParseError(Exception):
    """Raised when a document cannot be read."""
    code = "parse_error"


@dataclass
class ParsedReport:
    """Result of report parsing."""
    name: str
    author: str
    synopsis: str
    text: str


def iter_lines(content: str) -> Iterator[str]:
    """Yield lines like a line scanner would.

    Splits on ``\\n``, drops a trailing ``\\r`` from each line and does not
    yield an empty segment after a final newline.
    """
    lines = content.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    for line in lines:
        yield line[:-1] if line.endswith("\r") else line


def extract_value(line: str, marker: str) -> str:
    """Return the text after the first colon if ``line`` contains ``marker``.

    >>> extract_value("Title: Chest X-Ray", "Title:")
    'Chest X-Ray'
    >>> extract_value("no marker here", "Title:")
    ''
    """
    if marker not in line:
        return ""
    return line.split(":", 1)[1].strip()


def parse_report_text(content: str) -> ParsedReport:
    """Parse raw document content.

    Args:
        content: Full document text

    Returns:
        ParsedReport; every field may be empty
    """
    name = ""
    author = ""
    synopsis_parts: list[str] = []
    text_parts: list[str] = []

    for counter, line in enumerate(iter_lines(content)):
        if counter < SYNOPSIS_LINE_COUNT:
            synopsis_parts.append(line + "\n")

        # A marker line with an empty value does not end the search
        if not name:
            name = extract_value(line, TITLE_MARKER)
        if not author:
            author = extract_value(line, AUTHOR_MARKER)

        text_parts.append(line + "\n")

    synopsis = "".join(synopsis_parts)
    if synopsis:
        synopsis += SYNOPSIS_SUFFIX

    return ParsedReport(
        name=name,
        author=author,
        synopsis=synopsis,
        text="".join(text_parts),
    )


def parse_report_file(path: Path, encoding: str = "utf-8") -> ParsedReport:
    """Read and parse a report file.

    Undecodable bytes are replaced rather than rejected.

    Raises:
        ParseError: If the file cannot be read
    """
    try:
        content = path.read_text(encoding=encoding, errors="replace")
    except (OSError, LookupError) as e:
        logger.error(f"Could not read report file {path}: {e}")
        raise ParseError(f"Failed to read {path.name}: {e}") from e

    return parse_report_text(content)

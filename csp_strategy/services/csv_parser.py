"""
CSV Parser

Tokenizes a raw CSV export into header-keyed row dictionaries.

Rules:
- The first non-blank line is the header; every later non-blank line is data
- Splitting is quote-aware: a double quote toggles the in-quotes state and
  commas inside quotes do not split
- Headers and values are trimmed and stray quote/bracket characters removed
- A data line whose field count differs from the header's is dropped
- Empty or header-only input yields an empty list; nothing here raises on
  malformed content
"""

from typing import Dict, List
import logging

logger = logging.getLogger(__name__)

# Characters removed from every header and value after splitting
STRAY_CHARACTERS: str = '"[]'

_STRAY_TABLE = str.maketrans('', '', STRAY_CHARACTERS)


def clean_field(value: str) -> str:
    """Remove stray quote/bracket characters and surrounding whitespace."""
    return value.translate(_STRAY_TABLE).strip()


def split_csv_line(line: str) -> List[str]:
    """
    Split one CSV line on commas that are not inside double quotes.

    Fields are returned uncleaned; quotes are kept so the caller decides how
    to strip them.

    Example:
        >>> split_csv_line('ABCD,"1,200.00",Dallas')
        ['ABCD', '"1,200.00"', 'Dallas']
    """
    fields: List[str] = []
    current: List[str] = []
    in_quotes = False

    for char in line:
        if char == '"':
            in_quotes = not in_quotes
            current.append(char)
        elif char == ',' and not in_quotes:
            fields.append(''.join(current))
            current = []
        else:
            current.append(char)

    fields.append(''.join(current))
    return fields


def parse_csv_text(text: str) -> List[Dict[str, str]]:
    """
    Parse raw CSV text into a list of header-keyed rows.

    Args:
        text: Raw document text with a header line followed by data lines.

    Returns:
        One dict per accepted data line. Lines whose quote-aware field count
        does not match the header are excluded.
    """
    if not text:
        return []

    lines = [line for line in text.splitlines() if line.strip()]
    if len(lines) < 2:
        return []

    headers = [clean_field(h) for h in split_csv_line(lines[0])]
    header_count = len(headers)

    rows: List[Dict[str, str]] = []
    dropped = 0

    for line in lines[1:]:
        values = split_csv_line(line)
        if len(values) != header_count:
            dropped += 1
            continue
        rows.append({header: clean_field(value) for header, value in zip(headers, values)})

    if dropped:
        logger.debug(f"Dropped {dropped} malformed CSV lines (expected {header_count} fields)")

    return rows


__all__ = [
    'STRAY_CHARACTERS',
    'clean_field',
    'split_csv_line',
    'parse_csv_text',
]

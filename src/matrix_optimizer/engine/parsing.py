"""
Field-level parsing helpers for shop-management CSV exports.

Exports are assumed dirty: currency symbols, thousands separators and
stray text are common, so nothing here raises on bad input.
"""
import math
import re


_NON_NUMERIC = re.compile(r'[^0-9.\-]+')
_NUMBER_PREFIX = re.compile(r'^-?(\d+\.?\d*|\.\d+)')


def parse_currency(value) -> float:
    """
    Convert a raw token such as "$1,200.50" into a float.

    Strips everything that is not a digit, decimal point or minus sign and
    reads the leading number. Empty, None or unparsable input gives 0.
    """
    if value is None:
        return 0.0
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value) if math.isfinite(value) else 0.0

    clean = _NON_NUMERIC.sub('', str(value))
    match = _NUMBER_PREFIX.match(clean)
    if not match:
        return 0.0
    return float(match.group(0))


def split_csv_line(line: str) -> list[str]:
    """
    Split one CSV line on commas, honoring double-quoted fields.

    A quoted field may contain commas, and "" inside quotes is a literal
    quote. Every field is whitespace-trimmed.
    """
    fields = []
    current = []
    inside_quotes = False
    i = 0
    length = len(line)

    while i < length:
        char = line[i]
        if char == '"':
            if inside_quotes and i + 1 < length and line[i + 1] == '"':
                current.append('"')
                i += 1
            else:
                inside_quotes = not inside_quotes
        elif char == ',' and not inside_quotes:
            fields.append(''.join(current).strip())
            current = []
        else:
            current.append(char)
        i += 1

    fields.append(''.join(current).strip())
    return fields

"""
Record ingestion - turns a sales CSV export into PartRecords.

Handles exports that carry a preamble above the header, formatted
currency values, and line totals that disagree with unit x qty.
"""
import logging
from typing import Optional

from ..config.settings import get_settings, Settings
from .errors import NoHeaderFound, NoCostColumn, NoValidRows
from .models import PartRecord, IngestResult
from .parsing import parse_currency, split_csv_line

logger = logging.getLogger(__name__)


HEADER_KEYWORDS = ('cost', 'price', 'qty', 'total')

# (substring aliases, exact-match aliases) per logical column.
# These must stay in step with what the shop-management exports emit.
COLUMN_ALIASES = {
    'unit_cost': (('unit cost', 'buy price'), ('cost', 'unitcost')),
    'unit_retail': (('unit retail', 'sell price'), ('retail', 'unitretail', 'price')),
    'qty': (('qty',), ('quantity', 'sold')),
    'total_cost': (('total cost', 'ext cost'), ()),
    'total_retail': (('total retail', 'ext price', 'ext revenue', 'amount', 'revenue'), ()),
}


def find_header_row(lines: list[str], scan_limit: int = 10) -> int:
    """Index of the first line within the scan window that looks like a header."""
    for i, line in enumerate(lines[:scan_limit]):
        lowered = line.lower()
        if any(keyword in lowered for keyword in HEADER_KEYWORDS):
            return i
    raise NoHeaderFound()


def map_columns(headers: list[str]) -> dict[str, int]:
    """
    Locate the known columns in a header row.

    Returns logical name -> column index for every column found; the
    first header matching an alias group wins.
    """
    normalized = [h.strip().lower() for h in headers]
    columns = {}

    for name, (contains, exact) in COLUMN_ALIASES.items():
        for idx, header in enumerate(normalized):
            if any(alias in header for alias in contains) or header in exact:
                columns[name] = idx
                break

    if 'unit_cost' not in columns:
        raise NoCostColumn()
    return columns


def reconcile_total(file_total: float, calculated_total: float,
                    tolerance: float = 0.5, min_total: float = 0.01) -> float:
    """
    Choose between a file-provided line total and unit x qty.

    The file value is trusted when it is within `tolerance` (relative) of
    the calculated one, since it may carry rounding or a line discount.
    Anything further off is treated as garbage.
    """
    if file_total <= min_total:
        return calculated_total
    if calculated_total == 0:
        return calculated_total

    difference = abs(file_total - calculated_total) / abs(calculated_total)
    if difference < tolerance:
        return file_total
    return calculated_total


def ingest_csv(text: str, settings: Optional[Settings] = None) -> IngestResult:
    """
    Parse a sales CSV export into PartRecords.

    Args:
        text: Raw CSV document
        settings: Optional settings override

    Returns:
        IngestResult with records and the number of skipped rows

    Raises:
        NoHeaderFound, NoCostColumn, NoValidRows
    """
    settings = settings or get_settings()

    lines = [line for line in (text or '').splitlines() if line.strip()]

    header_idx = find_header_row(lines, settings.header_scan_lines)
    columns = map_columns(split_csv_line(lines[header_idx]))
    logger.debug("Header found on line %d, columns: %s", header_idx, columns)

    cost_idx = columns['unit_cost']
    retail_idx = columns.get('unit_retail')
    qty_idx = columns.get('qty')
    total_cost_idx = columns.get('total_cost')
    total_retail_idx = columns.get('total_retail')
    required_columns = max(columns.values()) + 1

    records = []
    skipped = 0

    for line in lines[header_idx + 1:]:
        row = split_csv_line(line)

        if all(not cell for cell in row):
            skipped += 1
            continue

        if len(row) < required_columns:
            skipped += 1
            continue

        unit_cost = parse_currency(row[cost_idx])
        unit_retail = parse_currency(row[retail_idx]) if retail_idx is not None else 0.0
        qty = parse_currency(row[qty_idx]) if qty_idx is not None else 1.0

        # Zero-cost lines are warranties, shop supplies and the like
        if unit_cost <= 0:
            skipped += 1
            continue

        file_total_cost = parse_currency(row[total_cost_idx]) if total_cost_idx is not None else 0.0
        file_total_retail = parse_currency(row[total_retail_idx]) if total_retail_idx is not None else 0.0

        total_cost = reconcile_total(
            file_total_cost, unit_cost * qty,
            settings.reconcile_tolerance, settings.min_file_total,
        )
        total_retail = reconcile_total(
            file_total_retail, unit_retail * qty,
            settings.reconcile_tolerance, settings.min_file_total,
        )

        records.append(PartRecord(
            unit_cost=unit_cost,
            unit_retail=unit_retail,
            qty=qty,
            total_cost=total_cost,
            total_retail=total_retail,
        ))

    if not records:
        raise NoValidRows()

    if skipped:
        logger.warning("Skipped %d invalid rows", skipped)

    return IngestResult(
        records=records,
        skipped_count=skipped,
        header_row=header_idx,
        columns=columns,
    )

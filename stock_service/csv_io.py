"""
CSV import/export helpers for the Stock service.

Uploaded CSV files are turned into untyped records and go through the same
validation as JSON batches; exports write every stock item back out.
"""
import csv
import io
import math
from typing import Any, Dict, Iterable, List

from . import models

CSV_COLUMNS = ["sku", "store", "quantity", "description"]

# Columns whose cells are converted to numbers when they look like one
NUMERIC_COLUMNS = {"quantity"}


class CsvFormatError(ValueError):
    """Raised when an uploaded file has no header or no data rows."""


def _coerce_number(value: str) -> Any:
    try:
        return int(value)
    except ValueError:
        pass
    try:
        number = float(value)
    except ValueError:
        return value
    if not math.isfinite(number):
        return value
    return int(number) if number.is_integer() else number


def parse_csv(text: str) -> List[Dict[str, Any]]:
    """
    Parse CSV text into one record per data row.

    Cells are trimmed and empty cells are dropped, so a missing description
    is stored as NULL and a missing sku/store/quantity is reported as a
    missing field. Numeric columns are converted when the cell is a number;
    otherwise the raw string is kept and left for validation to reject.

    Args:
        text: CSV content with a header row

    Returns:
        List of untyped records

    Raises:
        CsvFormatError: if the header or all data rows are missing
    """
    reader = csv.DictReader(io.StringIO(text.strip()))
    if not reader.fieldnames:
        raise CsvFormatError("CSV must have a header row and at least one data row.")

    records = []
    for row in reader:
        record = {}
        for header, value in row.items():
            # extra cells beyond the header are keyed by None, short rows give None values
            if header is None or value is None:
                continue
            header = header.strip()
            value = value.strip()
            if not header or value == "":
                continue
            record[header] = _coerce_number(value) if header in NUMERIC_COLUMNS else value
        records.append(record)

    if not records:
        raise CsvFormatError("CSV must have a header row and at least one data row.")
    return records


def render_csv(items: Iterable[models.StockItem]) -> str:
    """Write stock items as CSV with a header row; NULL descriptions become empty cells."""
    output = io.StringIO()
    writer = csv.writer(output)

    # Write header
    writer.writerow(CSV_COLUMNS)

    # Write data
    for item in items:
        writer.writerow([
            item.sku,
            item.store,
            item.quantity,
            item.description if item.description is not None else ""
        ])

    return output.getvalue()

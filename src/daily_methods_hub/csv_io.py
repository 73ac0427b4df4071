from __future__ import annotations

import csv
import io
import logging
import math
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date

from daily_methods_hub.db_models import EarningEntry
from daily_methods_hub.errors import DuplicateEntryError, NotFoundError, ValidationError
from daily_methods_hub.time_utils import parse_iso_date

logger = logging.getLogger(__name__)

CSV_HEADER = ("Date", "Method", "Category", "Amount", "Notes")
LEGACY_COLUMNS = ("date", "method", "amount", "notes")
DUPLICATE_ROW_MESSAGE = "You already have an entry for this method on this date"


@dataclass(frozen=True)
class CsvRow:
    date: str
    method: str
    amount: str
    notes: str = ""
    category: str = ""
    line: int = 0


@dataclass
class ImportResult:
    success: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)


def entries_to_csv(entries: Iterable[EarningEntry]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for entry in entries:
        writer.writerow(
            (
                entry.entry_date.isoformat(),
                entry.method_title or "Unknown",
                entry.method_category or "",
                f"{entry.amount:.2f}",
                entry.notes or "",
            )
        )
    return buffer.getvalue()


def _column_positions(header: list[str]) -> dict[str, int]:
    names = [h.strip().lower() for h in header]
    positions = {name: names.index(name) for name in ("date", "method", "category", "amount", "notes") if name in names}
    if {"date", "method", "amount"} <= positions.keys():
        return positions
    return {name: idx for idx, name in enumerate(LEGACY_COLUMNS)}


def parse_csv(text: str) -> list[CsvRow]:
    """Parse exported CSV (or the older Date,Method,Amount,Notes layout) into raw rows.

    The first line is always treated as the header. Blank lines are skipped;
    truncated rows are kept so validation reports the missing cells.
    """
    reader = csv.reader(io.StringIO(text.strip()))
    header = next(reader, None)
    if header is None:
        return []
    positions = _column_positions(header)

    def cell(fields: list[str], name: str, strip: bool = True) -> str:
        idx = positions.get(name)
        if idx is None or idx >= len(fields):
            return ""
        return fields[idx].strip() if strip else fields[idx]

    rows: list[CsvRow] = []
    for line_no, fields in enumerate(reader, start=1):
        if not any(f.strip() for f in fields):
            continue
        rows.append(
            CsvRow(
                date=cell(fields, "date"),
                method=cell(fields, "method"),
                amount=cell(fields, "amount"),
                notes=cell(fields, "notes", strip=False),
                category=cell(fields, "category"),
                line=line_no,
            )
        )
    return rows


def parse_amount(raw: str) -> float | None:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if math.isnan(value) or math.isinf(value) or value < 0:
        return None
    return value


def row_errors(row: CsvRow, method_ids: Mapping[str, int] | None = None) -> list[str]:
    errors: list[str] = []
    if not row.date:
        errors.append("Missing date")
    elif parse_iso_date(row.date) is None:
        errors.append("Invalid date format (use YYYY-MM-DD)")

    if not row.method:
        errors.append("Missing method")
    elif method_ids is not None and row.method not in method_ids:
        errors.append(f"Method not found: {row.method}")

    if not row.amount:
        errors.append("Missing amount")
    elif parse_amount(row.amount) is None:
        errors.append("Invalid amount")
    return errors


def _row_number(row: CsvRow, index: int) -> int:
    return row.line or index + 1


def validate_csv_rows(rows: Iterable[CsvRow], method_ids: Mapping[str, int] | None = None) -> list[str]:
    errors: list[str] = []
    for index, row in enumerate(rows):
        number = _row_number(row, index)
        errors.extend(f"Row {number}: {message}" for message in row_errors(row, method_ids))
    return errors


InsertFn = Callable[[int, float, date, str | None], object]


def import_rows(
    rows: Iterable[CsvRow],
    method_ids: Mapping[str, int],
    insert: InsertFn,
    max_errors: int | None = None,
) -> ImportResult:
    """Import rows one by one; a failing row never aborts the batch.

    ``insert`` receives (method_id, amount, entry_date, notes) and may raise
    ``DuplicateEntryError``, ``NotFoundError`` or ``ValidationError``.
    """
    result = ImportResult()

    def fail(number: int, message: str) -> None:
        result.failed += 1
        if max_errors is None or len(result.errors) < max_errors:
            result.errors.append(f"Row {number}: {message}")

    for index, row in enumerate(rows):
        number = _row_number(row, index)
        problems = row_errors(row, method_ids)
        if problems:
            fail(number, problems[0])
            continue

        entry_date = parse_iso_date(row.date)
        amount = parse_amount(row.amount)
        assert entry_date is not None and amount is not None
        try:
            insert(method_ids[row.method], amount, entry_date, row.notes or None)
        except DuplicateEntryError:
            fail(number, DUPLICATE_ROW_MESSAGE)
            continue
        except (NotFoundError, ValidationError) as exc:
            fail(number, str(exc) or "Failed to import row")
            continue
        result.success += 1

    if result.failed:
        logger.info("csv import finished success=%s failed=%s", result.success, result.failed)
    return result

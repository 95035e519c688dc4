from __future__ import annotations

import csv
import io
import json
import logging
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from fractions import Fraction
from pathlib import Path
from typing import Any

from shiftbank.services.ledger import RosterSheet
from shiftbank.services.normalizer import YearMonth

logger = logging.getLogger("shiftbank.roster_io")

ROSTER_SUFFIX = ".csv"
_FILENAME_PATTERN = re.compile(r"^(?P<year>\d{4})-(?P<month>\d{1,2})$")


class RosterFilenameError(ValueError):
    pass


class InitialOffsetsError(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class FileAvailability:
    existing: list[Path]
    missing: list[str]


def parse_csv_text(text: str) -> list[list[str]]:
    content = text.lstrip("\ufeff")
    return [row for row in csv.reader(io.StringIO(content)) if row]


def parse_roster_filename(filename: str | Path) -> YearMonth:
    stem = Path(filename).stem
    match = _FILENAME_PATTERN.match(stem)
    if match is None:
        raise RosterFilenameError(f"Could not extract year/month from filename: {filename}")
    month = int(match.group("month"))
    if not 1 <= month <= 12:
        raise RosterFilenameError(f"Month out of range in filename: {filename}")
    return YearMonth(int(match.group("year")), month)


def roster_filename(period: YearMonth) -> str:
    return f"{period}{ROSTER_SUFFIX}"


def month_range(start: YearMonth, end: YearMonth) -> list[YearMonth]:
    months: list[YearMonth] = []
    cursor = start
    while cursor <= end:
        months.append(cursor)
        cursor = cursor.next()
    return months


def check_file_availability(directory: Path, months: list[YearMonth]) -> FileAvailability:
    existing: list[Path] = []
    missing: list[str] = []
    for period in months:
        path = directory / roster_filename(period)
        if path.is_file():
            existing.append(path)
        else:
            missing.append(path.name)
    return FileAvailability(existing=existing, missing=missing)


def discover_roster_files(directory: Path) -> list[Path]:
    found: list[tuple[YearMonth, Path]] = []
    for path in directory.glob(f"*{ROSTER_SUFFIX}"):
        try:
            found.append((parse_roster_filename(path.name), path))
        except RosterFilenameError:
            logger.info("roster_file_ignored", extra={"path": str(path)})
    return [path for _, path in sorted(found)]


def read_roster_file(path: Path) -> RosterSheet:
    period = parse_roster_filename(path.name)
    text = path.read_text(encoding="utf-8-sig")
    return RosterSheet(year_month=period, rows=parse_csv_text(text), source_name=path.name)


def to_fraction(value: Any) -> Fraction:
    if isinstance(value, bool):
        raise InitialOffsetsError(f"Invalid offset value: {value!r}")
    if isinstance(value, (int, Fraction, Decimal)):
        return Fraction(value)
    try:
        return Fraction(Decimal(str(value).strip()))
    except (InvalidOperation, ValueError, OverflowError) as exc:
        raise InitialOffsetsError(f"Invalid offset value: {value!r}") from exc


def parse_initial_offsets(payload: Any) -> dict[str, Fraction]:
    """Accept ``[{"name": ..., "saved_rest_days": ...}]`` or a plain ``{name: value}`` mapping."""
    offsets: dict[str, Fraction] = {}
    if isinstance(payload, dict):
        items = [{"name": name, "saved_rest_days": value} for name, value in payload.items()]
    elif isinstance(payload, list):
        items = payload
    else:
        raise InitialOffsetsError("Initial offsets must be a list or an object")

    for item in items:
        if not isinstance(item, dict):
            raise InitialOffsetsError(f"Invalid initial offset entry: {item!r}")
        name = str(item.get("name") or "").strip()
        if not name:
            raise InitialOffsetsError(f"Initial offset entry without name: {item!r}")
        offsets[name] = to_fraction(item.get("saved_rest_days", 0))
    return offsets


def load_initial_offsets(path: Path | None) -> dict[str, Fraction]:
    """Read the seed file; a missing file means every offset is zero."""
    if path is None or not path.is_file():
        if path is not None:
            logger.warning("initial_offsets_file_missing", extra={"path": str(path)})
        return {}
    payload = json.loads(path.read_text(encoding="utf-8-sig"))
    offsets = parse_initial_offsets(payload)
    logger.info("initial_offsets_loaded", extra={"path": str(path), "employees": len(offsets)})
    return offsets

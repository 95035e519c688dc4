from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from fractions import Fraction
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from shiftbank.audit import log_audit
from shiftbank.errors import ApiError, not_found
from shiftbank.models import InitialOffset, RosterMonth
from shiftbank.services.ledger import Ledger, RosterSheet, build_ledger
from shiftbank.services.normalizer import RosterFormatError, RosterParseResult, YearMonth, normalize_roster
from shiftbank.services.roster_io import load_initial_offsets, to_fraction
from shiftbank.services.shift_codes import ShiftTable, build_shift_table
from shiftbank.settings import get_initial_offsets_path, get_nursing_half_value

logger = logging.getLogger("shiftbank.roster_store")

OFFSET_QUANTUM = Decimal("0.01")


def current_shift_table() -> ShiftTable:
    return build_shift_table(nursing_half_value=get_nursing_half_value())


def _roster_period(year: int, month: int) -> YearMonth:
    if not 1 <= month <= 12:
        raise ApiError(status_code=422, code="VALIDATION_ERROR", message=f"Invalid month: {month}")
    return YearMonth(year, month)


def store_roster(
    db: Session,
    *,
    year: int,
    month: int,
    rows: Sequence[Sequence[str]],
    source_name: str | None = None,
    request_id: str | None = None,
) -> RosterParseResult:
    """Parse and persist one month of raw rows, replacing any earlier upload."""
    period = _roster_period(year, month)
    try:
        result = normalize_roster(rows, year=period.year, month=period.month, table=current_shift_table())
    except RosterFormatError as exc:
        log_audit(
            db,
            action="ROSTER_UPLOAD",
            success=False,
            entity_type="roster_month",
            entity_id=str(period),
            details={"reason": str(exc), "row_count": len(rows)},
            request_id=request_id,
        )
        raise ApiError(status_code=422, code="ROSTER_FORMAT_INVALID", message=str(exc)) from exc

    roster = db.scalar(select(RosterMonth).where(RosterMonth.year == year, RosterMonth.month == month))
    replaced = roster is not None
    if roster is None:
        roster = RosterMonth(year=year, month=month)
        db.add(roster)

    roster.source_name = source_name
    roster.rows = [[str(cell) for cell in row] for row in rows]
    roster.record_count = len(result.records)
    roster.employee_count = result.employee_count
    roster.skipped_rows = len(result.skipped_rows)
    roster.unknown_code_count = sum(result.unknown_codes.values())
    roster.uploaded_at = datetime.now(timezone.utc)
    db.commit()

    log_audit(
        db,
        action="ROSTER_UPLOAD",
        entity_type="roster_month",
        entity_id=str(period),
        details={
            "replaced": replaced,
            "source_name": source_name,
            "records": roster.record_count,
            "employees": roster.employee_count,
            "skipped_rows": roster.skipped_rows,
            "unknown_codes": roster.unknown_code_count,
        },
        request_id=request_id,
    )
    return result


def list_rosters(db: Session) -> list[RosterMonth]:
    return list(db.scalars(select(RosterMonth).order_by(RosterMonth.year, RosterMonth.month)).all())


def delete_roster(db: Session, *, year: int, month: int, request_id: str | None = None) -> None:
    roster = db.scalar(select(RosterMonth).where(RosterMonth.year == year, RosterMonth.month == month))
    if roster is None:
        raise not_found("ROSTER_NOT_FOUND", f"No roster stored for {year:04d}-{month:02d}.")
    db.delete(roster)
    db.commit()
    log_audit(
        db,
        action="ROSTER_DELETE",
        entity_type="roster_month",
        entity_id=f"{year:04d}-{month:02d}",
        request_id=request_id,
    )


def list_offsets(db: Session) -> list[InitialOffset]:
    return list(db.scalars(select(InitialOffset).order_by(InitialOffset.employee_name)).all())


def upsert_offset(
    db: Session,
    *,
    employee_name: str,
    saved_rest_days: float,
    note: str | None = None,
    request_id: str | None = None,
) -> InitialOffset:
    name = employee_name.strip()
    if not name:
        raise ApiError(status_code=422, code="VALIDATION_ERROR", message="Employee name is required.")
    value = Decimal(str(saved_rest_days)).quantize(OFFSET_QUANTUM, rounding=ROUND_HALF_UP)

    offset = db.scalar(select(InitialOffset).where(InitialOffset.employee_name == name))
    if offset is None:
        offset = InitialOffset(employee_name=name, saved_rest_days=value, note=note)
        db.add(offset)
    else:
        offset.saved_rest_days = value
        offset.note = note
    db.commit()
    db.refresh(offset)

    log_audit(
        db,
        action="INITIAL_OFFSET_UPSERT",
        entity_type="initial_offset",
        entity_id=name,
        details={"saved_rest_days": str(value)},
        request_id=request_id,
    )
    return offset


def delete_offset(db: Session, *, employee_name: str, request_id: str | None = None) -> None:
    offset = db.scalar(select(InitialOffset).where(InitialOffset.employee_name == employee_name.strip()))
    if offset is None:
        raise not_found("OFFSET_NOT_FOUND", f"No initial offset stored for {employee_name}.")
    db.delete(offset)
    db.commit()
    log_audit(
        db,
        action="INITIAL_OFFSET_DELETE",
        entity_type="initial_offset",
        entity_id=offset.employee_name,
        request_id=request_id,
    )


def load_offsets(db: Session) -> dict[str, Fraction]:
    """Seed file first, then stored rows; a stored row wins for the same name."""
    path = get_initial_offsets_path()
    try:
        offsets = load_initial_offsets(path)
    except ValueError as exc:
        logger.error("initial_offsets_invalid", extra={"path": str(path), "error": str(exc)})
        offsets = {}
    for offset in list_offsets(db):
        offsets[offset.employee_name] = to_fraction(offset.saved_rest_days)
    return offsets


def load_ledger(db: Session) -> Ledger:
    sheets = [
        RosterSheet(
            year_month=YearMonth(roster.year, roster.month),
            rows=roster.rows or [],
            source_name=roster.source_name,
        )
        for roster in list_rosters(db)
    ]
    try:
        return build_ledger(sheets, offsets=load_offsets(db), table=current_shift_table())
    except RosterFormatError as exc:
        # Stored rows were validated on upload; a failure here means the row was edited out of band.
        logger.error("stored_roster_unreadable", extra={"error": str(exc)})
        raise ApiError(status_code=500, code="ROSTER_FORMAT_INVALID", message=str(exc)) from exc

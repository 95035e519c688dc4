from fastapi import APIRouter, Depends, Path, Request
from sqlalchemy.orm import Session

from shiftbank.db import get_db
from shiftbank.errors import ApiError
from shiftbank.schemas import (
    InitialOffsetDeleteResponse,
    InitialOffsetRead,
    InitialOffsetUpsertRequest,
    RosterDeleteResponse,
    RosterMonthRead,
    RosterParseReport,
    RosterUploadRequest,
)
from shiftbank.services.exports import parse_result_to_dict
from shiftbank.services.roster_io import parse_csv_text
from shiftbank.services.roster_store import (
    delete_offset,
    delete_roster,
    list_offsets,
    list_rosters,
    store_roster,
    upsert_offset,
)

router = APIRouter(tags=["rosters"])


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


async def read_csv_body(request: Request) -> str:
    raw = await request.body()
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ApiError(
            status_code=422,
            code="ROSTER_FORMAT_INVALID",
            message="Roster CSV must be UTF-8 encoded.",
        ) from exc


@router.get("/api/rosters", response_model=list[RosterMonthRead])
def get_rosters(db: Session = Depends(get_db)) -> list[RosterMonthRead]:
    return [RosterMonthRead.model_validate(item) for item in list_rosters(db)]


@router.put("/api/rosters/{year}/{month}", response_model=RosterParseReport)
def put_roster(
    payload: RosterUploadRequest,
    request: Request,
    year: int = Path(ge=1970, le=9999),
    month: int = Path(ge=1, le=12),
    db: Session = Depends(get_db),
) -> RosterParseReport:
    result = store_roster(
        db,
        year=year,
        month=month,
        rows=payload.rows,
        source_name=payload.source_name,
        request_id=_request_id(request),
    )
    return RosterParseReport.model_validate(parse_result_to_dict(result))


@router.put("/api/rosters/{year}/{month}/csv", response_model=RosterParseReport)
def put_roster_csv(
    request: Request,
    year: int = Path(ge=1970, le=9999),
    month: int = Path(ge=1, le=12),
    text: str = Depends(read_csv_body),
    db: Session = Depends(get_db),
) -> RosterParseReport:
    result = store_roster(
        db,
        year=year,
        month=month,
        rows=parse_csv_text(text),
        source_name=request.headers.get("X-Source-Name") or f"{year:04d}-{month:02d}.csv",
        request_id=_request_id(request),
    )
    return RosterParseReport.model_validate(parse_result_to_dict(result))


@router.delete("/api/rosters/{year}/{month}", response_model=RosterDeleteResponse)
def remove_roster(
    request: Request,
    year: int = Path(ge=1970, le=9999),
    month: int = Path(ge=1, le=12),
    db: Session = Depends(get_db),
) -> RosterDeleteResponse:
    delete_roster(db, year=year, month=month, request_id=_request_id(request))
    return RosterDeleteResponse(ok=True, year=year, month=month)


@router.get("/api/offsets", response_model=list[InitialOffsetRead])
def get_offsets(db: Session = Depends(get_db)) -> list[InitialOffsetRead]:
    return [InitialOffsetRead.model_validate(item) for item in list_offsets(db)]


@router.put("/api/offsets/{employee_name}", response_model=InitialOffsetRead)
def put_offset(
    employee_name: str,
    payload: InitialOffsetUpsertRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> InitialOffsetRead:
    offset = upsert_offset(
        db,
        employee_name=employee_name,
        saved_rest_days=payload.saved_rest_days,
        note=payload.note,
        request_id=_request_id(request),
    )
    return InitialOffsetRead.model_validate(offset)


@router.delete("/api/offsets/{employee_name}", response_model=InitialOffsetDeleteResponse)
def remove_offset(
    employee_name: str,
    request: Request,
    db: Session = Depends(get_db),
) -> InitialOffsetDeleteResponse:
    delete_offset(db, employee_name=employee_name, request_id=_request_id(request))
    return InitialOffsetDeleteResponse(ok=True, employee_name=employee_name.strip())

from typing import Literal

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.orm import Session

from shiftbank.audit import log_audit
from shiftbank.db import get_db
from shiftbank.errors import not_found
from shiftbank.schemas import (
    DatasetOverviewRead,
    DistributionEntryRead,
    DistributionResponse,
    EmployeeSummaryRead,
    MonthlyAggregateRead,
    RankingEntryRead,
    RankingResponse,
    SeasonalPatternRead,
    UnknownCodeRead,
    YearlyTrendRead,
)
from shiftbank.services import reports
from shiftbank.services.exports import (
    XLSX_MEDIA_TYPE,
    aggregate_to_dict,
    build_ledger_xlsx_bytes,
    jsonable,
    monthly_summary_csv,
    summary_to_dict,
)
from shiftbank.services.roster_store import load_ledger

router = APIRouter(tags=["reports"])


@router.get("/api/monthly", response_model=list[MonthlyAggregateRead])
def get_monthly(
    year: int = Query(ge=1970, le=9999),
    month: int = Query(ge=1, le=12),
    db: Session = Depends(get_db),
) -> list[MonthlyAggregateRead]:
    ledger = load_ledger(db)
    items: list[MonthlyAggregateRead] = []
    for aggregate in ledger.monthly_for(year, month):
        summary = ledger.summary_for(aggregate.key)
        cumulative = summary.running_balances.get(aggregate.year_month) if summary is not None else None
        items.append(MonthlyAggregateRead.model_validate(aggregate_to_dict(aggregate, cumulative)))
    return items


@router.get("/api/employees", response_model=list[EmployeeSummaryRead])
def get_employees(
    include_months: bool = Query(default=False),
    db: Session = Depends(get_db),
) -> list[EmployeeSummaryRead]:
    ledger = load_ledger(db)
    items: list[EmployeeSummaryRead] = []
    for summary in ledger.summaries:
        payload = summary_to_dict(summary)
        if not include_months:
            payload["months"] = []
            payload["years"] = []
        items.append(EmployeeSummaryRead.model_validate(payload))
    return items


@router.get("/api/employees/{employee_id}", response_model=list[EmployeeSummaryRead])
def get_employee(employee_id: int, db: Session = Depends(get_db)) -> list[EmployeeSummaryRead]:
    summaries = load_ledger(db).summaries_for_id(employee_id)
    if not summaries:
        raise not_found("EMPLOYEE_NOT_FOUND", f"Employee {employee_id} has no roster records.")
    return [EmployeeSummaryRead.model_validate(summary_to_dict(summary)) for summary in summaries]


@router.get("/api/reports/top", response_model=RankingResponse)
def get_top(
    metric: Literal["balance", "workload"] = Query(default="balance"),
    limit: int = Query(default=5, ge=1, le=500),
    db: Session = Depends(get_db),
) -> RankingResponse:
    entries = reports.rank(load_ledger(db).summaries, metric, limit)
    return RankingResponse(
        metric=metric,
        items=[RankingEntryRead.model_validate(jsonable(entry)) for entry in entries],
    )


@router.get("/api/reports/distribution", response_model=DistributionResponse)
def get_distribution(
    by: Literal["category", "code"] = Query(default="category"),
    limit: int | None = Query(default=None, ge=1, le=500),
    db: Session = Depends(get_db),
) -> DistributionResponse:
    records = load_ledger(db).records
    if by == "category":
        entries = reports.category_distribution(records)
        if limit is not None:
            entries = entries[:limit]
    else:
        entries = reports.shift_code_distribution(records, limit)
    return DistributionResponse(
        by=by,
        total=len(records),
        items=[DistributionEntryRead.model_validate(jsonable(entry)) for entry in entries],
    )


@router.get("/api/reports/yearly", response_model=list[YearlyTrendRead])
def get_yearly(db: Session = Depends(get_db)) -> list[YearlyTrendRead]:
    trends = reports.yearly_trends(load_ledger(db).records)
    return [YearlyTrendRead.model_validate(jsonable(trend)) for trend in trends]


@router.get("/api/reports/seasonal", response_model=list[SeasonalPatternRead])
def get_seasonal(db: Session = Depends(get_db)) -> list[SeasonalPatternRead]:
    patterns = reports.seasonal_patterns(load_ledger(db).records)
    return [SeasonalPatternRead.model_validate(jsonable(pattern)) for pattern in patterns]


@router.get("/api/reports/overview", response_model=DatasetOverviewRead)
def get_overview(db: Session = Depends(get_db)) -> DatasetOverviewRead:
    overview = reports.dataset_overview(load_ledger(db))
    payload = jsonable(overview)
    payload["work_patterns"]["work_rate"] = float(overview.work_patterns.work_rate)
    return DatasetOverviewRead.model_validate(payload)


@router.get("/api/reports/unknown-codes", response_model=list[UnknownCodeRead])
def get_unknown_codes(db: Session = Depends(get_db)) -> list[UnknownCodeRead]:
    audit = reports.unknown_code_audit(load_ledger(db).records)
    return [UnknownCodeRead(code=code, count=count) for code, count in audit.items()]


@router.get("/api/export/ledger.xlsx")
def export_ledger_xlsx(request: Request, db: Session = Depends(get_db)) -> Response:
    ledger = load_ledger(db)
    payload = build_ledger_xlsx_bytes(ledger)

    log_audit(
        db,
        action="LEDGER_EXPORT_XLSX",
        entity_type="export",
        entity_id="ledger",
        details={"employees": ledger.employee_count, "months": len(ledger.months)},
        request_id=getattr(request.state, "request_id", None),
    )

    return Response(
        content=payload,
        media_type=XLSX_MEDIA_TYPE,
        headers={
            "Content-Disposition": 'attachment; filename="shiftbank-ledger.xlsx"',
        },
    )


@router.get("/api/export/monthly.csv")
def export_monthly_csv(
    year: int = Query(ge=1970, le=9999),
    month: int = Query(ge=1, le=12),
    db: Session = Depends(get_db),
) -> Response:
    aggregates = load_ledger(db).monthly_for(year, month)
    if not aggregates:
        raise not_found("ROSTER_NOT_FOUND", f"No roster data for {year:04d}-{month:02d}.")
    return Response(
        content=monthly_summary_csv(aggregates).encode("utf-8-sig"),
        media_type="text/csv; charset=utf-8",
        headers={
            "Content-Disposition": f'attachment; filename="{year:04d}-{month:02d}_summary.csv"',
        },
    )

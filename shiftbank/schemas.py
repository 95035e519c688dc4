from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RosterUploadRequest(BaseModel):
    rows: list[list[str]]
    source_name: str | None = Field(default=None, max_length=255)

    @field_validator("rows", mode="before")
    @classmethod
    def _stringify_cells(cls, value: object) -> object:
        if not isinstance(value, list):
            return value
        return [
            ["" if cell is None else str(cell) for cell in row] if isinstance(row, list) else row
            for row in value
        ]


class SkippedRowRead(BaseModel):
    row_index: int
    reason: str


class RosterParseReport(BaseModel):
    year_month: str
    record_count: int
    employee_count: int
    skipped_rows: list[SkippedRowRead]
    dropped_cells: int
    invalid_day_columns: int
    header_day_count: int
    days_in_month: int
    day_count_mismatch: bool
    unknown_codes: dict[str, int]


class RosterMonthRead(BaseModel):
    id: int
    year: int
    month: int
    source_name: str | None
    record_count: int
    employee_count: int
    skipped_rows: int
    unknown_code_count: int
    uploaded_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RosterDeleteResponse(BaseModel):
    ok: bool
    year: int
    month: int


class InitialOffsetUpsertRequest(BaseModel):
    saved_rest_days: float = Field(ge=-1000, le=1000)
    note: str | None = Field(default=None, max_length=2000)


class InitialOffsetRead(BaseModel):
    id: int
    employee_name: str
    saved_rest_days: float
    note: str | None
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class InitialOffsetDeleteResponse(BaseModel):
    ok: bool
    employee_name: str


class MonthlyAggregateRead(BaseModel):
    employee_id: int
    employee_name: str
    year_month: str
    year: int
    month: int
    total_days_on_record: int
    legal_holiday_days_on_record: int
    legal_workday_count: int
    fulfilled_work_value: float
    balance: float
    work_rate: float
    first_date: date
    last_date: date
    work_days: int
    rest_days: int
    night_shifts: int
    day_shifts: int
    half_value_days: int
    sick_leave_days: int
    maternity_leave_days: int
    leave_days: int
    holiday_work_days: int
    weekend_work_days: int
    unknown_days: int
    shift_counts: dict[str, int]
    cumulative_balance: float | None = None


class YearTotalsRead(BaseModel):
    year: int
    months: int
    total_days_on_record: int
    legal_holiday_days_on_record: int
    legal_workday_count: int
    fulfilled_work_value: float
    balance: float


class EmployeeSummaryRead(BaseModel):
    employee_id: int
    employee_name: str
    initial_offset: float
    cumulative_balance: float
    total_balance: float
    total_days_on_record: int
    total_legal_workdays: int
    total_fulfilled_work_value: float
    average_balance_per_month: float
    average_fulfilled_per_month: float
    career_first_date: date
    career_last_date: date
    months_on_record: int
    years_active: list[int]
    months: list[MonthlyAggregateRead] = Field(default_factory=list)
    years: list[YearTotalsRead] = Field(default_factory=list)


class RankingEntryRead(BaseModel):
    rank: int
    employee_id: int
    employee_name: str
    value: float
    months_on_record: int


class RankingResponse(BaseModel):
    metric: Literal["balance", "workload"]
    items: list[RankingEntryRead]


class DistributionEntryRead(BaseModel):
    label: str
    count: int
    percentage: float


class DistributionResponse(BaseModel):
    by: Literal["category", "code"]
    total: int
    items: list[DistributionEntryRead]


class YearlyTrendRead(BaseModel):
    year: int
    records: int
    work_value: float
    unique_employees: int
    avg_work_value_per_employee: float
    avg_records_per_employee: float


class SeasonalPatternRead(BaseModel):
    month: int
    month_name: str
    total_days: int
    work_days: int
    work_value: float
    work_rate: float
    avg_work_value_per_day: float


class WorkPatternsRead(BaseModel):
    total_work_days: int
    total_rest_days: int
    night_shifts: int
    day_shifts: int
    weekend_work: int
    holiday_work: int
    work_rate: float


class DatasetOverviewRead(BaseModel):
    total_records: int
    unique_employees: int
    months: int
    total_work_value: float
    first_date: date | None
    last_date: date | None
    unknown_code_records: int
    work_patterns: WorkPatternsRead


class UnknownCodeRead(BaseModel):
    code: str
    count: int

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine, Inspector

EXPECTED_ALEMBIC_HEAD = "0001_roster_ledger"

REQUIRED_TABLE_COLUMNS: dict[str, set[str]] = {
    "roster_months": {"id", "year", "month", "rows", "record_count", "employee_count", "uploaded_at"},
    "initial_offsets": {"id", "employee_name", "saved_rest_days"},
    "audit_logs": {"id", "ts_utc", "actor_type", "action", "success", "details"},
    "alembic_version": {"version_num"},
}

# Roster uploads replace by (year, month) and offsets upsert by name; both rely on these.
REQUIRED_UNIQUE_COLUMNS: dict[str, list[tuple[str, ...]]] = {
    "roster_months": [("year", "month")],
    "initial_offsets": [("employee_name",)],
}

REQUIRED_ENUM_VALUES: dict[str, set[str]] = {
    "audit_actor_type": {"API"},
}


@dataclass(frozen=True, slots=True)
class SchemaGuardResult:
    ok: bool
    checked_at_utc: datetime
    alembic_version: str | None = None
    issues: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "checked_at_utc": self.checked_at_utc.isoformat(),
            "alembic_version": self.alembic_version,
            "issues": list(self.issues),
            "warnings": list(self.warnings),
            "issue_count": len(self.issues),
            "warning_count": len(self.warnings),
        }


def _check_columns(inspector: Inspector, issues: list[str]) -> set[str]:
    readable: set[str] = set()
    for table_name, required_columns in REQUIRED_TABLE_COLUMNS.items():
        try:
            column_names = {str(item.get("name")) for item in inspector.get_columns(table_name)}
        except Exception as exc:  # pragma: no cover - defensive
            issues.append(f"TABLE_UNREADABLE:{table_name}:{exc.__class__.__name__}")
            continue
        readable.add(table_name)
        missing_columns = sorted(item for item in required_columns if item not in column_names)
        if missing_columns:
            issues.append(f"MISSING_COLUMNS:{table_name}:{','.join(missing_columns)}")
    return readable


def _check_unique_constraints(
    inspector: Inspector,
    readable_tables: set[str],
    issues: list[str],
    warnings: list[str],
) -> None:
    for table_name, required in REQUIRED_UNIQUE_COLUMNS.items():
        if table_name not in readable_tables:
            continue
        try:
            constraints = inspector.get_unique_constraints(table_name)
        except Exception as exc:  # pragma: no cover - defensive
            warnings.append(f"UNIQUE_INSPECTION_FAILED:{table_name}:{exc.__class__.__name__}")
            continue
        present = {tuple(sorted(item.get("column_names") or [])) for item in constraints}
        for columns in required:
            if tuple(sorted(columns)) not in present:
                issues.append(f"MISSING_UNIQUE:{table_name}:{','.join(columns)}")


def _check_enums(inspector: Inspector, issues: list[str], warnings: list[str]) -> None:
    get_enums = getattr(inspector, "get_enums", None)
    if get_enums is None:
        # SQLite stores enums as plain strings.
        return
    try:
        enums = get_enums() or []
    except Exception as exc:  # pragma: no cover - defensive
        warnings.append(f"ENUM_INSPECTION_FAILED:{exc.__class__.__name__}")
        return

    labels_by_name = {
        str(item.get("name")): {str(label) for label in item.get("labels") or []}
        for item in enums
        if item.get("name")
    }
    for enum_name, required_values in REQUIRED_ENUM_VALUES.items():
        if enum_name not in labels_by_name:
            warnings.append(f"ENUM_NOT_FOUND:{enum_name}")
            continue
        missing_values = sorted(required_values - labels_by_name[enum_name])
        if missing_values:
            issues.append(f"MISSING_ENUM_VALUES:{enum_name}:{','.join(missing_values)}")


def _read_alembic_version(engine: Engine, issues: list[str], warnings: list[str]) -> str | None:
    try:
        with engine.connect() as connection:
            row = connection.execute(text("SELECT version_num FROM alembic_version LIMIT 1")).scalar()
    except Exception as exc:  # pragma: no cover - defensive
        issues.append(f"ALEMBIC_VERSION_CHECK_FAILED:{exc.__class__.__name__}")
        return None

    version = str(row).strip() if row is not None else ""
    if not version:
        issues.append("ALEMBIC_VERSION_EMPTY")
        return None
    if version != EXPECTED_ALEMBIC_HEAD:
        warnings.append(f"ALEMBIC_VERSION_UNEXPECTED:{version}")
    return version


def verify_runtime_schema(engine: Engine) -> SchemaGuardResult:
    """Check that the connected database matches what the roster ledger writes."""
    issues: list[str] = []
    warnings: list[str] = []
    checked_at_utc = datetime.now(timezone.utc)
    inspector = inspect(engine)

    readable_tables = _check_columns(inspector, issues)
    _check_unique_constraints(inspector, readable_tables, issues, warnings)
    _check_enums(inspector, issues, warnings)
    version = _read_alembic_version(engine, issues, warnings)

    return SchemaGuardResult(
        ok=len(issues) == 0,
        checked_at_utc=checked_at_utc,
        alembic_version=version,
        issues=issues,
        warnings=warnings,
    )

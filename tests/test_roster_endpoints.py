from __future__ import annotations

import tempfile
import unittest
from collections.abc import Generator
from io import BytesIO
from pathlib import Path
from unittest.mock import patch

from fastapi.testclient import TestClient
from openpyxl import load_workbook
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from shiftbank.db import Base, get_db
from shiftbank.main import app
from shiftbank.models import AuditActorType, AuditLog

JANUARY_ROWS = [
    ["工号", "姓名", "1", "2", "3"],
    ["", "", "星期一", "星期二", "星期三"],
    ["", "", "Y", "", ""],
    ["1001", "张三", "小", "下", "白"],
    ["1002", "李四", "休", "半", "进修"],
]
FEBRUARY_CSV = "工号,姓名,1,2\n,,星期四,星期五\n,,,\n1001,张三,白,休\n"


def _override_get_db(session_factory):
    def _override() -> Generator[Session, None, None]:
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    return _override


class RosterEndpointTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        Base.metadata.create_all(self.engine)
        self.session_factory = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)
        app.dependency_overrides[get_db] = _override_get_db(self.session_factory)
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()
        self.engine.dispose()

    def _upload_january(self):  # type: ignore[no-untyped-def]
        return self.client.put(
            "/api/rosters/2024/1",
            json={"rows": JANUARY_ROWS, "source_name": "2024-01.csv"},
        )

    def test_upload_returns_parse_report_and_audits(self) -> None:
        response = self._upload_january()

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["year_month"], "2024-01")
        self.assertEqual(body["record_count"], 6)
        self.assertEqual(body["employee_count"], 2)
        self.assertEqual(body["unknown_codes"], {"进修": 1})
        self.assertTrue(body["day_count_mismatch"])
        self.assertTrue(response.headers.get("X-Request-Id"))

        with self.session_factory() as db:
            entries = db.scalars(select(AuditLog)).all()
        self.assertEqual([item.action for item in entries], ["ROSTER_UPLOAD"])
        self.assertEqual([item.actor_type for item in entries], [AuditActorType.API])

    def test_upload_replaces_existing_month(self) -> None:
        self._upload_january()
        rows = JANUARY_ROWS[:4]
        response = self.client.put("/api/rosters/2024/1", json={"rows": rows})

        self.assertEqual(response.status_code, 200)
        listing = self.client.get("/api/rosters").json()
        self.assertEqual(len(listing), 1)
        self.assertEqual(listing[0]["record_count"], 3)
        self.assertEqual(listing[0]["employee_count"], 1)

    def test_malformed_sheet_is_rejected(self) -> None:
        response = self.client.put("/api/rosters/2024/1", json={"rows": JANUARY_ROWS[:3]})

        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["error"]["code"], "ROSTER_FORMAT_INVALID")
        self.assertEqual(self.client.get("/api/rosters").json(), [])

    def test_invalid_month_is_validation_error(self) -> None:
        response = self.client.put("/api/rosters/2024/13", json={"rows": JANUARY_ROWS})

        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["error"]["code"], "VALIDATION_ERROR")

    def test_csv_upload(self) -> None:
        response = self.client.put(
            "/api/rosters/2024/2/csv",
            content=("\ufeff" + FEBRUARY_CSV).encode("utf-8"),
            headers={"Content-Type": "text/csv"},
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["record_count"], 2)
        listing = self.client.get("/api/rosters").json()
        self.assertEqual(listing[0]["source_name"], "2024-02.csv")

    def test_delete_roster(self) -> None:
        self._upload_january()

        response = self.client.delete("/api/rosters/2024/1")
        missing = self.client.delete("/api/rosters/2024/1")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"ok": True, "year": 2024, "month": 1})
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.json()["error"]["code"], "ROSTER_NOT_FOUND")

    def test_monthly_view_uses_offsets(self) -> None:
        self._upload_january()
        offset = self.client.put("/api/offsets/张三", json={"saved_rest_days": 1.5, "note": "2023 carry-over"})
        self.assertEqual(offset.status_code, 200)
        self.assertEqual(offset.json()["saved_rest_days"], 1.5)

        response = self.client.get("/api/monthly", params={"year": 2024, "month": 1})

        self.assertEqual(response.status_code, 200)
        items = {item["employee_name"]: item for item in response.json()}
        # Day 1 is a holiday: 0.5 + 1 against 2 legal days.
        self.assertEqual(items["张三"]["legal_workday_count"], 2)
        self.assertEqual(items["张三"]["fulfilled_work_value"], 2.5)
        self.assertEqual(items["张三"]["balance"], 0.5)
        self.assertEqual(items["张三"]["cumulative_balance"], 2.0)
        self.assertEqual(items["李四"]["balance"], -1.5)

    def test_monthly_view_for_month_without_data_is_empty(self) -> None:
        self._upload_january()

        response = self.client.get("/api/monthly", params={"year": 2024, "month": 5})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), [])

    def test_offset_crud(self) -> None:
        self.client.put("/api/offsets/李四", json={"saved_rest_days": -2})
        self.assertEqual([item["employee_name"] for item in self.client.get("/api/offsets").json()], ["李四"])

        self.assertEqual(self.client.delete("/api/offsets/李四").status_code, 200)
        missing = self.client.delete("/api/offsets/李四")
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.json()["error"]["code"], "OFFSET_NOT_FOUND")

    def test_employee_summaries(self) -> None:
        self._upload_january()
        self.client.put("/api/rosters/2024/2/csv", content=FEBRUARY_CSV.encode("utf-8"))

        listing = self.client.get("/api/employees").json()
        detail = self.client.get("/api/employees/1001")
        missing = self.client.get("/api/employees/9999")

        self.assertEqual([item["employee_id"] for item in listing], [1001, 1002])
        self.assertEqual(listing[0]["months"], [])
        self.assertEqual(detail.status_code, 200)
        summary = detail.json()[0]
        self.assertEqual([item["year_month"] for item in summary["months"]], ["2024-01", "2024-02"])
        self.assertEqual(summary["cumulative_balance"], -0.5)
        self.assertEqual(summary["average_balance_per_month"], -0.25)
        self.assertEqual(summary["career_last_date"], "2024-02-02")
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.json()["error"]["code"], "EMPLOYEE_NOT_FOUND")

    def test_report_endpoints(self) -> None:
        self._upload_january()

        top = self.client.get("/api/reports/top", params={"metric": "balance", "limit": 1}).json()
        distribution = self.client.get("/api/reports/distribution", params={"by": "code"}).json()
        yearly = self.client.get("/api/reports/yearly").json()
        seasonal = self.client.get("/api/reports/seasonal").json()
        overview = self.client.get("/api/reports/overview").json()
        unknown = self.client.get("/api/reports/unknown-codes").json()

        self.assertEqual(top["items"][0]["employee_name"], "张三")
        self.assertEqual(distribution["total"], 6)
        self.assertEqual(yearly[0]["records"], 6)
        self.assertEqual(len(seasonal), 12)
        self.assertEqual(overview["unique_employees"], 2)
        self.assertEqual(overview["work_patterns"]["night_shifts"], 2)
        self.assertEqual(unknown, [{"code": "进修", "count": 1}])

    def test_unknown_ranking_metric_is_validation_error(self) -> None:
        response = self.client.get("/api/reports/top", params={"metric": "speed"})

        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["error"]["code"], "VALIDATION_ERROR")

    def test_xlsx_export(self) -> None:
        self._upload_january()

        response = self.client.get("/api/export/ledger.xlsx")

        self.assertEqual(response.status_code, 200)
        self.assertIn(
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            response.headers.get("content-type", ""),
        )
        workbook = load_workbook(BytesIO(response.content))
        self.assertEqual(workbook.sheetnames, ["Summary", "Monthly"])
        self.assertEqual(workbook["Monthly"].max_row, 3)

    def test_monthly_csv_export(self) -> None:
        self._upload_january()

        response = self.client.get("/api/export/monthly.csv", params={"year": 2024, "month": 1})
        missing = self.client.get("/api/export/monthly.csv", params={"year": 2024, "month": 2})

        self.assertEqual(response.status_code, 200)
        self.assertIn("text/csv", response.headers.get("content-type", ""))
        self.assertIn('filename="2024-01_summary.csv"', response.headers.get("content-disposition", ""))
        lines = response.content.decode("utf-8-sig").strip().split("\n")
        self.assertEqual(len(lines), 3)
        self.assertTrue(lines[0].startswith("Employee ID,Employee Name,Total Days"))
        self.assertTrue(lines[1].startswith("1001,张三,3,3,0,2.5"))
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.json()["error"]["code"], "ROSTER_NOT_FOUND")

    def test_stored_offsets_override_seed_file(self) -> None:
        self._upload_january()
        self.client.put("/api/offsets/张三", json={"saved_rest_days": 1})

        with patch("shiftbank.services.roster_store.load_initial_offsets", return_value={"张三": 5, "李四": 2}):
            items = {item["employee_name"]: item for item in self.client.get("/api/employees").json()}

        self.assertEqual(items["张三"]["initial_offset"], 1.0)
        self.assertEqual(items["李四"]["initial_offset"], 2.0)

    def test_corrupt_seed_file_falls_back_to_stored_offsets(self) -> None:
        self._upload_january()
        self.client.put("/api/offsets/张三", json={"saved_rest_days": 1})

        with tempfile.TemporaryDirectory() as tmp:
            seed = Path(tmp) / "initial_saved_rest_days.json"
            seed.write_text("{not json", encoding="utf-8")
            with patch("shiftbank.services.roster_store.get_initial_offsets_path", return_value=seed):
                with self.assertLogs("shiftbank.roster_store", level="ERROR"):
                    response = self.client.get("/api/employees")

        self.assertEqual(response.status_code, 200)
        items = {item["employee_name"]: item for item in response.json()}
        self.assertEqual(items["张三"]["initial_offset"], 1.0)
        self.assertEqual(items["李四"]["initial_offset"], 0.0)


class HealthEndpointTests(unittest.TestCase):
    def test_health_reports_schema_guard_state(self) -> None:
        client = TestClient(app)

        response = client.get("/health")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["status"], "ok")
        self.assertIn("schema_guard", body)
        self.assertEqual(body["shift_codes"], 19)


if __name__ == "__main__":
    unittest.main()

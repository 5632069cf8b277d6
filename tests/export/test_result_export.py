# tests/export/test_result_export.py
from __future__ import annotations

import csv
import json
from datetime import date
from pathlib import Path

import pytest

from rosterguard.errors import DataError
from rosterguard.export.result_export import (
    VIOLATION_COLUMNS,
    load_result_json,
    write_result_json,
    write_text_report,
    write_violations_csv,
)
from rosterguard.schemas.models import (
    Assignment,
    BrokerInfo,
    LocationInfo,
    PostValidationResult,
    RuleId,
    UnallocatedDemand,
)
from rosterguard.validator import validate_generated_schedule


@pytest.fixture()
def result() -> PostValidationResult:
    """
    @brief
    A small result with one rule warning and one unallocated error.
    """
    rows = [
        Assignment(
            broker_id="b-ana",
            location_id="loc-botanic",
            assignment_date=date(2025, 3, day),
            shift_type="morning",
        )
        for day in (3, 4, 5)
    ]
    demand = UnallocatedDemand(
        locationId="loc-botanic", locationName="Botanic", date="2025-03-07", shift="afternoon"
    )
    return validate_generated_schedule(
        rows,
        [BrokerInfo(id="b-ana", name="Ana")],
        [LocationInfo(id="loc-botanic", name="Botanic", type="external")],
        unallocated_demands=[demand],
    )


def test_write_result_json_uses_camel_case_and_iso_dates(tmp_path: Path, result):
    """
    @brief
    The JSON report matches the application wire format.

    @details
    camelCase keys, ISO-8601 date strings and enum values as plain strings.
    """
    # --- Act ---
    out = write_result_json(result, tmp_path / "reports" / "validation_report.json")

    # --- Assert ---
    payload = json.loads(out.read_text(encoding="utf-8"))
    assert payload["isValid"] is False
    assert payload["summary"] == {
        "totalAssignments": 3,
        "totalBrokers": 1,
        "errorCount": 1,
        "warningCount": 1,
        "unallocatedCount": 1,
    }
    first = payload["violations"][0]
    assert first["rule"] == "TURNO_NAO_ALOCADO"
    assert first["brokerName"] == "—"
    assert first["dates"] == ["2025-03-07"]
    assert payload["brokerReports"][0]["weeklyBreakdown"][0]["weekLabel"] == "S10"
    assert payload["unallocatedDemands"] == [
        {
            "locationId": "loc-botanic",
            "locationName": "Botanic",
            "date": "2025-03-07",
            "shift": "afternoon",
        }
    ]
    # no temp files left behind
    assert [p.name for p in out.parent.iterdir()] == ["validation_report.json"]


def test_written_result_reloads_unchanged(tmp_path: Path, result):
    path = write_result_json(result, tmp_path / "validation_report.json")

    assert load_result_json(path) == result


def test_write_text_report_appends_newline(tmp_path: Path):
    out = write_text_report("line one\nline two", tmp_path / "validation_report.txt")

    assert out.read_text(encoding="utf-8") == "line one\nline two\n"


def test_write_violations_csv(tmp_path: Path, result):
    """One row per violation in result order; multi-valued cells joined with ';'."""
    out = write_violations_csv(result.violations, tmp_path / "violations.csv")

    with out.open(encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        rows = list(reader)

    assert tuple(reader.fieldnames) == VIOLATION_COLUMNS
    assert [r["rule"] for r in rows] == ["TURNO_NAO_ALOCADO", "MAX_2_EXTERNOS_SEMANA"]
    assert rows[0]["severity"] == "error"
    assert rows[1]["broker_id"] == "b-ana"
    assert rows[1]["dates"] == "2025-03-03;2025-03-04;2025-03-05"
    assert rows[1]["locations"] == "Botanic"


def test_write_violations_csv_empty_has_header(tmp_path: Path):
    out = write_violations_csv([], tmp_path / "violations.csv")

    assert out.read_text(encoding="utf-8") == ",".join(VIOLATION_COLUMNS) + "\n"


def _stored(violations: list[dict], error_count: int, warning_count: int) -> dict:
    return {
        "isValid": error_count == 0,
        "violations": violations,
        "summary": {
            "totalAssignments": 4,
            "totalBrokers": 1,
            "errorCount": error_count,
            "warningCount": warning_count,
            "unallocatedCount": 0,
        },
        "brokerReports": [
            {
                "brokerId": "b-ana",
                "brokerName": "Ana",
                "totalAssignments": 4,
                "externalCount": 4,
                "internalCount": 0,
                "saturdayCount": 0,
                "weeklyBreakdown": [],
                "violations": violations,
            }
        ],
        "unallocatedDemands": [],
    }


def test_load_result_json_drops_retired_rules_and_recounts(tmp_path: Path):
    """
    @brief
    Results stored by older releases are cleaned on reload.

    @details
    The consecutive-days rule was retired; its violations are removed at
    top level and inside broker reports, and counters and validity are
    recomputed from the remaining violations.
    """
    # --- Arrange ---
    legacy = {
        "rule": RuleId.SEM_EXTERNOS_CONSECUTIVOS.value,
        "severity": "error",
        "brokerName": "Ana",
        "brokerId": "b-ana",
        "details": "Externos em dias consecutivos",
        "dates": ["2025-03-03", "2025-03-04"],
        "locations": ["Botanic"],
    }
    kept = {
        "rule": "MAX_2_EXTERNOS_SEMANA",
        "severity": "warning",
        "brokerName": "Ana",
        "brokerId": "b-ana",
        "details": "Ana tem 3 DIAS com externo na semana S10",
        "dates": [],
        "locations": [],
    }
    path = tmp_path / "stored.json"
    path.write_text(json.dumps(_stored([legacy, kept], 1, 1)), encoding="utf-8")

    # --- Act ---
    loaded = load_result_json(path)

    # --- Assert ---
    assert [v.rule for v in loaded.violations] == ["MAX_2_EXTERNOS_SEMANA"]
    assert [v.rule for v in loaded.broker_reports[0].violations] == ["MAX_2_EXTERNOS_SEMANA"]
    assert loaded.summary.error_count == 0
    assert loaded.summary.warning_count == 1
    assert loaded.is_valid is True


def test_load_result_json_drops_unknown_consecutive_rule_ids(tmp_path: Path):
    other_legacy = {
        "rule": "DIAS_CONSECUTIVOS_EXTERNOS",
        "severity": "warning",
        "brokerName": "Ana",
        "details": "legacy",
    }
    path = tmp_path / "stored.json"
    path.write_text(json.dumps(_stored([other_legacy], 0, 1)), encoding="utf-8")

    loaded = load_result_json(path)

    assert loaded.violations == []
    assert loaded.summary.warning_count == 0


def test_load_result_json_missing_file(tmp_path: Path):
    with pytest.raises(DataError) as exc:
        load_result_json(tmp_path / "missing.json")

    assert "not found" in str(exc.value)


def test_load_result_json_rejects_bad_content(tmp_path: Path):
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    wrong = tmp_path / "wrong.json"
    wrong.write_text(json.dumps({"isValid": True, "unexpected": 1}), encoding="utf-8")

    with pytest.raises(DataError):
        load_result_json(broken)
    with pytest.raises(DataError):
        load_result_json(wrong)

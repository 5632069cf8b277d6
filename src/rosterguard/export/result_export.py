# src/rosterguard/export/result_export.py
from __future__ import annotations

import csv
import io
import json
import logging
import os
import tempfile
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from rosterguard.errors import DataError, ValidationError
from rosterguard.schemas.models import PostValidationResult, RuleId, Severity, Violation

logger = logging.getLogger(__name__)

VIOLATION_COLUMNS = ("severity", "rule", "broker_id", "broker_name", "details", "dates", "locations")

# Retired rule ids still present in results stored by older releases
LEGACY_RULE_IDS = frozenset({RuleId.SEM_EXTERNOS_CONSECUTIVOS.value})
LEGACY_RULE_MARKER = "consecutiv"


def result_to_dict(result: PostValidationResult) -> dict[str, Any]:
    """JSON-ready mapping with the camelCase keys used by the application store."""
    return result.model_dump(mode="json", by_alias=True)


def write_result_json(result: PostValidationResult, out_path: Path) -> Path:
    """
    @brief
    Writes a PostValidationResult as JSON, atomically.

    @details
    Dates are serialized as ISO-8601 strings and keys use camelCase
    (isValid, brokerReports, ...). Repeated runs overwrite the same file.

    @raises
        ValidationError
            If the report cannot be written.
    """
    payload = json.dumps(result_to_dict(result), ensure_ascii=False, indent=2)
    try:
        _atomic_write_text(Path(out_path), payload)
    except OSError as e:
        raise ValidationError(
            f"Failed to write validation report: {e}",
            source="export.write_result_json",
            suggested_action="Check disk permissions and free space.",
        ) from e

    logger.info("Validation report saved: %s", out_path)
    return Path(out_path)


def write_text_report(text: str, out_path: Path) -> Path:
    """Writes the rendered text report atomically (UTF-8)."""
    try:
        _atomic_write_text(Path(out_path), text if text.endswith("\n") else text + "\n")
    except OSError as e:
        raise ValidationError(
            f"Failed to write text report: {e}",
            source="export.write_text_report",
            suggested_action="Check disk permissions and free space.",
        ) from e
    return Path(out_path)


def write_violations_csv(violations: Iterable[Violation], out_path: Path) -> Path:
    """
    @brief
    Exports violations into a flat CSV file.

    @details
    One row per violation, in the given order. Multi-valued fields (dates,
    locations) are joined with ';'. The file is UTF-8 and written
    atomically; an empty input still produces the header.
    """
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=VIOLATION_COLUMNS, lineterminator="\n")
    writer.writeheader()
    for v in violations:
        writer.writerow(
            {
                "severity": str(v.severity),
                "rule": str(v.rule),
                "broker_id": v.broker_id,
                "broker_name": v.broker_name,
                "details": v.details,
                "dates": ";".join(d.isoformat() for d in v.dates),
                "locations": ";".join(v.locations),
            }
        )

    try:
        _atomic_write_text(Path(out_path), buffer.getvalue())
    except OSError as e:
        raise DataError(
            f"Failed to write violations CSV: {e}",
            source="export.write_violations_csv",
            suggested_action="Check output directory permissions and disk space.",
        ) from e
    return Path(out_path)


def _is_legacy_violation(raw: Any) -> bool:
    rule = str(raw.get("rule", "")) if isinstance(raw, dict) else ""
    return rule in LEGACY_RULE_IDS or LEGACY_RULE_MARKER in rule.lower()


def load_result_json(path: Path) -> PostValidationResult:
    """
    @brief
    Reload a stored PostValidationResult.

    @details
    Violations of retired rules (consecutive external days) are dropped,
    both at top level and inside broker reports, and the error/warning
    counters and validity flag are recomputed from what remains.

    @raises
        DataError
            If the file is missing, not JSON, or does not match the schema.
    """
    path = Path(path)
    if not path.exists():
        raise DataError(
            f"Stored validation result not found: {path}",
            source="export.load_result_json",
            suggested_action="Run the validator first or check the path.",
        )
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise DataError(
            f"Unable to read stored validation result: {e}",
            source="export.load_result_json",
            suggested_action="Check that the file is a JSON validation report.",
        ) from e

    if not isinstance(raw, dict):
        raise DataError(
            "Stored validation result must be a JSON object.",
            source="export.load_result_json",
        )

    # (1) Drop retired rules
    raw["violations"] = [v for v in raw.get("violations") or [] if not _is_legacy_violation(v)]
    for report in raw.get("brokerReports") or []:
        if isinstance(report, dict):
            report["violations"] = [
                v for v in report.get("violations") or [] if not _is_legacy_violation(v)
            ]

    # (2) Recompute counters from what is left
    errors = sum(1 for v in raw["violations"] if v.get("severity") == Severity.ERROR.value)
    warnings = sum(1 for v in raw["violations"] if v.get("severity") == Severity.WARNING.value)
    summary = dict(raw.get("summary") or {})
    summary.update({"errorCount": errors, "warningCount": warnings})
    raw["summary"] = summary
    raw["isValid"] = errors == 0

    try:
        return PostValidationResult.model_validate(raw)
    except PydanticValidationError as e:
        raise DataError(
            f"Stored validation result does not match the schema: {e}",
            source="export.load_result_json",
            suggested_action="Regenerate the report with the current validator.",
        ) from e


def _atomic_write_text(path: Path, text: str, encoding: str = "utf-8") -> None:
    """
    @brief
    Performs atomic text file writing using a temporary file swap.

    @details
    Writes to a temporary file in the target directory, then replaces the
    destination in one filesystem operation. The temporary file is removed
    if anything fails.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(prefix=path.name + ".", dir=str(path.parent))
    try:
        with open(fd, "w", encoding=encoding, newline="") as f:
            f.write(text)
        os.replace(tmp_path, path)
    except OSError:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise

# src/rosterguard/dataloader/dataset_loader.py
from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from rosterguard.dataloader.types import LoadResult, ValidationInput
from rosterguard.errors import DataError
from rosterguard.schemas.models import Assignment, BrokerInfo, LocationInfo, UnallocatedDemand

logger = logging.getLogger(__name__)


class DatasetLoader:
    """
    JSON dataset bundle -> LoadResult[ValidationInput].

    Expected layout (UTF-8 JSON object):
      - assignments            : list, required
      - brokers                : list, required
      - locations              : list, required
      - unallocatedDemands     : list, optional (alias: unallocated_demands)
      - locationBrokerConfigs  : {locationId: [brokerId, ...]}, optional
                                 (alias: location_broker_configs)

    Row-level problems are collected and make the load unsuccessful:
      * record is not an object          -> invalid_record
      * record fails schema validation   -> schema_error
      * repeated broker/location id      -> duplicate_id (first kept)
      * identical assignment repeated    -> duplicate_assignment (first kept)

    Fatal problems raise DataError immediately:
      - file missing / unreadable / not valid JSON
      - root is not an object
      - a required section is missing or is not a list
    """

    REQUIRED_SECTIONS = ("assignments", "brokers", "locations")
    OPTIONAL_SECTIONS = {
        "unallocatedDemands": "unallocated_demands",
        "locationBrokerConfigs": "location_broker_configs",
    }

    def load(self, path: Path) -> LoadResult:
        payload = self._read_json(path)
        result = self.parse(payload)
        self._report_summary(path, result)
        return result

    def parse(self, payload: Mapping[str, Any]) -> LoadResult:
        """Validate an already-decoded dataset mapping."""
        if not isinstance(payload, Mapping):
            raise DataError(
                message="Dataset root must be a JSON object.",
                source="DatasetLoader.parse",
                suggested_action="Wrap sections in an object: {\"assignments\": [...], ...}",
            )
        sections = self._sections(payload)
        issues: list[dict[str, Any]] = []

        brokers = self._parse_records("brokers", sections["brokers"], BrokerInfo, issues)
        locations = self._parse_records("locations", sections["locations"], LocationInfo, issues)
        assignments = self._parse_records(
            "assignments", sections["assignments"], Assignment, issues
        )
        demands = self._parse_records(
            "unallocatedDemands", sections["unallocatedDemands"], UnallocatedDemand, issues
        )
        configs = self._parse_configs(sections["locationBrokerConfigs"], issues)

        self._flag_duplicate_ids("brokers", brokers, issues)
        self._flag_duplicate_ids("locations", locations, issues)
        assignments = self._drop_duplicate_assignments(assignments, issues)

        total_rows = sum(
            len(sections[name])
            for name in ("assignments", "brokers", "locations", "unallocatedDemands")
        )

        if issues:
            return LoadResult(success=False, data=None, errors=issues, total_rows=total_rows)

        data = ValidationInput(
            assignments=[row for _, row in assignments],
            brokers=[row for _, row in brokers],
            locations=[row for _, row in locations],
            unallocated_demands=[row for _, row in demands],
            location_broker_configs=configs,
        )
        self._log_unresolved_references(data)
        return LoadResult(
            success=True,
            data=data,
            errors=[],
            total_rows=total_rows,
            kept_rows=total_rows,
        )

    # ------------------------------
    # Internal helpers
    # ------------------------------
    def _read_json(self, path: Path) -> Any:
        if not isinstance(path, Path):
            raise DataError(
                message=f"Invalid path type: expected pathlib.Path, got {type(path).__name__}",
                source="DatasetLoader._read_json",
                suggested_action="Pass a pathlib.Path pointing to the dataset JSON.",
            )
        if not path.exists():
            raise DataError(
                message=f"Dataset file not found: {path}",
                source="DatasetLoader._read_json",
                suggested_action="Verify file path and ensure the dataset JSON is present.",
            )

        try:
            with path.open("r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise DataError(
                message=f"Dataset is not valid JSON: {e}",
                source="DatasetLoader._read_json",
                suggested_action="Fix the JSON syntax of the dataset file.",
            ) from e
        except OSError as e:
            raise DataError(
                message=f"Unable to read dataset: {e}",
                source="DatasetLoader._read_json",
                suggested_action="Check file permissions and that the file is not locked.",
            ) from e

    def _sections(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        sections: dict[str, Any] = {}
        for name in self.REQUIRED_SECTIONS:
            value = payload.get(name)
            if not isinstance(value, list):
                raise DataError(
                    message=f"Dataset section '{name}' is missing or is not a list.",
                    source="DatasetLoader._sections",
                    suggested_action=f"Provide '{name}' as a JSON array.",
                )
            sections[name] = value

        for name, alias in self.OPTIONAL_SECTIONS.items():
            sections[name] = payload.get(name, payload.get(alias))

        if sections["unallocatedDemands"] is None:
            sections["unallocatedDemands"] = []
        if not isinstance(sections["unallocatedDemands"], list):
            raise DataError(
                message="Dataset section 'unallocatedDemands' must be a list.",
                source="DatasetLoader._sections",
                suggested_action="Provide 'unallocatedDemands' as a JSON array or omit it.",
            )

        configs = sections["locationBrokerConfigs"]
        if configs is not None and not isinstance(configs, Mapping):
            raise DataError(
                message="Dataset section 'locationBrokerConfigs' must be an object.",
                source="DatasetLoader._sections",
                suggested_action="Map each location id to a list of broker ids, or omit it.",
            )
        return sections

    def _parse_records(
        self,
        section: str,
        rows: list[Any],
        model: type[BaseModel],
        issues: list[dict[str, Any]],
    ) -> list[tuple[int, Any]]:
        parsed: list[tuple[int, Any]] = []
        for idx, row in enumerate(rows):
            if not isinstance(row, Mapping):
                issues.append(
                    {
                        "kind": "invalid_record",
                        "section": section,
                        "index": idx,
                        "message": f"Expected an object, got {type(row).__name__}",
                    }
                )
                continue
            try:
                parsed.append((idx, model.model_validate(dict(row))))
            except PydanticValidationError as e:
                issues.append(
                    {
                        "kind": "schema_error",
                        "section": section,
                        "index": idx,
                        "message": "; ".join(
                            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                            for err in e.errors()
                        ),
                    }
                )
        return parsed

    def _parse_configs(
        self, configs: Mapping[str, Any] | None, issues: list[dict[str, Any]]
    ) -> dict[str, list[str]] | None:
        if configs is None:
            return None
        out: dict[str, list[str]] = {}
        for location_id, broker_ids in configs.items():
            if not isinstance(broker_ids, list) or not all(
                isinstance(b, str) for b in broker_ids
            ):
                issues.append(
                    {
                        "kind": "schema_error",
                        "section": "locationBrokerConfigs",
                        "index": location_id,
                        "message": "Expected a list of broker id strings",
                    }
                )
                continue
            out[str(location_id)] = list(broker_ids)
        return out

    def _flag_duplicate_ids(
        self, section: str, rows: list[tuple[int, Any]], issues: list[dict[str, Any]]
    ) -> None:
        seen: set[str] = set()
        for idx, row in rows:
            if row.id in seen:
                issues.append(
                    {
                        "kind": "duplicate_id",
                        "section": section,
                        "index": idx,
                        "message": f"Duplicate id '{row.id}' (later occurrence skipped)",
                    }
                )
            seen.add(row.id)

    def _drop_duplicate_assignments(
        self, rows: list[tuple[int, Assignment]], issues: list[dict[str, Any]]
    ) -> list[tuple[int, Assignment]]:
        kept: list[tuple[int, Assignment]] = []
        seen: set[tuple[str, str, str, str]] = set()
        for idx, row in rows:
            key = (
                row.broker_id,
                row.location_id,
                row.assignment_date.isoformat(),
                str(row.shift_type),
            )
            if key in seen:
                issues.append(
                    {
                        "kind": "duplicate_assignment",
                        "section": "assignments",
                        "index": idx,
                        "message": "Identical assignment repeated (later occurrence skipped)",
                    }
                )
                continue
            seen.add(key)
            kept.append((idx, row))
        return kept

    def _log_unresolved_references(self, data: ValidationInput) -> None:
        broker_ids = {b.id for b in data.brokers}
        location_ids = {loc.id for loc in data.locations}
        unknown_brokers = {a.broker_id for a in data.assignments} - broker_ids
        unknown_locations = {a.location_id for a in data.assignments} - location_ids
        if unknown_brokers or unknown_locations:
            logger.warning(
                "Dataset references %d unknown broker(s) and %d unknown location(s); "
                "they will be reported as 'Desconhecido'.",
                len(unknown_brokers),
                len(unknown_locations),
            )

    def _report_summary(self, path: Path, result: LoadResult) -> None:
        if result.success:
            logger.info(
                "DatasetLoader OK: kept=%d/%d record(s) from %s",
                result.kept_rows,
                result.total_rows,
                path,
            )
        else:
            counts: dict[str, int] = {}
            for it in result.errors:
                counts[it["kind"]] = counts.get(it["kind"], 0) + 1
            summary = ", ".join(f"{k}={v}" for k, v in counts.items())
            logger.error(
                "DatasetLoader failed: %d issue(s) across %d record(s) in %s [%s]",
                len(result.errors),
                result.total_rows,
                path,
                summary or "no-summary",
            )

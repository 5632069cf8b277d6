# src/rosterguard/dataloader/types.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from rosterguard.schemas.models import Assignment, BrokerInfo, LocationInfo, UnallocatedDemand


@dataclass(slots=True)
class ValidationInput:
    """
    Everything the post-generation validator consumes for one period.

    `location_broker_configs` is None when the dataset declares no eligibility
    map; the validator then infers sole providers from the schedule.
    """

    assignments: list[Assignment] = field(default_factory=list)
    brokers: list[BrokerInfo] = field(default_factory=list)
    locations: list[LocationInfo] = field(default_factory=list)
    unallocated_demands: list[UnallocatedDemand] = field(default_factory=list)
    location_broker_configs: dict[str, list[str]] | None = None


@dataclass(slots=True)
class LoadResult:
    """
    Structured result of a data loading step.

    Fields:
        success: True if no row-level issues were found, False otherwise.
        data: Parsed dataset ready for the validator (None if success=False).
        errors: List of issue dicts with per-row context (used for reporting).
                Each item contains at least: kind, section, index, message.
        total_rows: Total number of records observed across all sections.
        kept_rows: Number of records that parsed cleanly.
    """

    success: bool
    data: ValidationInput | None = None
    errors: list[dict[str, Any]] = field(default_factory=list)
    total_rows: int = 0
    kept_rows: int = 0

# src/rosterguard/validator/aggregator.py
from __future__ import annotations

import logging
import unicodedata
from collections.abc import Sequence

from rosterguard.schemas.models import (
    BrokerValidationReport,
    PostValidationResult,
    RuleId,
    Severity,
    ShiftType,
    UnallocatedDemand,
    ValidationSummary,
    Violation,
)
from rosterguard.validator.rules import RuleEngine

logger = logging.getLogger(__name__)

UNALLOCATED_BROKER_NAME = "—"
SHIFT_LABELS = {ShiftType.MORNING.value: "Manhã", ShiftType.AFTERNOON.value: "Tarde"}


def unallocated_violation(demand: UnallocatedDemand) -> Violation:
    """Forced error for a demand slot nobody was assigned to; never downgraded."""
    shift_label = SHIFT_LABELS[ShiftType(demand.shift).value]
    return Violation(
        rule=RuleId.TURNO_NAO_ALOCADO,
        severity=Severity.ERROR,
        broker_name=UNALLOCATED_BROKER_NAME,
        broker_id="",
        details=(
            f"Turno não alocado: {demand.location_name} - "
            f"{demand.demand_date.isoformat()} ({shift_label})"
        ),
        dates=[demand.demand_date],
        locations=[demand.location_name],
    )


def name_sort_key(name: str) -> tuple[str, str]:
    """Accent-insensitive, case-insensitive key; the raw name breaks ties."""
    decomposed = unicodedata.normalize("NFKD", name)
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return base.casefold(), name


def sort_violations(violations: Sequence[Violation]) -> list[Violation]:
    """Errors before warnings, then broker name; stable for equal keys."""
    return sorted(
        violations,
        key=lambda v: (v.severity != Severity.ERROR, name_sort_key(v.broker_name)),
    )


def summarize(
    violations: Sequence[Violation],
    unallocated_count: int,
    total_assignments: int,
    total_brokers: int,
) -> ValidationSummary:
    """
    @brief
    Derive summary counters from the final violation list.

    @details
    error_count = error-severity rule violations + unallocated demands, so
    each unallocated demand counts once even though it is also listed as a
    violation.
    """
    rule_errors = sum(
        1
        for v in violations
        if v.severity == Severity.ERROR and v.rule != RuleId.TURNO_NAO_ALOCADO
    )
    warnings = sum(1 for v in violations if v.severity == Severity.WARNING)
    return ValidationSummary(
        total_assignments=total_assignments,
        total_brokers=total_brokers,
        error_count=rule_errors + unallocated_count,
        warning_count=warnings,
        unallocated_count=unallocated_count,
    )


class ResultAggregator:
    """
    @brief
    Merges per-broker outcomes into the final PostValidationResult.

    @details
    Order of assembly: per-broker violations (in broker order), the global
    2-before-3 result, then one forced error per unallocated demand. The
    merged list is then sorted and the summary derived from it.
    """

    def __init__(self, engine: RuleEngine) -> None:
        self.engine = engine

    def finalize(
        self,
        broker_reports: Sequence[BrokerValidationReport],
        total_assignments: int,
        unallocated_demands: Sequence[UnallocatedDemand] = (),
    ) -> PostValidationResult:
        # (1) Per-broker violations
        merged: list[Violation] = []
        for report in broker_reports:
            merged.extend(report.violations)

        # (2) Cross-broker rule
        merged.extend(self.engine.evaluate_global(broker_reports))

        # (3) Unmet demand is always an error
        merged.extend(unallocated_violation(d) for d in unallocated_demands)

        # (4) Final ordering and counters
        violations = sort_violations(merged)
        summary = summarize(
            violations,
            unallocated_count=len(unallocated_demands),
            total_assignments=total_assignments,
            total_brokers=len(broker_reports),
        )

        if unallocated_demands:
            logger.warning("%d demand slot(s) left unallocated", len(unallocated_demands))

        return PostValidationResult(
            is_valid=summary.error_count == 0,
            violations=violations,
            summary=summary,
            broker_reports=list(broker_reports),
            unallocated_demands=list(unallocated_demands),
        )

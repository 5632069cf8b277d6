# src/rosterguard/validator/validator.py
from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence

from rosterguard.schemas.models import (
    Assignment,
    BrokerInfo,
    BrokerValidationReport,
    LocationInfo,
    PostValidationResult,
    UnallocatedDemand,
)
from rosterguard.validator.aggregator import ResultAggregator
from rosterguard.validator.broker_report import BrokerReportBuilder
from rosterguard.validator.enrichment import ReferenceIndex
from rosterguard.validator.rules import RuleEngine
from rosterguard.validator.weeks import warn_if_multiple_iso_years

logger = logging.getLogger(__name__)


# ---------------------------
# VALIDATOR CLASS (instance core)
# ----------------------------
class PostValidator:
    """
    @brief
    Post-generation schedule validator.

    @details
    Checks a finished set of broker assignments for one scheduling period
    against the fairness, rotation and safety rules, then assembles a
    per-broker and global report. Inputs are never mutated and all lookup
    tables are built per instance, so validating the same inputs twice
    yields identical results.

    Business-rule violations are collected into the result; nothing is
    raised for them. Unknown broker or location ids degrade to a display
    sentinel instead of aborting.
    """

    # ---------- Constructor ----------
    def __init__(
        self,
        assignments: Iterable[Assignment],
        brokers: Iterable[BrokerInfo],
        locations: Iterable[LocationInfo],
        unallocated_demands: Iterable[UnallocatedDemand] | None = None,
        location_broker_configs: Mapping[str, Sequence[str]] | None = None,
    ) -> None:
        """
        @brief
        Initialize validation context.

        @params
            assignments : Iterable[Assignment]
                Assignments produced by the generator for the period.
            brokers : Iterable[BrokerInfo]
                Broker reference data (names, available weekdays).
            locations : Iterable[LocationInfo]
                Location reference data (names, internal/external type).
            unallocated_demands : Iterable[UnallocatedDemand] | None
                Demand slots the generator could not fill.
            location_broker_configs : Mapping[str, Sequence[str]] | None
                Declared eligible brokers per location id. When omitted, the
                sole-provider check is inferred from the schedule itself.
        """
        self.assignments: list[Assignment] = list(assignments)
        self.unallocated_demands: list[UnallocatedDemand] = list(unallocated_demands or [])

        # (1) Read-only lookups for this call only
        self.index = ReferenceIndex.build(
            self.assignments, brokers, locations, location_broker_configs
        )

        # (2) Collaborators
        self.engine = RuleEngine(self.index)
        self.builder = BrokerReportBuilder(self.index)
        self.aggregator = ResultAggregator(self.engine)

        # (3) Accumulators
        self.broker_reports: list[BrokerValidationReport] = []

    # ---------- Public lifecycle API ----------
    def run_all_checks(self) -> None:
        """
        @brief
        Evaluate every per-broker rule and build the broker reports.

        @details
        Brokers are processed in order of first appearance in the input.
        Re-running replaces previous reports.
        """
        warn_if_multiple_iso_years(a.assignment_date for a in self.assignments)

        # (1) Group assignments by broker (first-appearance order)
        by_broker: dict[str, list[Assignment]] = {}
        for a in self.assignments:
            by_broker.setdefault(a.broker_id, []).append(a)

        # (2) Per-broker breakdown and rules
        self.broker_reports = []
        for broker_id, rows in by_broker.items():
            ctx = self.builder.context(broker_id, rows)
            weekly = self.builder.weekly_breakdown(ctx)
            violations = self.engine.evaluate_broker(ctx, weekly)
            self.broker_reports.append(self.builder.build(ctx, weekly, violations))

    def build_result(self) -> PostValidationResult:
        """
        @brief
        Merge broker reports, global rule and unallocated demand.

        @returns
            The final PostValidationResult.
        """
        result = self.aggregator.finalize(
            self.broker_reports,
            total_assignments=len(self.assignments),
            unallocated_demands=self.unallocated_demands,
        )
        logger.info(
            "Post-validation: %d assignment(s), %d broker(s), %d error(s), %d warning(s) -> %s",
            result.summary.total_assignments,
            result.summary.total_brokers,
            result.summary.error_count,
            result.summary.warning_count,
            "VALID" if result.is_valid else "INVALID",
        )
        return result


# ----------------------------
# THIN FACADE
# ----------------------------
def validate_generated_schedule(
    assignments: Iterable[Assignment],
    brokers: Iterable[BrokerInfo],
    locations: Iterable[LocationInfo],
    unallocated_demands: Iterable[UnallocatedDemand] | None = None,
    location_broker_configs: Mapping[str, Sequence[str]] | None = None,
) -> PostValidationResult:
    """
    @brief
    Validate a generated schedule in one call.

    @details
    Creates a PostValidator, runs every rule and returns the structured
    result. Pure with respect to its inputs: nothing is written anywhere;
    persisting or rendering the result is up to the caller.

    @returns
        PostValidationResult with violations, summary, broker reports and
        the unallocated demands echoed back.
    """
    validator = PostValidator(
        assignments,
        brokers,
        locations,
        unallocated_demands=unallocated_demands,
        location_broker_configs=location_broker_configs,
    )
    validator.run_all_checks()
    return validator.build_result()

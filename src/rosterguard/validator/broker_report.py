# src/rosterguard/validator/broker_report.py
from __future__ import annotations

from collections.abc import Sequence

from rosterguard.schemas.models import (
    Assignment,
    BrokerValidationReport,
    Violation,
    WeeklyBreakdown,
)
from rosterguard.validator.enrichment import ReferenceIndex
from rosterguard.validator.rules import BrokerContext, unique_in_order
from rosterguard.validator.weeks import group_by_week, is_saturday


class BrokerReportBuilder:
    """
    @brief
    Builds the per-broker counters and weekly breakdown.

    @details
    Uses the same ISO-week buckets as the weekly rules. Counts here are
    assignment (shift) counts; the distinct-day counting used by the
    external-day rules lives in the rule engine.
    """

    def __init__(self, index: ReferenceIndex) -> None:
        self.index = index

    def context(self, broker_id: str, assignments: Sequence[Assignment]) -> BrokerContext:
        """Enrich and chronologically sort one broker's assignments (stable on ties)."""
        enriched = sorted(
            (self.index.enrich(a) for a in assignments), key=lambda a: a.assignment_date
        )
        return BrokerContext(
            broker_id=broker_id,
            broker_name=self.index.broker_name(broker_id),
            broker=self.index.brokers.get(broker_id),
            assignments=tuple(enriched),
        )

    def weekly_breakdown(self, ctx: BrokerContext) -> list[WeeklyBreakdown]:
        weeks: list[WeeklyBreakdown] = []
        for label, rows in group_by_week(ctx.assignments, key=lambda a: a.assignment_date).items():
            weeks.append(
                WeeklyBreakdown(
                    week_label=label,
                    week_start=rows[0].assignment_date,
                    external_count=sum(1 for a in rows if a.is_external),
                    internal_count=sum(1 for a in rows if a.is_internal),
                    saturday_count=sum(1 for a in rows if is_saturday(a.assignment_date)),
                    locations=unique_in_order(a.location_name for a in rows),
                    dates=[a.assignment_date for a in rows],
                )
            )
        return weeks

    def build(
        self,
        ctx: BrokerContext,
        weekly_breakdown: Sequence[WeeklyBreakdown],
        violations: Sequence[Violation],
    ) -> BrokerValidationReport:
        rows = ctx.assignments
        return BrokerValidationReport(
            broker_id=ctx.broker_id,
            broker_name=ctx.broker_name,
            total_assignments=len(rows),
            external_count=sum(1 for a in rows if a.is_external),
            internal_count=sum(1 for a in rows if a.is_internal),
            saturday_count=sum(1 for a in rows if is_saturday(a.assignment_date)),
            weekly_breakdown=list(weekly_breakdown),
            violations=list(violations),
        )

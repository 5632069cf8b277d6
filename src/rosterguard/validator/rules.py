# src/rosterguard/validator/rules.py
from __future__ import annotations

import logging
from collections.abc import Hashable, Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from typing import TypeVar

from rosterguard.schemas.models import (
    BrokerInfo,
    BrokerValidationReport,
    RuleId,
    Severity,
    Violation,
    WeeklyBreakdown,
)
from rosterguard.validator.enrichment import EnrichedAssignment, ReferenceIndex
from rosterguard.validator.weeks import (
    group_by_week,
    is_saturday,
    is_sunday,
    iso_week_number,
    week_key,
)

logger = logging.getLogger(__name__)

H = TypeVar("H", bound=Hashable)

# Distinct external days per ISO week
EXTERNAL_DAYS_TOLERATED = 3
EXTERNAL_DAYS_HARD_CAP = 4

# Only this location is subject to the week-to-week repetition rule
ROTATION_LOCATION_PATTERN = "vivence"

MAX_SUNDAYS_PER_LOCATION = 2

# 2-before-3: nobody gets a third external while someone has fewer than two
DISTRIBUTION_FLOOR = 2
DISTRIBUTION_CEILING = 3
GLOBAL_BROKER_NAME = "Distribuição Geral"


def unique_in_order(values: Iterable[H]) -> list[H]:
    """Deduplicate while keeping first-seen order."""
    return list(dict.fromkeys(values))


@dataclass(frozen=True)
class BrokerContext:
    """
    @brief
    Everything the per-broker rules need about one broker.

    @details
    `assignments` are enriched and sorted chronologically. `broker` is None
    when the id is missing from the reference data.
    """

    broker_id: str
    broker_name: str
    broker: BrokerInfo | None
    assignments: tuple[EnrichedAssignment, ...]

    @property
    def externals(self) -> list[EnrichedAssignment]:
        return [a for a in self.assignments if a.is_external]


class RuleEngine:
    """
    @brief
    Fixed battery of schedule rules.

    @details
    Per-broker rules run in a fixed order (R1 external-day cap, R2 repetition
    at the rotation location, R3 Saturday+Sunday, R4 alternation for
    seven-day brokers, R5 Sunday concentration); the 2-before-3 distribution
    rule (R6) runs once over all broker reports. Rules are independent and
    several may fire on the same assignments. Nothing is raised for rule
    violations; they are returned as Violation records.
    """

    def __init__(self, index: ReferenceIndex) -> None:
        self.index = index

    # ---------- Public API ----------
    def evaluate_broker(
        self, ctx: BrokerContext, weekly_breakdown: Sequence[WeeklyBreakdown]
    ) -> list[Violation]:
        violations: list[Violation] = []
        violations += self._check_external_day_cap(ctx)  # R1
        violations += self._check_rotation_location_repetition(ctx)  # R2
        violations += self._check_weekend_exclusivity(ctx)  # R3
        violations += self._check_rotation_alternation(ctx, weekly_breakdown)  # R4
        violations += self._check_sunday_concentration(ctx)  # R5

        logger.debug(
            "Rules for broker %s (%s): %d violation(s)",
            ctx.broker_name,
            ctx.broker_id,
            len(violations),
        )
        return violations

    def evaluate_global(self, reports: Sequence[BrokerValidationReport]) -> list[Violation]:
        return self._check_two_before_three(reports)  # R6

    # ---------- Per-broker rules ----------
    def _check_external_day_cap(self, ctx: BrokerContext) -> list[Violation]:
        """
        @brief
        R1: cap on distinct external days per ISO week.

        @details
        Counts dates, not shifts: morning and afternoon externals on the
        same day count once. Three days is tolerated under high demand
        (warning); four or more must never happen (error).
        """
        out: list[Violation] = []
        for week, rows in group_by_week(ctx.externals, key=lambda a: a.assignment_date).items():
            days = unique_in_order(a.assignment_date for a in rows)
            locations = unique_in_order(a.location_name for a in rows)
            count = len(days)

            if count >= EXTERNAL_DAYS_HARD_CAP:
                out.append(
                    self._violation(
                        ctx,
                        RuleId.LIMITE_ABSOLUTO_4_EXTERNOS,
                        Severity.ERROR,
                        f"PROIBIDO: {ctx.broker_name} tem {count} DIAS com externo na semana "
                        f"{week} (máximo absoluto: {EXTERNAL_DAYS_TOLERATED}). "
                        "Isso NUNCA deve ocorrer.",
                        dates=days,
                        locations=locations,
                    )
                )
            elif count == EXTERNAL_DAYS_TOLERATED:
                out.append(
                    self._violation(
                        ctx,
                        RuleId.MAX_2_EXTERNOS_SEMANA,
                        Severity.WARNING,
                        f"{ctx.broker_name} tem {count} DIAS com externo na semana {week} "
                        f"(máx ideal: {EXTERNAL_DAYS_TOLERATED - 1} dias) - EXCEDEU LIMITE "
                        "(alta demanda)",
                        dates=days,
                        locations=locations,
                    )
                )
        return out

    def _check_rotation_location_repetition(self, ctx: BrokerContext) -> list[Violation]:
        """
        @brief
        R2: no repetition at the rotation location in adjacent ISO weeks.

        @details
        Only locations whose name contains "vivence" are checked; high-volume
        sites are expected to repeat. One violation per location at most.
        Downgraded to a warning when the broker is the sole provider there.
        """
        by_location: dict[str, list[EnrichedAssignment]] = {}
        for a in ctx.externals:
            by_location.setdefault(a.location_id, []).append(a)

        out: list[Violation] = []
        for location_id, rows in by_location.items():
            location_name = self.index.location_name(location_id)
            if ROTATION_LOCATION_PATTERN not in location_name.casefold():
                continue
            if len(rows) < 2:
                continue

            weeks = sorted({iso_week_number(a.assignment_date) for a in rows})
            if not any(cur - prev == 1 for prev, cur in zip(weeks, weeks[1:])):
                continue

            sole_provider = self.index.is_sole_provider(location_id, ctx.broker_id)
            if sole_provider:
                details = (
                    f"{ctx.broker_name} repetido no {location_name} em semanas consecutivas "
                    "(único corretor configurado - inevitável)"
                )
            else:
                details = f"{ctx.broker_name} repetido no {location_name} em semanas consecutivas"

            out.append(
                self._violation(
                    ctx,
                    RuleId.SEM_REPETICAO_LOCAL_SEMANAS_SEGUIDAS,
                    Severity.WARNING if sole_provider else Severity.ERROR,
                    details,
                    dates=[a.assignment_date for a in rows],
                    locations=[location_name],
                )
            )
        return out

    def _check_weekend_exclusivity(self, ctx: BrokerContext) -> list[Violation]:
        """R3: no external Saturday and external Sunday inside one ISO week."""
        out: list[Violation] = []
        for week, rows in group_by_week(ctx.externals, key=lambda a: a.assignment_date).items():
            weekend = [
                a for a in rows if is_saturday(a.assignment_date) or is_sunday(a.assignment_date)
            ]
            has_saturday = any(is_saturday(a.assignment_date) for a in weekend)
            has_sunday = any(is_sunday(a.assignment_date) for a in weekend)
            if not (has_saturday and has_sunday):
                continue

            out.append(
                self._violation(
                    ctx,
                    RuleId.SEM_SABADO_DOMINGO_EXTERNOS,
                    Severity.ERROR,
                    f"{ctx.broker_name} com externo sábado E domingo na semana {week}",
                    dates=[a.assignment_date for a in weekend],
                    locations=unique_in_order(a.location_name for a in weekend),
                )
            )
        return out

    def _check_rotation_alternation(
        self, ctx: BrokerContext, weekly_breakdown: Sequence[WeeklyBreakdown]
    ) -> list[Violation]:
        """
        @brief
        R4: external-day counts of seven-day brokers should alternate 1/2.

        @details
        Applies to brokers available on Saturdays with at least two weeks of
        assignments. Two chronologically adjacent weeks with exactly one
        external day each, or exactly two each, raise a warning. Other
        repeats (0-0, 3-3) are left to R1.
        """
        if ctx.broker is None or not ctx.broker.works_saturday:
            return []
        if len(weekly_breakdown) < 2:
            return []

        weeks = sorted(weekly_breakdown, key=lambda w: w.week_start)
        external_days: dict[str, set[date]] = {}
        for a in ctx.externals:
            external_days.setdefault(week_key(a.assignment_date), set()).add(a.assignment_date)
        counts = [(w.week_label, len(external_days.get(w.week_label, ()))) for w in weeks]

        out: list[Violation] = []
        for (prev_label, prev_days), (cur_label, cur_days) in zip(counts, counts[1:]):
            if prev_days == cur_days == 1:
                details = (
                    f"{ctx.broker_name} (Seg-Dom) teve 1 dia externo nas semanas {prev_label} "
                    f"e {cur_label}. Após 1 externo, deveria ter 2."
                )
            elif prev_days == cur_days == 2:
                details = (
                    f"{ctx.broker_name} (Seg-Dom) teve 2 dias externos nas semanas {prev_label} "
                    f"e {cur_label}. Após 2 externos, deveria ter 1."
                )
            else:
                continue
            out.append(
                self._violation(
                    ctx, RuleId.RODIZIO_EXTERNOS_NAO_ALTERNADO, Severity.WARNING, details
                )
            )
        return out

    def _check_sunday_concentration(self, ctx: BrokerContext) -> list[Violation]:
        """R5: more than two external Sundays at one location is a warning."""
        sundays: dict[str, list[EnrichedAssignment]] = {}
        for a in ctx.externals:
            if is_sunday(a.assignment_date):
                sundays.setdefault(a.location_id, []).append(a)

        out: list[Violation] = []
        for location_id, rows in sundays.items():
            if len(rows) <= MAX_SUNDAYS_PER_LOCATION:
                continue
            location_name = self.index.location_name(location_id)
            out.append(
                self._violation(
                    ctx,
                    RuleId.CONCENTRACAO_DOMINGOS,
                    Severity.WARNING,
                    f"{ctx.broker_name} recebeu {len(rows)} domingos no {location_name} - "
                    "deveria haver mais rotação",
                    dates=[a.assignment_date for a in rows],
                    locations=[location_name],
                )
            )
        return out

    # ---------- Global rule ----------
    def _check_two_before_three(
        self, reports: Sequence[BrokerValidationReport]
    ) -> list[Violation]:
        """
        @brief
        R6: 2-before-3 distribution across all brokers.

        @details
        A single error when some broker reached three or more externals
        while another still has fewer than two. The violation has no owner
        broker.
        """
        below = [
            f"{r.broker_name} ({r.external_count})"
            for r in reports
            if r.external_count < DISTRIBUTION_FLOOR
        ]
        above = [
            f"{r.broker_name} ({r.external_count})"
            for r in reports
            if r.external_count >= DISTRIBUTION_CEILING
        ]
        if not (below and above):
            return []

        logger.info(
            "2-before-3 violated: %d broker(s) at >=3 externals, %d below 2",
            len(above),
            len(below),
        )
        return [
            Violation(
                rule=RuleId.DISTRIBUICAO_2_ANTES_3,
                severity=Severity.ERROR,
                broker_name=GLOBAL_BROKER_NAME,
                broker_id="",
                details=(
                    "Violação da regra 2-antes-de-3: Corretor(es) com 3+ externos "
                    f"[{', '.join(above)}] enquanto outros têm menos de 2 [{', '.join(below)}]"
                ),
                dates=[],
                locations=[],
            )
        ]

    # ---------- Helpers ----------
    @staticmethod
    def _violation(
        ctx: BrokerContext,
        rule: RuleId,
        severity: Severity,
        details: str,
        dates: Iterable[date] | None = None,
        locations: Iterable[str] | None = None,
    ) -> Violation:
        return Violation(
            rule=rule,
            severity=severity,
            broker_name=ctx.broker_name,
            broker_id=ctx.broker_id,
            details=details,
            dates=list(dates or []),
            locations=list(locations or []),
        )

# src/rosterguard/validator/compliance.py
from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from datetime import date, timedelta

from rosterguard.schemas.models import (
    AdmissionDecision,
    Assignment,
    BrokerInfo,
    ComplianceResult,
    ComplianceRule,
    ComplianceSeverity,
    LocationInfo,
    LocationType,
    RuleViolation,
    ShiftType,
)
from rosterguard.validator.rules import (
    EXTERNAL_DAYS_HARD_CAP,
    EXTERNAL_DAYS_TOLERATED,
    ROTATION_LOCATION_PATTERN,
    unique_in_order,
)
from rosterguard.validator.weeks import is_saturday, is_sunday

logger = logging.getLogger(__name__)

PREVIOUS_WEEK_DAYS = 7


class ComplianceChecker:
    """
    @brief
    Pre-save compliance check for one generated week.

    @details
    Stricter than the post-generation validator and meant to run before a
    week is persisted: a schedule with any critical violation must not be
    saved. Assignments are expected to cover a single week; the optional
    previous-weeks assignments feed the week-to-week rotation rule.
    Unknown broker ids are shown by id; assignments at unknown locations are
    not considered external.
    """

    def __init__(
        self,
        assignments: Iterable[Assignment],
        brokers: Iterable[BrokerInfo],
        locations: Iterable[LocationInfo],
        previous_weeks_assignments: Iterable[Assignment] | None = None,
        location_broker_configs: Mapping[str, Sequence[str]] | None = None,
    ) -> None:
        self.assignments = list(assignments)
        self.previous = list(previous_weeks_assignments or [])
        self.location_broker_configs = location_broker_configs

        self.broker_names = {b.id: b.name for b in brokers}
        self.location_by_id = {loc.id: loc for loc in locations}

        # broker -> date -> assignments, in input order
        self.by_broker_date: dict[str, dict[date, list[Assignment]]] = {}
        for a in self.assignments:
            self.by_broker_date.setdefault(a.broker_id, {}).setdefault(
                a.assignment_date, []
            ).append(a)

        self.violations: list[RuleViolation] = []

    # ---------- Public lifecycle API ----------
    def run_all_checks(self) -> None:
        self.violations = []
        self._check_weekly_external_cap()
        self._check_multiple_external_locations_same_day()
        self._check_double_shift_same_location()
        self._check_three_consecutive_external_days()
        self._check_consecutive_external_days()
        self._check_saturday_and_sunday()
        self._check_builder_conflict()
        self._check_rotation_between_weeks()

    def build_result(self) -> ComplianceResult:
        critical = [v for v in self.violations if v.severity == ComplianceSeverity.CRITICAL]
        if not critical:
            summary = "✅ Todas as regras foram respeitadas"
        else:
            lines = [f"  - {v.rule}: {v.broker_name} - {v.details}" for v in critical]
            summary = f"❌ {len(critical)} violação(ões) crítica(s) encontrada(s):\n" + "\n".join(
                lines
            )
        return ComplianceResult(valid=not critical, violations=self.violations, summary=summary)

    # ---------- Checks ----------
    def _check_weekly_external_cap(self) -> None:
        """Distinct external days in the week: 3 is a warning, 4+ critical."""
        for broker_id, dates in self.by_broker_date.items():
            external_days = [d for d, rows in dates.items() if self._has_external(rows)]
            count = len(external_days)
            if count >= EXTERNAL_DAYS_HARD_CAP:
                self._add(
                    ComplianceRule.LIMITE_ABSOLUTO_EXTERNOS,
                    ComplianceSeverity.CRITICAL,
                    broker_id,
                    f"PROIBIDO: Tem {count} dias com externo na semana "
                    f"(máximo absoluto: {EXTERNAL_DAYS_TOLERATED}). Isso NUNCA deve ocorrer.",
                )
            elif count == EXTERNAL_DAYS_TOLERATED:
                self._add(
                    ComplianceRule.MAX_EXTERNOS_SEMANA,
                    ComplianceSeverity.WARNING,
                    broker_id,
                    f"Tem {count} dias com externo na semana "
                    f"(máx ideal: {EXTERNAL_DAYS_TOLERATED - 1}) - EXCEDEU LIMITE (alta demanda)",
                )

    def _check_multiple_external_locations_same_day(self) -> None:
        """A broker cannot physically be at two external sites on one day."""
        for broker_id, dates in self.by_broker_date.items():
            for day, rows in dates.items():
                ids = unique_in_order(a.location_id for a in rows if self._is_external(a.location_id))
                if len(ids) <= 1:
                    continue
                names = " e ".join(self._location_name(i) for i in ids)
                self._add(
                    ComplianceRule.MULTIPLOS_EXTERNOS_MESMO_DIA,
                    ComplianceSeverity.CRITICAL,
                    broker_id,
                    f"{self._broker_name(broker_id)} está alocado em {len(ids)} locais EXTERNOS "
                    f"diferentes no dia {day.isoformat()}: {names}. Isso é impossível fisicamente.",
                    day=day,
                )

    def _check_double_shift_same_location(self) -> None:
        """
        @brief
        Morning and afternoon at the same external location on one day.

        @details
        Tolerated when the broker is the only one working that location on
        that day (the location needs the same broker for both shifts).
        """
        for broker_id, dates in self.by_broker_date.items():
            for day, rows in dates.items():
                shifts_by_location: dict[str, set[str]] = {}
                for a in rows:
                    shifts_by_location.setdefault(a.location_id, set()).add(
                        ShiftType(a.shift_type).value
                    )

                for location_id, shifts in shifts_by_location.items():
                    if not self._is_external(location_id):
                        continue
                    if shifts != {ShiftType.MORNING.value, ShiftType.AFTERNOON.value}:
                        continue

                    brokers_there = {
                        a.broker_id
                        for a in self.assignments
                        if a.location_id == location_id and a.assignment_date == day
                    }
                    location_name = self._location_name(location_id)
                    if len(brokers_there) == 1:
                        logger.info(
                            "%s covers morning+afternoon alone at %s (%s); same-broker location",
                            self._broker_name(broker_id),
                            location_name,
                            day.isoformat(),
                        )
                        continue

                    self._add(
                        ComplianceRule.DOIS_TURNOS_MESMO_LOCAL,
                        ComplianceSeverity.CRITICAL,
                        broker_id,
                        f"Alocado para MANHÃ e TARDE em {location_name} "
                        "(quando outros corretores estão disponíveis)",
                        day=day,
                        location=location_name,
                    )

    def _check_three_consecutive_external_days(self) -> None:
        """Three external days in a row is never acceptable."""
        for broker_id in self.by_broker_date:
            days = self._external_days(broker_id)
            for first, second, third in zip(days, days[1:], days[2:]):
                if _next_day(first, second) and _next_day(second, third):
                    self._add(
                        ComplianceRule.TRES_DIAS_EXTERNOS_CONSECUTIVOS,
                        ComplianceSeverity.CRITICAL,
                        broker_id,
                        f"PROIBIDO: {self._broker_name(broker_id)} tem 3 dias externos "
                        f"consecutivos: {_ddmm(first)}, {_ddmm(second)}, {_ddmm(third)}",
                        day=first,
                    )

    def _check_consecutive_external_days(self) -> None:
        """Two external days in a row: warning, may be relaxed as a last resort."""
        for broker_id in self.by_broker_date:
            days = self._external_days(broker_id)
            for current, following in zip(days, days[1:]):
                if _next_day(current, following):
                    self._add(
                        ComplianceRule.DIAS_CONSECUTIVOS,
                        ComplianceSeverity.WARNING,
                        broker_id,
                        "Externo em dias consecutivos: "
                        f"{current.isoformat()} e {following.isoformat()}",
                        day=current,
                    )

    def _check_saturday_and_sunday(self) -> None:
        for broker_id, dates in self.by_broker_date.items():
            saturday: date | None = None
            sunday: date | None = None
            for day, rows in dates.items():
                if not self._has_external(rows):
                    continue
                if is_saturday(day):
                    saturday = day
                elif is_sunday(day):
                    sunday = day

            if saturday and sunday:
                self._add(
                    ComplianceRule.SABADO_E_DOMINGO,
                    ComplianceSeverity.CRITICAL,
                    broker_id,
                    f"Externo no sábado ({saturday.isoformat()}) E domingo ({sunday.isoformat()})",
                )

    def _check_builder_conflict(self) -> None:
        """Competing builders' developments cannot be served by one broker on one day."""
        for broker_id, dates in self.by_broker_date.items():
            for day, rows in dates.items():
                builders: dict[str, str] = {}
                for a in rows:
                    loc = self.location_by_id.get(a.location_id)
                    if loc is None or loc.type != LocationType.EXTERNAL or not loc.builder_company:
                        continue
                    builders[loc.builder_company] = loc.name

                if len(builders) <= 1:
                    continue
                listing = " e ".join(f"{b} ({name})" for b, name in builders.items())
                self._add(
                    ComplianceRule.CONFLITO_CONSTRUTORA,
                    ComplianceSeverity.CRITICAL,
                    broker_id,
                    f"{self._broker_name(broker_id)} está alocado para construtoras DIFERENTES no "
                    f"dia {day.isoformat()}: {listing}. Corretores não podem atender "
                    "construtoras concorrentes no mesmo dia.",
                    day=day,
                )

    def _check_rotation_between_weeks(self) -> None:
        """
        @brief
        No repetition at the rotation location from the previous week.

        @details
        The previous week is the 1..7 days before the earliest date of the
        current assignments. Sole providers (declared, or inferred from both
        weeks when no configuration is given) get a warning instead.
        """
        if not self.previous or not self.assignments:
            return

        week_start = min(a.assignment_date for a in self.assignments)
        previous_week = [
            a
            for a in self.previous
            if 0 < (week_start - a.assignment_date).days <= PREVIOUS_WEEK_DAYS
        ]

        for broker_id, dates in self.by_broker_date.items():
            current_external = {
                a.location_id
                for rows in dates.values()
                for a in rows
                if self._is_external(a.location_id)
            }

            for prev in previous_week:
                if prev.broker_id != broker_id:
                    continue
                location_name = self._location_name(prev.location_id)
                if ROTATION_LOCATION_PATTERN not in location_name.casefold():
                    continue
                if prev.location_id not in current_external:
                    continue

                sole = self._is_sole_provider(prev.location_id, broker_id)
                self._add(
                    ComplianceRule.ROTACAO_ENTRE_SEMANAS,
                    ComplianceSeverity.WARNING if sole else ComplianceSeverity.CRITICAL,
                    broker_id,
                    (
                        f"Repetição no {location_name} em semanas consecutivas "
                        "(único corretor configurado - inevitável)"
                    )
                    if sole
                    else (
                        f"Repetição no {location_name} em semanas consecutivas "
                        "(violação de rotação)"
                    ),
                    location=location_name,
                )
                break  # once per broker

    # ---------- Helpers ----------
    def _is_sole_provider(self, location_id: str, broker_id: str) -> bool:
        if self.location_broker_configs is not None:
            configured = list(self.location_broker_configs.get(location_id, []))
            return configured == [broker_id]
        seen = {a.broker_id for a in self.assignments if a.location_id == location_id}
        seen |= {a.broker_id for a in self.previous if a.location_id == location_id}
        return seen == {broker_id}

    def _is_external(self, location_id: str) -> bool:
        loc = self.location_by_id.get(location_id)
        return loc is not None and loc.type == LocationType.EXTERNAL

    def _has_external(self, rows: Iterable[Assignment]) -> bool:
        return any(self._is_external(a.location_id) for a in rows)

    def _external_days(self, broker_id: str) -> list[date]:
        dates = self.by_broker_date.get(broker_id, {})
        return sorted(d for d, rows in dates.items() if self._has_external(rows))

    def _broker_name(self, broker_id: str) -> str:
        return self.broker_names.get(broker_id, broker_id)

    def _location_name(self, location_id: str) -> str:
        loc = self.location_by_id.get(location_id)
        return loc.name if loc is not None else location_id

    def _add(
        self,
        rule: ComplianceRule,
        severity: ComplianceSeverity,
        broker_id: str,
        details: str,
        day: date | None = None,
        location: str | None = None,
    ) -> None:
        self.violations.append(
            RuleViolation(
                rule=rule,
                severity=severity,
                broker_name=self._broker_name(broker_id),
                broker_id=broker_id,
                details=details,
                violation_date=day,
                location=location,
            )
        )


def _next_day(a: date, b: date) -> bool:
    return b - a == timedelta(days=1)


def _ddmm(d: date) -> str:
    return d.strftime("%d/%m")


def validate_rules_compliance(
    assignments: Iterable[Assignment],
    brokers: Iterable[BrokerInfo],
    locations: Iterable[LocationInfo],
    previous_weeks_assignments: Iterable[Assignment] | None = None,
    location_broker_configs: Mapping[str, Sequence[str]] | None = None,
) -> ComplianceResult:
    """
    @brief
    Run the pre-save compliance check on one generated week.

    @returns
        ComplianceResult; `valid` is False when any critical violation exists
        and the week must not be saved.
    """
    checker = ComplianceChecker(
        assignments,
        brokers,
        locations,
        previous_weeks_assignments=previous_weeks_assignments,
        location_broker_configs=location_broker_configs,
    )
    checker.run_all_checks()
    result = checker.build_result()
    if not result.valid:
        logger.warning("Compliance check failed: %s", result.summary.splitlines()[0])
    return result


def can_add_assignment(
    new_assignment: Assignment,
    existing_assignments: Sequence[Assignment],
    location: LocationInfo,
    needs_same_broker: bool,
) -> AdmissionDecision:
    """
    @brief
    Decide whether one more assignment may be added during generation.

    @details
    Internal locations are always allowed. For an external location the
    broker may not already hold an assignment at another location on the
    same day, nor the other shift at the same location unless the location
    needs the same broker for both shifts. `existing_assignments` are the
    external assignments placed so far.
    """
    if location.type != LocationType.EXTERNAL:
        return AdmissionDecision(allowed=True)

    mine = [a for a in existing_assignments if a.broker_id == new_assignment.broker_id]

    if any(
        a.assignment_date == new_assignment.assignment_date
        and a.location_id != new_assignment.location_id
        for a in mine
    ):
        return AdmissionDecision(
            allowed=False,
            reason="Já alocado em outro local externo no mesmo dia",
            rule=ComplianceRule.MULTIPLOS_EXTERNOS_MESMO_DIA,
        )

    if not needs_same_broker and any(
        a.assignment_date == new_assignment.assignment_date
        and a.location_id == new_assignment.location_id
        and a.shift_type != new_assignment.shift_type
        for a in mine
    ):
        return AdmissionDecision(
            allowed=False,
            reason="Já tem outro turno no mesmo local",
            rule=ComplianceRule.DOIS_TURNOS_MESMO_LOCAL,
        )

    return AdmissionDecision(allowed=True)

# tests/validator/test_validator.py
from __future__ import annotations

import logging
from datetime import date

from rosterguard.schemas.models import (
    Assignment,
    BrokerInfo,
    LocationInfo,
    RuleId,
    Severity,
    UnallocatedDemand,
)
from rosterguard.validator import PostValidator, validate_generated_schedule
from rosterguard.validator.aggregator import (
    UNALLOCATED_BROKER_NAME,
    name_sort_key,
    sort_violations,
)
from rosterguard.validator.enrichment import UNKNOWN_NAME

ALL_WEEK = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


# -----------------------------
# HELPER FACTORIES
# -----------------------------
def mk(broker_id: str, location_id: str, day: date, shift: str = "morning") -> Assignment:
    return Assignment(
        broker_id=broker_id, location_id=location_id, assignment_date=day, shift_type=shift
    )


def d(day: int) -> date:
    return date(2025, 3, day)


BROKERS = [
    BrokerInfo(id="b-ana", name="Ana", availableWeekdays=ALL_WEEK),
    BrokerInfo(id="b-bruno", name="bruno", availableWeekdays=["Monday", "Tuesday"]),
]
LOCATIONS = [
    LocationInfo(id="loc-botanic", name="Botanic", type="external"),
    LocationInfo(id="loc-vivence", name="Artus Vivence", type="external"),
    LocationInfo(id="loc-office", name="Escritório Central", type="internal"),
]


def _assert_invariants(result) -> None:
    """
    @brief
    Structural invariants every result must satisfy.

    @details
    - is_valid iff error_count == 0
    - error_count / warning_count match the violation list
    - errors sort before warnings
    - unallocated_count mirrors the echoed demands
    - every per-broker violation also appears in the flat list
    """
    errors = [v for v in result.violations if v.severity == Severity.ERROR]
    warnings = [v for v in result.violations if v.severity == Severity.WARNING]
    assert result.is_valid == (result.summary.error_count == 0)
    assert result.summary.error_count == len(errors)
    assert result.summary.warning_count == len(warnings)
    assert result.summary.unallocated_count == len(result.unallocated_demands)
    severities = [v.severity for v in result.violations]
    assert severities == sorted(severities, key=lambda s: s != Severity.ERROR)
    for report in result.broker_reports:
        for violation in report.violations:
            assert violation in result.violations


# -----------------------------
# SCENARIOS
# -----------------------------
def test_sample_scenario_three_then_two_external_days():
    """
    @brief
    Ana at Botanic Mon-Wed of week 10 and Mon-Tue of week 11.

    @details
    Expected: one weekly-cap warning for S10, nothing for S11, no rotation
    location rule (Botanic is not the rotation location) and no alternation
    warning (3 then 2). The schedule stays valid.
    """
    # --- Arrange ---
    rows = [mk("b-ana", "loc-botanic", d(day)) for day in (3, 4, 5, 10, 11)]

    # --- Act ---
    result = validate_generated_schedule(rows, BROKERS, LOCATIONS)

    # --- Assert ---
    assert [v.rule for v in result.violations] == [RuleId.MAX_2_EXTERNOS_SEMANA]
    assert "S10" in result.violations[0].details
    assert result.is_valid is True
    assert result.summary.total_assignments == 5
    assert result.summary.total_brokers == 1
    assert result.summary.warning_count == 1
    _assert_invariants(result)

    report = result.broker_reports[0]
    assert report.broker_name == "Ana"
    assert report.external_count == 5
    assert report.internal_count == 0
    assert [w.week_label for w in report.weekly_breakdown] == ["S10", "S11"]
    assert [w.external_count for w in report.weekly_breakdown] == [3, 2]


def test_sample_scenario_three_and_three_adds_second_warning():
    rows = [mk("b-ana", "loc-botanic", d(day)) for day in (3, 4, 5, 10, 11, 12)]

    result = validate_generated_schedule(rows, BROKERS, LOCATIONS)

    assert [v.rule for v in result.violations] == [RuleId.MAX_2_EXTERNOS_SEMANA] * 2
    _assert_invariants(result)


def test_empty_input_is_valid():
    result = validate_generated_schedule([], BROKERS, LOCATIONS)

    assert result.is_valid is True
    assert result.violations == []
    assert result.broker_reports == []
    assert result.summary.total_assignments == 0
    assert result.summary.total_brokers == 0
    _assert_invariants(result)


def test_unallocated_demand_is_always_an_error():
    """
    @brief
    An otherwise clean schedule with one unfilled slot is invalid.

    @details
    The demand is echoed back, listed as a TURNO_NAO_ALOCADO error and
    counted once in error_count.
    """
    # --- Arrange ---
    rows = [mk("b-ana", "loc-botanic", d(3))]
    demand = UnallocatedDemand(
        locationId="loc-vivence", locationName="Artus Vivence", date="2025-03-08", shift="afternoon"
    )

    # --- Act ---
    result = validate_generated_schedule(rows, BROKERS, LOCATIONS, unallocated_demands=[demand])

    # --- Assert ---
    assert result.is_valid is False
    assert result.summary.error_count == 1
    assert result.summary.unallocated_count == 1
    assert result.unallocated_demands == [demand]

    (violation,) = result.violations
    assert violation.rule == RuleId.TURNO_NAO_ALOCADO
    assert violation.severity == Severity.ERROR
    assert violation.broker_name == UNALLOCATED_BROKER_NAME
    assert violation.details == "Turno não alocado: Artus Vivence - 2025-03-08 (Tarde)"
    assert violation.dates == [d(8)]
    assert violation.locations == ["Artus Vivence"]
    _assert_invariants(result)


def test_each_unallocated_demand_adds_exactly_one_error():
    # --- Arrange ---
    rows = [mk("b-ana", "loc-botanic", d(day)) for day in (3, 4, 5, 6)]
    demands = [
        UnallocatedDemand(
            locationId="loc-vivence", locationName="Artus Vivence", date=day, shift=shift
        )
        for day, shift in (
            ("2025-03-08", "morning"),
            ("2025-03-08", "afternoon"),
            ("2025-03-15", "morning"),
        )
    ]

    # --- Act ---
    baseline = validate_generated_schedule(rows, BROKERS, LOCATIONS)
    result = validate_generated_schedule(rows, BROKERS, LOCATIONS, unallocated_demands=demands)

    # --- Assert ---
    assert baseline.summary.error_count == 1
    assert result.summary.error_count == baseline.summary.error_count + len(demands)
    assert result.summary.warning_count == baseline.summary.warning_count
    assert result.summary.unallocated_count == len(demands)
    promoted = [v for v in result.violations if v.rule == RuleId.TURNO_NAO_ALOCADO]
    assert [v.dates for v in promoted] == [[d(8)], [d(8)], [d(15)]]
    _assert_invariants(baseline)
    _assert_invariants(result)


def test_errors_sort_before_warnings_then_by_broker_name():
    """
    @brief
    Final ordering: errors first, then broker name (case-insensitive).

    @details
    Ana only has a warning; lowercase "bruno" has an error and the
    unallocated error carries the "—" placeholder, which sorts after
    letters.
    """
    # --- Arrange ---
    rows = [mk("b-ana", "loc-botanic", d(day)) for day in (3, 4, 5)]
    rows += [mk("b-bruno", "loc-botanic", d(day)) for day in (10, 11, 12, 13)]
    demand = UnallocatedDemand(
        locationId="loc-botanic", locationName="Botanic", date="2025-03-07", shift="morning"
    )

    # --- Act ---
    result = validate_generated_schedule(rows, BROKERS, LOCATIONS, unallocated_demands=[demand])

    # --- Assert ---
    pairs = [(v.severity, v.broker_name) for v in result.violations]
    assert pairs[0] == (Severity.ERROR, "bruno")
    assert pairs[-1] == (Severity.WARNING, "Ana")
    assert (Severity.ERROR, UNALLOCATED_BROKER_NAME) in pairs
    _assert_invariants(result)


def test_broker_name_order_ignores_accents():
    """
    @brief
    Accented names sort with their base letter, not after "z".

    @details
    Zeca and Érica both exceed the weekly cap in S10; Érica must come
    first. The unallocated placeholder still sorts after every name.
    """
    # --- Arrange ---
    brokers = [
        BrokerInfo(id="b-zeca", name="Zeca", availableWeekdays=ALL_WEEK),
        BrokerInfo(id="b-erica", name="Érica", availableWeekdays=ALL_WEEK),
    ]
    rows = [mk("b-zeca", "loc-botanic", d(day)) for day in (3, 4, 5, 6)]
    rows += [mk("b-erica", "loc-vivence", d(day)) for day in (3, 4, 5, 6)]
    demand = UnallocatedDemand(
        locationId="loc-botanic", locationName="Botanic", date="2025-03-07", shift="morning"
    )

    # --- Act ---
    result = validate_generated_schedule(rows, brokers, LOCATIONS, unallocated_demands=[demand])

    # --- Assert ---
    names = [v.broker_name for v in result.violations if v.severity == Severity.ERROR]
    assert names == ["Érica", "Zeca", UNALLOCATED_BROKER_NAME]
    _assert_invariants(result)


def test_name_sort_key_folds_accents_and_case():
    names = ["Zeca", "Ítalo", "ana", "Ângela", "Érica", "Bruno"]

    ordered = sorted(names, key=name_sort_key)

    assert ordered == ["ana", "Ângela", "Bruno", "Érica", "Ítalo", "Zeca"]


def test_sort_is_stable_for_equal_keys():
    rows = [mk("b-ana", "loc-botanic", d(day)) for day in (3, 4, 5, 10, 11, 12)]
    result = validate_generated_schedule(rows, BROKERS, LOCATIONS)

    resorted = sort_violations(result.violations)

    assert resorted == result.violations
    assert ["S10" in v.details for v in resorted] == [True, False]


def test_unknown_references_degrade_to_placeholder():
    """
    @brief
    Ids missing from the reference data do not abort validation.

    @details
    Unknown brokers and locations are named "Desconhecido"; an unknown
    location counts as external.
    """
    rows = [mk("b-ghost", "loc-ghost", d(day)) for day in (3, 4, 5, 6)]

    result = validate_generated_schedule(rows, BROKERS, LOCATIONS)

    report = result.broker_reports[0]
    assert report.broker_name == UNKNOWN_NAME
    assert report.external_count == 4
    assert report.weekly_breakdown[0].locations == [UNKNOWN_NAME]
    assert [v.rule for v in result.violations] == [RuleId.LIMITE_ABSOLUTO_4_EXTERNOS]
    assert result.violations[0].broker_name == UNKNOWN_NAME


def test_broker_reports_follow_first_appearance_and_count_shifts():
    """
    @brief
    One report per broker, in order of first appearance.

    @details
    Counters are assignment counts: a double shift counts twice. Weekly
    breakdown keeps the earliest date of each week and the shifts' dates.
    """
    # --- Arrange ---
    rows = [
        mk("b-bruno", "loc-office", d(4)),
        mk("b-ana", "loc-botanic", d(8), "morning"),
        mk("b-ana", "loc-botanic", d(8), "afternoon"),
        mk("b-ana", "loc-office", d(6)),
        mk("b-ana", "loc-botanic", d(10)),
    ]

    # --- Act ---
    result = validate_generated_schedule(rows, BROKERS, LOCATIONS)

    # --- Assert ---
    assert [r.broker_id for r in result.broker_reports] == ["b-bruno", "b-ana"]
    ana = result.broker_reports[1]
    assert ana.total_assignments == 4
    assert ana.external_count == 3
    assert ana.internal_count == 1
    assert ana.saturday_count == 2

    s10, s11 = ana.weekly_breakdown
    assert (s10.week_label, s10.week_start) == ("S10", d(6))
    assert s10.dates == [d(6), d(8), d(8)]
    assert (s10.external_count, s10.internal_count, s10.saturday_count) == (2, 1, 2)
    assert s10.locations == ["Escritório Central", "Botanic"]
    assert (s11.week_label, s11.week_start) == ("S11", d(10))
    assert sum(r.total_assignments for r in result.broker_reports) == len(rows)
    _assert_invariants(result)


def test_validation_is_idempotent_and_does_not_mutate_inputs():
    rows = [mk("b-ana", "loc-vivence", d(day)) for day in (3, 10, 11)]
    snapshot = list(rows)

    first = validate_generated_schedule(rows, BROKERS, LOCATIONS)
    second = validate_generated_schedule(rows, BROKERS, LOCATIONS)

    assert first == second
    assert rows == snapshot


def test_rerunning_checks_replaces_reports():
    validator = PostValidator([mk("b-ana", "loc-botanic", d(3))], BROKERS, LOCATIONS)

    validator.run_all_checks()
    validator.run_all_checks()

    assert len(validator.broker_reports) == 1
    assert validator.build_result().summary.total_brokers == 1


def test_summary_is_logged(caplog):
    with caplog.at_level(logging.INFO, logger="rosterguard.validator.validator"):
        validate_generated_schedule([mk("b-ana", "loc-botanic", d(3))], BROKERS, LOCATIONS)

    assert any("VALID" in r.getMessage() for r in caplog.records)

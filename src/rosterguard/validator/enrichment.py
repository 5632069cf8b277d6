# src/rosterguard/validator/enrichment.py
from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from types import MappingProxyType

from rosterguard.schemas.models import (
    Assignment,
    BrokerInfo,
    LocationInfo,
    LocationType,
    ShiftType,
)

UNKNOWN_NAME = "Desconhecido"


@dataclass(frozen=True)
class EnrichedAssignment:
    """
    @brief
    Assignment denormalized with broker and location display data.

    @details
    Built once per validation call from the reference index. Unknown
    broker or location ids resolve to the "Desconhecido" sentinel; an
    unknown location is treated as external.
    """

    broker_id: str
    broker_name: str
    location_id: str
    location_name: str
    location_type: str
    assignment_date: date
    shift_type: str

    @property
    def is_external(self) -> bool:
        return self.location_type == LocationType.EXTERNAL

    @property
    def is_internal(self) -> bool:
        return self.location_type == LocationType.INTERNAL


@dataclass(frozen=True)
class ReferenceIndex:
    """
    @brief
    Read-only lookup tables for one validation call.

    @details
    Holds broker and location reference data keyed by id, the optional
    declared eligibility map (location id -> configured broker ids) and the
    eligibility inferred from the schedule itself (location id -> brokers
    with an external assignment there). Nothing here outlives the call that
    built it.
    """

    brokers: Mapping[str, BrokerInfo]
    locations: Mapping[str, LocationInfo]
    declared_eligibility: Mapping[str, tuple[str, ...]] | None = None
    inferred_eligibility: Mapping[str, frozenset[str]] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @classmethod
    def build(
        cls,
        assignments: Iterable[Assignment],
        brokers: Iterable[BrokerInfo],
        locations: Iterable[LocationInfo],
        location_broker_configs: Mapping[str, Sequence[str]] | None = None,
    ) -> ReferenceIndex:
        broker_map = {b.id: b for b in brokers}
        location_map = {loc.id: loc for loc in locations}

        declared: Mapping[str, tuple[str, ...]] | None = None
        if location_broker_configs is not None:
            declared = MappingProxyType(
                {loc_id: tuple(ids) for loc_id, ids in location_broker_configs.items()}
            )

        inferred: dict[str, set[str]] = {}
        for a in assignments:
            loc = location_map.get(a.location_id)
            if loc is None or loc.type == LocationType.EXTERNAL:
                inferred.setdefault(a.location_id, set()).add(a.broker_id)

        return cls(
            brokers=MappingProxyType(broker_map),
            locations=MappingProxyType(location_map),
            declared_eligibility=declared,
            inferred_eligibility=MappingProxyType(
                {loc_id: frozenset(ids) for loc_id, ids in inferred.items()}
            ),
        )

    # ---------- Lookups ----------
    def broker_name(self, broker_id: str) -> str:
        broker = self.brokers.get(broker_id)
        return broker.name if broker is not None else UNKNOWN_NAME

    def location_name(self, location_id: str) -> str:
        loc = self.locations.get(location_id)
        return loc.name if loc is not None else UNKNOWN_NAME

    def location_type(self, location_id: str) -> str:
        loc = self.locations.get(location_id)
        return LocationType(loc.type).value if loc is not None else LocationType.EXTERNAL.value

    def enrich(self, assignment: Assignment) -> EnrichedAssignment:
        return EnrichedAssignment(
            broker_id=assignment.broker_id,
            broker_name=self.broker_name(assignment.broker_id),
            location_id=assignment.location_id,
            location_name=self.location_name(assignment.location_id),
            location_type=self.location_type(assignment.location_id),
            assignment_date=assignment.assignment_date,
            shift_type=ShiftType(assignment.shift_type).value,
        )

    # ---------- Sole-provider eligibility ----------
    def is_sole_provider(self, location_id: str, broker_id: str) -> bool:
        """
        @brief
        Whether `broker_id` is the only broker able to cover `location_id`.

        @details
        Uses the declared configuration when one was supplied; otherwise
        falls back to the eligibility inferred from the schedule under
        validation, which can be wrong when eligible brokers simply were not
        assigned there this period.
        """
        if self.declared_eligibility is not None:
            return self._declared_sole_provider(location_id, broker_id)
        return self._inferred_sole_provider(location_id, broker_id)

    def _declared_sole_provider(self, location_id: str, broker_id: str) -> bool:
        configured = (self.declared_eligibility or {}).get(location_id, ())
        return len(configured) == 1 and configured[0] == broker_id

    def _inferred_sole_provider(self, location_id: str, broker_id: str) -> bool:
        return self.inferred_eligibility.get(location_id, frozenset()) == {broker_id}

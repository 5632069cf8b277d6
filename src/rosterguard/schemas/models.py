# src/rosterguard/schemas/models.py
"""
@brief
Pydantic data models for the rosterguard schedule validator.

@details
Defines the canonical model families:
    - input records: Assignment, BrokerInfo, LocationInfo, UnallocatedDemand
    - post-validation output: Violation, WeeklyBreakdown, BrokerValidationReport,
      ValidationSummary, PostValidationResult
    - pre-save compliance output: RuleViolation, ComplianceResult, AdmissionDecision
    - runtime configuration: Config (from config.yaml) with nested ValidationConfig

Input records accept the wire names used by the scheduling front end
(snake_case for assignments, camelCase for the rest). Output records keep
snake_case attributes and serialize with camelCase aliases
(`model_dump(by_alias=True)`), which is the format stored by the application.
"""

from __future__ import annotations

from datetime import date
from enum import Enum

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

WEEKDAY_NAMES = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


class ShiftType(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"


class LocationType(str, Enum):
    INTERNAL = "internal"
    EXTERNAL = "external"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class RuleId(str, Enum):
    """
    @brief
    Closed set of rule identifiers carried by post-validation violations.

    @details
    SEM_EXTERNOS_CONSECUTIVOS is a retired rule: it is never emitted, but
    results stored by older releases may still contain it, so it stays
    parseable and is filtered out on reload.
    """

    LIMITE_ABSOLUTO_4_EXTERNOS = "LIMITE_ABSOLUTO_4_EXTERNOS"
    MAX_2_EXTERNOS_SEMANA = "MAX_2_EXTERNOS_SEMANA"
    SEM_REPETICAO_LOCAL_SEMANAS_SEGUIDAS = "SEM_REPETICAO_LOCAL_SEMANAS_SEGUIDAS"
    SEM_SABADO_DOMINGO_EXTERNOS = "SEM_SABADO_DOMINGO_EXTERNOS"
    RODIZIO_EXTERNOS_NAO_ALTERNADO = "RODIZIO_EXTERNOS_NAO_ALTERNADO"
    CONCENTRACAO_DOMINGOS = "CONCENTRACAO_DOMINGOS"
    DISTRIBUICAO_2_ANTES_3 = "DISTRIBUICAO_2_ANTES_3"
    SEM_EXTERNOS_CONSECUTIVOS = "SEM_EXTERNOS_CONSECUTIVOS"
    TURNO_NAO_ALOCADO = "TURNO_NAO_ALOCADO"


class ComplianceSeverity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"


class ComplianceRule(str, Enum):
    """Rule identifiers of the pre-save compliance check."""

    LIMITE_ABSOLUTO_EXTERNOS = "LIMITE_ABSOLUTO_EXTERNOS"
    MAX_EXTERNOS_SEMANA = "MAX_EXTERNOS_SEMANA"
    MULTIPLOS_EXTERNOS_MESMO_DIA = "MULTIPLOS_EXTERNOS_MESMO_DIA"
    DOIS_TURNOS_MESMO_LOCAL = "DOIS_TURNOS_MESMO_LOCAL"
    TRES_DIAS_EXTERNOS_CONSECUTIVOS = "TRES_DIAS_EXTERNOS_CONSECUTIVOS"
    DIAS_CONSECUTIVOS = "DIAS_CONSECUTIVOS"
    SABADO_E_DOMINGO = "SABADO_E_DOMINGO"
    CONFLITO_CONSTRUTORA = "CONFLITO_CONSTRUTORA"
    ROTACAO_ENTRE_SEMANAS = "ROTACAO_ENTRE_SEMANAS"


class _StrictBaseModel(BaseModel):
    """
    @brief
    Base model enforcing strict defaults for configuration contracts.

    @details
    Forbids unknown fields and preserves exact naming rules.
    """

    model_config = {
        "extra": "forbid",  # Reject unknown fields
        "populate_by_name": True,  # Allow population by field name
        "use_enum_values": True,  # Export raw enum values
    }


class _RecordModel(BaseModel):
    """
    @brief
    Base model for immutable input records.

    @details
    Rows fetched from the data store carry bookkeeping columns (ids,
    timestamps, foreign keys) the validator does not need; those are ignored
    rather than rejected.
    """

    model_config = {
        "extra": "ignore",
        "frozen": True,
        "populate_by_name": True,
        "use_enum_values": True,
    }


class _ReportModel(BaseModel):
    """
    @brief
    Base model for immutable output records serialized with camelCase keys.
    """

    model_config = {
        "extra": "forbid",
        "frozen": True,
        "populate_by_name": True,
        "use_enum_values": True,
        "alias_generator": to_camel,
    }


# ------------------------------------------------------------
# Input records
# ------------------------------------------------------------
class Assignment(_RecordModel):
    """
    @brief
    One broker -> location -> shift assignment produced by the generator.

    @params
        broker_id : str
            Assigned broker identifier.
        location_id : str
            Assigned location identifier.
        assignment_date : date
            Calendar date (ISO-8601 "YYYY-MM-DD").
        shift_type : ShiftType
            Half-day slot, morning or afternoon.
    """

    broker_id: str = Field(..., min_length=1, description="Assigned broker identifier")
    location_id: str = Field(..., min_length=1, description="Assigned location identifier")
    assignment_date: date = Field(..., description="Assignment date (YYYY-MM-DD)")
    shift_type: ShiftType = Field(..., description="morning | afternoon")


class BrokerInfo(_RecordModel):
    """Broker reference data; weekday names are normalized to lowercase English."""

    id: str = Field(..., min_length=1)
    name: str
    available_weekdays: frozenset[str] = Field(
        default_factory=frozenset, alias="availableWeekdays"
    )

    @field_validator("available_weekdays", mode="before")
    @classmethod
    def _normalize_weekdays(cls, value):
        if value is None:
            return frozenset()
        days = frozenset(str(v).strip().lower() for v in value)
        unknown = days.difference(WEEKDAY_NAMES)
        if unknown:
            raise ValueError(f"unknown weekday name(s): {sorted(unknown)}")
        return days

    @property
    def works_saturday(self) -> bool:
        return "saturday" in self.available_weekdays


class LocationInfo(_RecordModel):
    id: str = Field(..., min_length=1)
    name: str
    type: LocationType = Field(LocationType.EXTERNAL, description="internal | external")
    builder_company: str | None = Field(
        None, alias="builderCompany", description="Builder behind an external development"
    )


class UnallocatedDemand(_RecordModel):
    """
    @brief
    External demand slot that the generator could not fill with any broker.

    @details
    Always promoted to an error by the validator.
    """

    location_id: str = Field(..., alias="locationId")
    location_name: str = Field(..., alias="locationName")
    demand_date: date = Field(..., alias="date")
    shift: ShiftType


# ------------------------------------------------------------
# Post-validation output
# ------------------------------------------------------------
class Violation(_ReportModel):
    rule: RuleId
    severity: Severity
    broker_name: str
    broker_id: str = ""
    details: str
    dates: list[date] = Field(default_factory=list)
    locations: list[str] = Field(default_factory=list)


class WeeklyBreakdown(_ReportModel):
    week_label: str = Field(..., description="ISO week key, e.g. 'S10'")
    week_start: date = Field(..., description="Earliest assignment date in the week")
    external_count: int = Field(0, ge=0)
    internal_count: int = Field(0, ge=0)
    saturday_count: int = Field(0, ge=0)
    locations: list[str] = Field(default_factory=list)
    dates: list[date] = Field(default_factory=list)


class BrokerValidationReport(_ReportModel):
    broker_id: str
    broker_name: str
    total_assignments: int = Field(0, ge=0)
    external_count: int = Field(0, ge=0)
    internal_count: int = Field(0, ge=0)
    saturday_count: int = Field(0, ge=0)
    weekly_breakdown: list[WeeklyBreakdown] = Field(default_factory=list)
    violations: list[Violation] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return any(v.severity == Severity.ERROR for v in self.violations)


class ValidationSummary(_ReportModel):
    total_assignments: int = Field(0, ge=0)
    total_brokers: int = Field(0, ge=0)
    error_count: int = Field(0, ge=0)
    warning_count: int = Field(0, ge=0)
    unallocated_count: int = Field(0, ge=0)


class PostValidationResult(_ReportModel):
    """
    @brief
    Final output of the post-generation validator.

    @details
    `summary.error_count` counts error-severity rule violations plus one per
    unallocated demand; `is_valid` holds exactly when that count is zero.
    """

    is_valid: bool
    violations: list[Violation] = Field(default_factory=list)
    summary: ValidationSummary = Field(default_factory=ValidationSummary)
    broker_reports: list[BrokerValidationReport] = Field(default_factory=list)
    unallocated_demands: list[UnallocatedDemand] = Field(default_factory=list)


# ------------------------------------------------------------
# Pre-save compliance output
# ------------------------------------------------------------
class RuleViolation(_ReportModel):
    rule: ComplianceRule
    severity: ComplianceSeverity
    broker_name: str
    broker_id: str
    details: str
    violation_date: date | None = Field(None, alias="date")
    location: str | None = None


class ComplianceResult(_ReportModel):
    valid: bool
    violations: list[RuleViolation] = Field(default_factory=list)
    summary: str = ""


class AdmissionDecision(_ReportModel):
    allowed: bool
    reason: str = "OK"
    rule: ComplianceRule | None = None


# ------------------------------------------------------------
# Runtime configuration
# ------------------------------------------------------------
class ValidationConfig(BaseModel):
    """
    @brief
    Controls which validation artifacts are written and how the CLI exits.
    """

    write_report: bool = True
    write_text_report: bool = True
    write_violations_csv: bool = True
    fail_on_warnings: bool = False
    report_filename: str = Field("validation_report.json", min_length=1)


class Config(_StrictBaseModel):
    """
    @brief
    Represents the full runtime configuration loaded from config.yaml.
    """

    dataset_path: str | None = Field(None, description="JSON dataset bundle to validate")
    output_dir: str | None = "data/output"
    log_level: str = Field("INFO", description="Root logging level for the CLI")
    validation: ValidationConfig = Field(default_factory=ValidationConfig.model_construct)

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unsupported log level: {value!r}")
        return level


__all__ = [
    "Assignment",
    "BrokerInfo",
    "BrokerValidationReport",
    "ComplianceResult",
    "ComplianceRule",
    "ComplianceSeverity",
    "Config",
    "LocationInfo",
    "LocationType",
    "PostValidationResult",
    "RuleId",
    "RuleViolation",
    "Severity",
    "ShiftType",
    "UnallocatedDemand",
    "ValidationConfig",
    "ValidationSummary",
    "Violation",
    "WeeklyBreakdown",
    "AdmissionDecision",
    "WEEKDAY_NAMES",
]

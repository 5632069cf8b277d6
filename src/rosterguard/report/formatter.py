# src/rosterguard/report/formatter.py
from __future__ import annotations

import logging
from collections.abc import Iterable

from rosterguard.schemas.models import (
    ComplianceResult,
    ComplianceSeverity,
    PostValidationResult,
    RuleViolation,
    Severity,
)

RULE = "═══════════════════════════════════════════════════════════"


def _banner(title: str) -> list[str]:
    return [RULE, title, RULE]


def _dates(values: Iterable) -> str:
    return ", ".join(d.isoformat() for d in values)


def generate_validation_report(result: PostValidationResult) -> str:
    """
    @brief
    Render a PostValidationResult as a multi-section text report.

    @details
    Sections: summary header, flat violation listing (icon, rule id,
    details, optional dates and locations), then one block per broker with
    its status icon, counters, one line per week and its own violations.
    Pure formatting; every decision was already taken by the validator.
    """
    lines: list[str] = []

    lines += _banner("           RELATÓRIO DE VALIDAÇÃO PÓS-GERAÇÃO              ")
    lines.append("")
    lines.append("📊 RESUMO:")
    lines.append(f"   Total de alocações: {result.summary.total_assignments}")
    lines.append(f"   Total de corretores: {result.summary.total_brokers}")
    lines.append(f"   Erros encontrados: {result.summary.error_count}")
    lines.append(f"   Avisos encontrados: {result.summary.warning_count}")
    lines.append(f"   Status: {'✅ VÁLIDO' if result.is_valid else '❌ INVÁLIDO'}")
    lines.append("")

    if result.violations:
        lines += _banner("                      VIOLAÇÕES                            ")
        for v in result.violations:
            icon = "❌" if v.severity == Severity.ERROR else "⚠️"
            lines.append(f"{icon} [{v.rule}] {v.details}")
            if v.dates:
                lines.append(f"   Datas: {_dates(v.dates)}")
            if v.locations:
                lines.append(f"   Locais: {', '.join(v.locations)}")
            lines.append("")

    lines += _banner("               RELATÓRIO POR CORRETOR                      ")

    for report in result.broker_reports:
        icon = "❌" if report.has_errors else "✅"
        lines.append("")
        lines.append(f"{icon} {report.broker_name}")
        lines.append(
            f"   Total: {report.total_assignments} | Externos: {report.external_count} | "
            f"Internos: {report.internal_count} | Sábados: {report.saturday_count}"
        )
        for week in report.weekly_breakdown:
            lines.append(
                f"   {week.week_label}: {week.external_count} ext, {week.internal_count} int | "
                f"{', '.join(week.locations)}"
            )
        if report.violations:
            lines.append(f"   ⚠️ Violações: {len(report.violations)}")
            for v in report.violations:
                lines.append(f"      - {v.rule}: {v.details}")

    return "\n".join(lines)


def log_validation_result(
    result: PostValidationResult, logger: logging.Logger | None = None
) -> str:
    """
    @brief
    Hand the rendered report to a logger.

    @details
    Logs at INFO when the schedule is valid and at WARNING otherwise.
    Returns the rendered text so callers can also persist it.
    """
    log = logger or logging.getLogger(__name__)
    text = generate_validation_report(result)
    log.log(logging.INFO if result.is_valid else logging.WARNING, "\n%s", text)
    return text


def format_compliance_report(result: ComplianceResult) -> str:
    """Text rendering of a pre-save compliance result, grouped by rule."""
    if result.valid and not result.violations:
        return "✅ VALIDAÇÃO: Todas as regras foram respeitadas"

    grouped: dict[str, list[RuleViolation]] = {}
    for v in result.violations:
        grouped.setdefault(str(v.rule), []).append(v)

    critical = sum(1 for v in result.violations if v.severity == ComplianceSeverity.CRITICAL)

    lines = [RULE]
    lines.append(
        "❌ VALIDAÇÃO FALHOU - VIOLAÇÕES ENCONTRADAS"
        if not result.valid
        else "⚠️ VALIDAÇÃO COM AVISOS"
    )
    lines.append(RULE)
    for rule, items in grouped.items():
        lines.append("")
        lines.append(f"🔴 {rule} ({len(items)} violação(ões)):")
        for v in items:
            suffix = f" ({v.violation_date.isoformat()})" if v.violation_date else ""
            lines.append(f"   - {v.broker_name}: {v.details}{suffix}")
    lines.append("")
    lines.append(RULE)
    lines.append(f"TOTAL: {critical} violações críticas")
    if not result.valid:
        lines.append("❌ ESCALA NÃO DEVE SER SALVA")
    lines.append(RULE)
    return "\n".join(lines)

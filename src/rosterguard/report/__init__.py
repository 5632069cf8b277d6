from rosterguard.report.formatter import (
    format_compliance_report,
    generate_validation_report,
    log_validation_result,
)

__all__ = ["format_compliance_report", "generate_validation_report", "log_validation_result"]

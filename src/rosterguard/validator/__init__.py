from rosterguard.validator.compliance import can_add_assignment, validate_rules_compliance
from rosterguard.validator.validator import PostValidator, validate_generated_schedule

__all__ = [
    "PostValidator",
    "can_add_assignment",
    "validate_generated_schedule",
    "validate_rules_compliance",
]

"""
Data Quality Module
"""
from .audit import DataIntegrityAuditor, audit_passed
from .validators import DataValidator, ValidationCheck, ValidationResult, ValidationSeverity, ValidationStatus

__all__ = [
    "DataIntegrityAuditor",
    "DataValidator",
    "ValidationCheck",
    "ValidationResult",
    "ValidationSeverity",
    "ValidationStatus",
    "audit_passed",
]

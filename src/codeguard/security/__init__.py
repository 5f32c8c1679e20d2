"""Secret scanning and audit logging."""

from codeguard.security.audit import AuditLogger, AuditStatus, audit_entry, verify_log
from codeguard.security.scanner import SecretScanner
from codeguard.security.types import ScanResult, SecretMatch

__all__ = [
    "AuditLogger",
    "AuditStatus",
    "ScanResult",
    "SecretMatch",
    "SecretScanner",
    "audit_entry",
    "verify_log",
]

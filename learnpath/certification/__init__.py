"""Certification module.

Provides:
- Certificate eligibility gate (completion and waiting window)
- One-time certificate issuance with an immutable snapshot
- Public verification
- Per-course certificate templates
"""

from .models import (
    CERTIFICATION_TABLES_CQL,
    Certificate,
    CertificateSnapshot,
    CertificateTemplate,
    Eligibility,
    EligibilityStatus,
    TemplatePlaceholder,
)


__all__ = [
    "CERTIFICATION_TABLES_CQL",
    "Certificate",
    "CertificateSnapshot",
    "CertificateTemplate",
    "Eligibility",
    "EligibilityStatus",
    "TemplatePlaceholder",
]

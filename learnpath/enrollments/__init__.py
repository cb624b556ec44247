"""Course enrollment module.

Provides:
- Direct enrollments and sponsored access
- Access resolution by actor kind
- Denormalized progress aggregates per enrollment
"""

from .models import (
    ENROLLMENTS_TABLES_CQL,
    DirectEnrollment,
    Enrollment,
    EnrollmentProof,
    SponsoredAccess,
)


__all__ = [
    "ENROLLMENTS_TABLES_CQL",
    "DirectEnrollment",
    "Enrollment",
    "EnrollmentProof",
    "SponsoredAccess",
]

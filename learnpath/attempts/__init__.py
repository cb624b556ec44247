"""Test attempt and grading module.

Provides:
- One attempt per (user, test)
- Auto-grading of multiple choice and true/false questions
- Manual grading of short answers
"""

from .models import (
    ATTEMPTS_TABLES_CQL,
    AttemptStatus,
    ResponseStatus,
    TestAttempt,
    UserResponse,
)


__all__ = [
    "ATTEMPTS_TABLES_CQL",
    "AttemptStatus",
    "ResponseStatus",
    "TestAttempt",
    "UserResponse",
]

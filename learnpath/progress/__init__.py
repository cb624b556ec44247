"""Learning progress tracking module.

Provides:
- Lesson and test completion under prerequisite ordering
- Course and section progress aggregation
- Gated lesson material
"""

from .models import (
    PROGRESS_TABLES_CQL,
    ContentProgress,
    CourseProgress,
    ProgressRecord,
    SectionProgress,
)


__all__ = [
    "PROGRESS_TABLES_CQL",
    "ContentProgress",
    "CourseProgress",
    "ProgressRecord",
    "SectionProgress",
]

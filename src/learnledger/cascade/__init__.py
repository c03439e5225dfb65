"""Course Deletion - atomic removal of a course and its dependency graph."""

from learnledger.cascade.orchestrator import (
    COURSE_DEPENDENTS,
    CascadeStep,
    CourseDeletionOrchestrator,
)

__all__ = [
    "COURSE_DEPENDENTS",
    "CascadeStep",
    "CourseDeletionOrchestrator",
]

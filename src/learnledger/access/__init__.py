"""Access Policy - pure content-access decisions."""

from learnledger.access.policy import (
    GRACE_PERIOD,
    UNENROLL_WINDOW,
    can_access_course_content,
    can_self_unenroll,
    can_view_quiz,
    in_grace_period,
    is_paid,
    is_quiz_open,
    within_window,
)

__all__ = [
    "GRACE_PERIOD",
    "UNENROLL_WINDOW",
    "can_access_course_content",
    "can_self_unenroll",
    "can_view_quiz",
    "in_grace_period",
    "is_paid",
    "is_quiz_open",
    "within_window",
]

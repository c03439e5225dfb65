"""Assignment and submission endpoints."""

from fastapi import APIRouter, Query, Response, status

from learnledger.api.dependencies import CourseworkDep, EducatorOrStaffDep, LearnerDep
from learnledger.api.models import (
    APIResponse,
    AssignmentResponse,
    SubmissionCreate,
    SubmissionGrade,
    SubmissionResponse,
)

router = APIRouter(tags=["assignments"])


@router.get("/assignments/available", response_model=APIResponse[list[AssignmentResponse]])
def list_available_assignments(
    actor: LearnerDep,
    coursework: CourseworkDep,
    course_id: str | None = Query(default=None, description="Filter by course ID"),
) -> APIResponse[list[AssignmentResponse]]:
    """Assignments in the caller's accessible courses, soonest due first."""
    assignments = coursework.list_available_assignments(actor, course_id=course_id)
    return APIResponse(data=[AssignmentResponse.model_validate(a) for a in assignments])


@router.post(
    "/assignments/{assignment_id}/submissions",
    response_model=APIResponse[SubmissionResponse],
    status_code=status.HTTP_201_CREATED,
)
def submit_assignment(
    assignment_id: str,
    body: SubmissionCreate,
    actor: LearnerDep,
    coursework: CourseworkDep,
    response: Response,
) -> APIResponse[SubmissionResponse]:
    """Submit work for an assignment; a resubmission replaces the earlier file."""
    result = coursework.submit_assignment(
        assignment_id, actor, file_url=body.file_url, file_name=body.file_name
    )
    if result.resubmitted:
        response.status_code = status.HTTP_200_OK
    return APIResponse(data=SubmissionResponse.model_validate(result.submission))


@router.patch("/submissions/{submission_id}/grade", response_model=APIResponse[SubmissionResponse])
def grade_submission(
    submission_id: str,
    body: SubmissionGrade,
    actor: EducatorOrStaffDep,
    coursework: CourseworkDep,
) -> APIResponse[SubmissionResponse]:
    """Grade a submission."""
    submission = coursework.grade_submission(
        submission_id, actor, grade=body.grade, feedback=body.feedback
    )
    return APIResponse(data=SubmissionResponse.model_validate(submission))

"""Quiz endpoints."""

from fastapi import APIRouter

from learnledger.api.dependencies import CourseworkDep, EducatorOrStaffDep, LearnerDep
from learnledger.api.models import (
    APIResponse,
    AttemptSummaryResponse,
    QuizResponse,
    QuizResultResponse,
    QuizSubmissionEntryResponse,
    QuizSubmit,
    quiz_to_response,
)

router = APIRouter(prefix="/quizzes", tags=["quizzes"])


@router.get("/available", response_model=APIResponse[list[QuizResponse]])
def list_available_quizzes(
    actor: LearnerDep, coursework: CourseworkDep
) -> APIResponse[list[QuizResponse]]:
    """Open quizzes in the caller's accessible courses."""
    quizzes = coursework.list_available_quizzes(actor)
    return APIResponse(data=[quiz_to_response(q) for q in quizzes])


@router.get("/attempts/mine", response_model=APIResponse[list[AttemptSummaryResponse]])
def list_my_attempts(
    actor: LearnerDep, coursework: CourseworkDep
) -> APIResponse[list[AttemptSummaryResponse]]:
    """The caller's quiz attempts, newest first."""
    attempts = coursework.list_attempts(actor)
    return APIResponse(data=[AttemptSummaryResponse.model_validate(a) for a in attempts])


@router.get("/{quiz_id}", response_model=APIResponse[QuizResponse])
def get_quiz(
    quiz_id: str, actor: LearnerDep, coursework: CourseworkDep
) -> APIResponse[QuizResponse]:
    """Get a quiz, without its answers."""
    quiz = coursework.get_quiz_for_learner(quiz_id, actor)
    return APIResponse(data=quiz_to_response(quiz))


@router.post("/{quiz_id}/submit", response_model=APIResponse[QuizResultResponse])
def submit_quiz(
    quiz_id: str, body: QuizSubmit, actor: LearnerDep, coursework: CourseworkDep
) -> APIResponse[QuizResultResponse]:
    """Submit the caller's single attempt at a quiz."""
    result = coursework.submit_quiz(quiz_id, actor, body.answers)
    return APIResponse(
        data=QuizResultResponse(
            score=result.score,
            total=result.total,
            correct_answers=result.correct_answers,
            attempted_at=result.attempt.attempted_at,
        )
    )


@router.get("/{quiz_id}/submissions", response_model=APIResponse[list[QuizSubmissionEntryResponse]])
def quiz_submissions(
    quiz_id: str, actor: EducatorOrStaffDep, coursework: CourseworkDep
) -> APIResponse[list[QuizSubmissionEntryResponse]]:
    """Per-learner scores for a quiz."""
    entries = coursework.quiz_submission_summary(quiz_id, actor)
    return APIResponse(data=[QuizSubmissionEntryResponse.model_validate(e) for e in entries])

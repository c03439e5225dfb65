"""Course endpoints."""

from fastapi import APIRouter, status

from learnledger.api.dependencies import (
    ActorDep,
    CascadeDep,
    CatalogDep,
    EducatorOrStaffDep,
    StaffDep,
)
from learnledger.api.models import (
    APIResponse,
    CascadeReport,
    CourseCreate,
    CourseResponse,
)
from learnledger.store import Role

router = APIRouter(prefix="/courses", tags=["courses"])


@router.post(
    "",
    response_model=APIResponse[CourseResponse],
    status_code=status.HTTP_201_CREATED,
)
def create_course(
    course: CourseCreate, actor: EducatorOrStaffDep, catalog: CatalogDep
) -> APIResponse[CourseResponse]:
    """Create a course. Educators always own the courses they create."""
    educator_id = actor.id if actor.role == Role.EDUCATOR else (course.educator_id or actor.id)
    created = catalog.create_course(
        title=course.title,
        educator_id=educator_id,
        start_date=course.start_date,
        end_date=course.end_date,
        fee=course.fee,
        category=course.category,
    )
    return APIResponse(data=CourseResponse.model_validate(created))


@router.get("/{course_id}", response_model=APIResponse[CourseResponse])
def get_course(
    course_id: str, _actor: ActorDep, catalog: CatalogDep
) -> APIResponse[CourseResponse]:
    """Get a course by ID."""
    course = catalog.get_course(course_id)
    return APIResponse(data=CourseResponse.model_validate(course))


@router.delete("/{course_id}", response_model=APIResponse[CascadeReport])
def delete_course(
    course_id: str, actor: StaffDep, cascade: CascadeDep
) -> APIResponse[CascadeReport]:
    """Delete a course and every record that belongs to it."""
    report = cascade.delete_course(course_id, actor)
    return APIResponse(data=CascadeReport(course_id=course_id, deleted=report))

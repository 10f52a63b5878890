from fastapi import APIRouter, Depends

from learnhub.auth.identity import Principal
from learnhub.courses.enrollment_service import EnrollmentGateway
from learnhub.courses.models import CompleteLessonRequest
from learnhub.dependencies import get_current_principal, get_enrollment_gateway

router = APIRouter(tags=["Enrollments"])

# ==================== ENROLLMENT ENDPOINTS ====================

@router.post("/courses/{course_id}/enroll", status_code=201)
async def enroll(
    course_id: str,
    principal: Principal = Depends(get_current_principal),
    enrollments: EnrollmentGateway = Depends(get_enrollment_gateway),
):
    """Enroll in course (students only, published courses only)"""
    enrollment = await enrollments.enroll(principal, course_id)
    return {"message": "Enrolled successfully", "enrollment": enrollment}


@router.get("/enrollments/me")
async def get_my_enrollments(
    principal: Principal = Depends(get_current_principal),
    enrollments: EnrollmentGateway = Depends(get_enrollment_gateway),
):
    return await enrollments.list_mine(principal)


@router.post("/enrollments/{enrollment_id}/complete-lesson")
async def complete_lesson(
    enrollment_id: str,
    payload: CompleteLessonRequest,
    principal: Principal = Depends(get_current_principal),
    enrollments: EnrollmentGateway = Depends(get_enrollment_gateway),
):
    enrollment = await enrollments.complete_lesson(principal, enrollment_id, payload.lesson_id)
    return {
        "message": "Lesson marked as completed",
        "progress": enrollment["progress"],
        "completed_lessons": enrollment["completed_lessons"],
    }

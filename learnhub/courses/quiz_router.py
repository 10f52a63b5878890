from fastapi import APIRouter, Depends

from learnhub.auth.identity import Principal
from learnhub.courses.models import QuizCreate, QuizUpdate
from learnhub.courses.quiz_service import QuizGateway
from learnhub.dependencies import get_current_principal, get_quiz_gateway

router = APIRouter(tags=["Quizzes"])

# ==================== COURSE-BASED QUIZZES ====================

@router.post("/courses/{course_id}/quizzes", status_code=201)
async def create_quiz(
    course_id: str,
    payload: QuizCreate,
    principal: Principal = Depends(get_current_principal),
    quizzes: QuizGateway = Depends(get_quiz_gateway),
):
    return await quizzes.create(principal, course_id, payload.model_dump())


@router.get("/courses/{course_id}/quizzes")
async def list_quizzes(
    course_id: str,
    principal: Principal = Depends(get_current_principal),
    quizzes: QuizGateway = Depends(get_quiz_gateway),
):
    """Enrolled students (answers hidden) | Owner | Admin"""
    return await quizzes.list_by_course(principal, course_id)

# ==================== QUIZ-LEVEL ACTIONS ====================

@router.get("/quizzes/{quiz_id}")
async def get_quiz(
    quiz_id: str,
    principal: Principal = Depends(get_current_principal),
    quizzes: QuizGateway = Depends(get_quiz_gateway),
):
    return await quizzes.get_by_id(principal, quiz_id)


@router.put("/quizzes/{quiz_id}")
async def update_quiz(
    quiz_id: str,
    updates: QuizUpdate,
    principal: Principal = Depends(get_current_principal),
    quizzes: QuizGateway = Depends(get_quiz_gateway),
):
    return await quizzes.update(principal, quiz_id, updates.model_dump(exclude_unset=True))


@router.patch("/quizzes/{quiz_id}/publish")
async def toggle_publish_quiz(
    quiz_id: str,
    principal: Principal = Depends(get_current_principal),
    quizzes: QuizGateway = Depends(get_quiz_gateway),
):
    quiz = await quizzes.toggle_publish(principal, quiz_id)
    state = "published" if quiz["is_published"] else "unpublished"
    return {"message": f"Quiz {state} successfully", "is_published": quiz["is_published"]}


@router.delete("/quizzes/{quiz_id}")
async def delete_quiz(
    quiz_id: str,
    principal: Principal = Depends(get_current_principal),
    quizzes: QuizGateway = Depends(get_quiz_gateway),
):
    await quizzes.delete(principal, quiz_id)
    return {"message": "Quiz deleted successfully"}

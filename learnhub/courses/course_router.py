from typing import Optional

from fastapi import APIRouter, Depends, Query

from learnhub.auth.identity import Principal
from learnhub.courses.course_service import CourseGateway
from learnhub.courses.models import CourseCreate, CourseUpdate
from learnhub.dependencies import get_course_gateway, get_current_principal, get_optional_principal

router = APIRouter(prefix="/courses", tags=["Course Management"])

# ==================== COURSE CRUD ====================

# Static paths first so they are not captured by /{course_id}

@router.get("/search")
async def search_courses(
    q: Optional[str] = None,
    tags: Optional[str] = Query(None, description="Comma separated"),
    category: Optional[str] = None,
    courses: CourseGateway = Depends(get_course_gateway),
):
    """Search published courses (full-text + tags)"""
    tag_list = [t.strip() for t in tags.split(",") if t.strip()] if tags else None
    items = await courses.search(q=q, tags=tag_list, category=category)
    return {"total": len(items), "courses": items}


@router.get("/my")
async def list_my_courses(
    principal: Principal = Depends(get_current_principal),
    courses: CourseGateway = Depends(get_course_gateway),
):
    items = await courses.list_mine(principal)
    return {"total": len(items), "courses": items}


@router.get("")
async def list_published_courses(courses: CourseGateway = Depends(get_course_gateway)):
    return await courses.list_published()


@router.post("", status_code=201)
async def create_course(
    payload: CourseCreate,
    principal: Principal = Depends(get_current_principal),
    courses: CourseGateway = Depends(get_course_gateway),
):
    """Create new course (teacher/admin only)"""
    return await courses.create(principal, payload.model_dump())


@router.get("/{course_id}")
async def get_course(
    course_id: str,
    principal: Optional[Principal] = Depends(get_optional_principal),
    courses: CourseGateway = Depends(get_course_gateway),
):
    """Public when published, owner/admin otherwise"""
    return await courses.get_by_id(principal, course_id)


@router.put("/{course_id}")
async def update_course(
    course_id: str,
    updates: CourseUpdate,
    principal: Principal = Depends(get_current_principal),
    courses: CourseGateway = Depends(get_course_gateway),
):
    return await courses.update(principal, course_id, updates.model_dump(exclude_unset=True))


@router.patch("/{course_id}/publish")
async def toggle_publish_course(
    course_id: str,
    principal: Principal = Depends(get_current_principal),
    courses: CourseGateway = Depends(get_course_gateway),
):
    course = await courses.toggle_publish(principal, course_id)
    state = "published" if course["is_published"] else "unpublished"
    return {
        "message": f"Course {state} successfully",
        "is_published": course["is_published"],
    }


@router.delete("/{course_id}")
async def delete_course(
    course_id: str,
    principal: Principal = Depends(get_current_principal),
    courses: CourseGateway = Depends(get_course_gateway),
):
    await courses.delete(principal, course_id)
    return {"message": "Course deleted successfully"}

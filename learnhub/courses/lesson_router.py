from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from learnhub.auth.identity import Principal
from learnhub.config import Settings
from learnhub.courses.lesson_service import LessonGateway
from learnhub.courses.models import LessonCreate, LessonUpdate
from learnhub.dependencies import (
    get_current_principal, get_lesson_gateway, get_optional_principal, get_settings,
    parse_form, parse_json_field, read_video,
)

router = APIRouter(tags=["Lessons"])

# ==================== LESSON CRUD ====================

@router.post("/courses/{course_id}/lessons", status_code=201)
async def create_lesson(
    course_id: str,
    title: str = Form(...),
    content: Optional[str] = Form(None),
    duration: Optional[int] = Form(None),
    order: Optional[int] = Form(None),
    resources: Optional[str] = Form(None, description="JSON list of {title, url}"),
    video: Optional[UploadFile] = File(None),
    principal: Principal = Depends(get_current_principal),
    lessons: LessonGateway = Depends(get_lesson_gateway),
    settings: Settings = Depends(get_settings),
):
    """Create lesson (with optional video upload)"""
    payload = parse_form(LessonCreate, {
        "title": title,
        "content": content,
        "duration": duration,
        "order": order,
        "resources": parse_json_field(resources, "resources"),
    })
    video_bytes = await read_video(video, settings)
    return await lessons.create(principal, course_id, payload.model_dump(), video=video_bytes)


@router.get("/courses/{course_id}/lessons")
async def list_lessons(
    course_id: str,
    principal: Optional[Principal] = Depends(get_optional_principal),
    lessons: LessonGateway = Depends(get_lesson_gateway),
):
    return await lessons.list_by_course(principal, course_id)


@router.get("/lessons/{lesson_id}")
async def get_lesson(
    lesson_id: str,
    principal: Optional[Principal] = Depends(get_optional_principal),
    lessons: LessonGateway = Depends(get_lesson_gateway),
):
    return await lessons.get_by_id(principal, lesson_id)


@router.put("/lessons/{lesson_id}")
async def update_lesson(
    lesson_id: str,
    title: Optional[str] = Form(None),
    content: Optional[str] = Form(None),
    duration: Optional[int] = Form(None),
    order: Optional[int] = Form(None),
    resources: Optional[str] = Form(None),
    video_url: Optional[str] = Form(None),
    video: Optional[UploadFile] = File(None),
    principal: Principal = Depends(get_current_principal),
    lessons: LessonGateway = Depends(get_lesson_gateway),
    settings: Settings = Depends(get_settings),
):
    """Update lesson (can replace video)"""
    payload = parse_form(LessonUpdate, {
        "title": title,
        "content": content,
        "duration": duration,
        "order": order,
        "resources": parse_json_field(resources, "resources"),
        "video_url": video_url,
    })
    video_bytes = await read_video(video, settings)
    return await lessons.update(
        principal, lesson_id, payload.model_dump(exclude_unset=True), video=video_bytes
    )


@router.patch("/lessons/{lesson_id}/publish")
async def toggle_publish_lesson(
    lesson_id: str,
    principal: Principal = Depends(get_current_principal),
    lessons: LessonGateway = Depends(get_lesson_gateway),
):
    lesson = await lessons.toggle_publish(principal, lesson_id)
    state = "published" if lesson["is_published"] else "unpublished"
    return {"message": f"Lesson {state} successfully", "is_published": lesson["is_published"]}


@router.delete("/lessons/{lesson_id}")
async def delete_lesson(
    lesson_id: str,
    principal: Principal = Depends(get_current_principal),
    lessons: LessonGateway = Depends(get_lesson_gateway),
):
    await lessons.delete(principal, lesson_id)
    return {"message": "Lesson deleted successfully"}

import json
from typing import Optional, Type, TypeVar

from fastapi import Depends, Header, Request, UploadFile
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, ValidationError as PydanticValidationError

from learnhub.auth.identity import IdentityResolver, Principal
from learnhub.auth.tokens import extract_bearer
from learnhub.config import Settings
from learnhub.courses.course_service import CourseGateway
from learnhub.courses.enrollment_service import EnrollmentGateway
from learnhub.courses.lesson_service import LessonGateway
from learnhub.courses.quiz_service import QuizGateway
from learnhub.errors import ValidationError
from learnhub.media.uploader import AssetUploader, validate_image, validate_video
from learnhub.users.user_service import UserGateway

ModelT = TypeVar("ModelT", bound=BaseModel)

# ==================== DEPENDENCY FUNCTIONS ====================

async def get_db(request: Request) -> AsyncIOMotorDatabase:
    """Database dependency"""
    return request.app.state.db


async def get_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_uploader(request: Request) -> AssetUploader:
    return request.app.state.uploader


async def get_resolver(request: Request) -> IdentityResolver:
    return request.app.state.resolver


async def get_current_principal(
    authorization: Optional[str] = Header(None),
    resolver: IdentityResolver = Depends(get_resolver),
) -> Principal:
    """Requires a valid bearer token"""
    return await resolver.resolve(extract_bearer(authorization))


async def get_optional_principal(
    authorization: Optional[str] = Header(None),
    resolver: IdentityResolver = Depends(get_resolver),
) -> Optional[Principal]:
    """Anonymous callers allowed; a token that is sent must still be valid"""
    token = extract_bearer(authorization)
    if token is None:
        return None
    return await resolver.resolve(token)

# ==================== GATEWAYS ====================

async def get_course_gateway(db: AsyncIOMotorDatabase = Depends(get_db)) -> CourseGateway:
    return CourseGateway(db)


async def get_lesson_gateway(
    db: AsyncIOMotorDatabase = Depends(get_db),
    uploader: AssetUploader = Depends(get_uploader),
) -> LessonGateway:
    return LessonGateway(db, uploader)


async def get_quiz_gateway(db: AsyncIOMotorDatabase = Depends(get_db)) -> QuizGateway:
    return QuizGateway(db)


async def get_enrollment_gateway(db: AsyncIOMotorDatabase = Depends(get_db)) -> EnrollmentGateway:
    return EnrollmentGateway(db)


async def get_user_gateway(
    db: AsyncIOMotorDatabase = Depends(get_db),
    uploader: AssetUploader = Depends(get_uploader),
) -> UserGateway:
    return UserGateway(db, uploader)

# ==================== FORM HELPERS ====================

def parse_form(model: Type[ModelT], fields: dict) -> ModelT:
    """Validate multipart form fields (None means "not sent")"""
    try:
        return model(**{k: v for k, v in fields.items() if v is not None})
    except PydanticValidationError as e:
        err = e.errors()[0]
        location = ".".join(str(p) for p in err.get("loc", ()))
        raise ValidationError(f"{location}: {err['msg']}" if location else err["msg"])


def parse_json_field(raw: Optional[str], name: str):
    if raw is None or raw == "":
        return None
    try:
        return json.loads(raw)
    except ValueError:
        raise ValidationError(f"{name} must be valid JSON")


async def read_video(video: Optional[UploadFile], settings: Settings) -> Optional[bytes]:
    if video is None or not video.filename:
        return None
    data = await video.read()
    validate_video(video.content_type, len(data), settings.max_video_bytes)
    return data


async def read_image(image: Optional[UploadFile]) -> Optional[bytes]:
    if image is None or not image.filename:
        return None
    data = await image.read()
    validate_image(image.content_type, len(data))
    return data

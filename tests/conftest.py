"""
Pytest configuration for LearnHub tests.

Storage is an in-memory mongomock-motor database with the real indexes, so
uniqueness and counter behaviour match production. Uploads are recorded by a
fake instead of going to Cloudinary.
"""
from datetime import datetime

import httpx
import pytest
from httpx import ASGITransport
from mongomock_motor import AsyncMongoMockClient

from learnhub.auth.identity import Principal, Role
from learnhub.auth.tokens import CredentialVerifier
from learnhub.config import Settings
from learnhub.courses.course_service import CourseGateway
from learnhub.courses.database import create_indexes
from learnhub.courses.enrollment_service import EnrollmentGateway
from learnhub.courses.lesson_service import LessonGateway
from learnhub.courses.quiz_service import QuizGateway
from learnhub.main import create_app
from learnhub.media.uploader import AssetUploader
from learnhub.users.user_service import UserGateway


class FakeUploader(AssetUploader):
    def __init__(self):
        self.calls = []

    async def upload(self, data: bytes, folder: str, resource_type: str = "video") -> str:
        self.calls.append({"folder": folder, "resource_type": resource_type, "size": len(data)})
        return f"https://cdn.test/{folder}/{len(self.calls)}"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings():
    return Settings(
        mongo_url="mongodb://unused",
        jwt_secret_key="test-secret-key",
        max_video_bytes=1024,
    )


@pytest.fixture
def verifier(settings):
    return CredentialVerifier(settings)


@pytest.fixture
def uploader():
    return FakeUploader()


@pytest.fixture
async def db():
    client = AsyncMongoMockClient()
    database = client["learnhub_test"]
    await create_indexes(database)
    return database


@pytest.fixture
def make_user(db):
    """Insert a users document and return the matching Principal"""

    async def _make(user_id, role=Role.STUDENT, email_verified=True, is_deleted=False, **extra):
        await db.users.insert_one({
            "user_id": user_id,
            "name": extra.pop("name", user_id.title()),
            "email": f"{user_id.lower()}@example.com",
            "role": role.value,
            "email_verified": email_verified,
            "is_deleted": is_deleted,
            "created_at": datetime.utcnow(),
            **extra,
        })
        return Principal(id=user_id, role=role, is_deleted=is_deleted, email_verified=email_verified)

    return _make


@pytest.fixture
async def admin(make_user):
    return await make_user("admin", Role.ADMIN)


@pytest.fixture
async def teacher(make_user):
    return await make_user("teacher", Role.TEACHER)


@pytest.fixture
async def other_teacher(make_user):
    return await make_user("other-teacher", Role.TEACHER)


@pytest.fixture
async def student(make_user):
    return await make_user("student", Role.STUDENT)


@pytest.fixture
async def other_student(make_user):
    return await make_user("other-student", Role.STUDENT)


@pytest.fixture
def courses(db):
    return CourseGateway(db)


@pytest.fixture
def lessons(db, uploader, courses):
    return LessonGateway(db, uploader, courses)


@pytest.fixture
def quizzes(db, courses):
    return QuizGateway(db, courses)


@pytest.fixture
def enrollments(db):
    return EnrollmentGateway(db)


@pytest.fixture
def users(db, uploader):
    return UserGateway(db, uploader)


@pytest.fixture
async def published_course(courses, teacher):
    course = await courses.create(teacher, {"title": "Python Basics", "category": "programming", "tags": ["python"]})
    await courses.toggle_publish(teacher, course["course_id"])
    return await courses.require(course["course_id"])


@pytest.fixture
def auth_header(verifier):
    def _header(principal):
        return {"Authorization": f"Bearer {verifier.issue(principal.id)}"}

    return _header


@pytest.fixture
async def client(db, settings, uploader):
    app = create_app(settings, database=db, uploader=uploader)
    async with httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c

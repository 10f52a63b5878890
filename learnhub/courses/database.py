import secrets
from typing import Iterable, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, TEXT

from learnhub.errors import ValidationError


def generate_id(prefix: str) -> str:
    """Generate unique ID with prefix"""
    return f"{prefix}_{secrets.token_hex(8).upper()}"


def serialize_mongo(doc: Optional[dict]) -> Optional[dict]:
    if doc is None:
        return None
    doc.pop("_id", None)
    return doc


def serialize_many(docs: Iterable[dict]) -> List[dict]:
    return [serialize_mongo(doc) for doc in docs]


def pick_allowed(changes: dict, allowed: Iterable[str]) -> dict:
    """Keep only allow-listed keys; everything else is dropped silently"""
    allowed = set(allowed)
    return {k: v for k, v in (changes or {}).items() if k in allowed}


def reject_nulls(updates: dict, fields: Iterable[str]) -> dict:
    """Raise if a field that must always hold a value is explicitly set to None"""
    for field in fields:
        if field in updates and updates[field] is None:
            raise ValidationError(f"{field} cannot be null")
    return updates

# ==================== DATABASE INDEXES ====================

async def create_indexes(db: AsyncIOMotorDatabase):
    """Create MongoDB indexes - uniqueness here backs the checks done in code"""

    # Users
    await db.users.create_index("user_id", unique=True)
    await db.users.create_index("email", unique=True, sparse=True)

    # Courses
    await db.courses.create_index("course_id", unique=True)
    await db.courses.create_index("teacher_id")
    await db.courses.create_index([("is_published", ASCENDING), ("created_at", DESCENDING)])

    # Lessons
    await db.lessons.create_index("lesson_id", unique=True)
    await db.lessons.create_index([("course_id", ASCENDING), ("order", ASCENDING)])

    # Quizzes
    await db.quizzes.create_index("quiz_id", unique=True)
    await db.quizzes.create_index("course_id")

    # Enrollments
    await db.enrollments.create_index("enrollment_id", unique=True)
    await db.enrollments.create_index([("student_id", ASCENDING), ("course_id", ASCENDING)], unique=True)

    # Audit logs
    await db.audit_logs.create_index([("target_type", ASCENDING), ("target_id", ASCENDING)])
    await db.audit_logs.create_index([("actor_user_id", ASCENDING), ("timestamp", DESCENDING)])


async def create_search_index(db: AsyncIOMotorDatabase):
    """Full-text index used by course search"""
    await db.courses.create_index(
        [("title", TEXT), ("description", TEXT), ("category", TEXT), ("tags", TEXT)],
        name="course_text_search",
    )

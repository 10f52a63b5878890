"""
Course gateway
Ownership, visibility and the denormalized lesson/quiz counters
"""

import logging
from datetime import datetime
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from learnhub.audit import log_audit
from learnhub.auth.identity import Principal, Role
from learnhub.auth.policy import (
    Action, COURSE_AUTHORS, ensure_authorized, ensure_role, is_allowed
)
from learnhub.courses.database import generate_id, pick_allowed, reject_nulls, serialize_many, serialize_mongo
from learnhub.errors import NotFound

logger = logging.getLogger("learnhub.courses")

COURSE_UPDATE_FIELDS = ("title", "description", "category", "level", "tags")
COURSE_REQUIRED_FIELDS = ("title", "tags")

LESSON_COUNTER = "total_lessons"
QUIZ_COUNTER = "total_quizzes"


class CourseGateway:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    # ==================== LOOKUPS ====================

    async def find(self, course_id: str) -> Optional[dict]:
        return await self.db.courses.find_one({"course_id": course_id}, {"_id": 0})

    async def require(self, course_id: str) -> dict:
        course = await self.find(course_id)
        if not course:
            raise NotFound("Course not found")
        return course

    async def require_owned(self, principal: Principal, course_id: str) -> dict:
        """Fetch course and check owner-or-admin"""
        course = await self.require(course_id)
        ensure_authorized(principal, Action.MANAGE_COURSE, course["teacher_id"])
        return course

    @staticmethod
    def can_manage(principal: Optional[Principal], course: dict) -> bool:
        return is_allowed(principal, Action.MANAGE_COURSE, course["teacher_id"])

    async def require_visible(self, principal: Optional[Principal], course_id: str) -> dict:
        """Unpublished courses look missing to everyone but owner/admin"""
        course = await self.find(course_id)
        if not course or (not course["is_published"] and not self.can_manage(principal, course)):
            raise NotFound("Course not found")
        return course

    # ==================== COURSE CRUD ====================

    async def create(self, principal: Principal, data: dict) -> dict:
        ensure_role(principal, COURSE_AUTHORS)

        now = datetime.utcnow()
        course = {
            "course_id": generate_id("CRS"),
            "title": data["title"],
            "description": data.get("description"),
            "category": data.get("category"),
            "level": data.get("level"),
            "thumbnail": data.get("thumbnail"),
            "tags": data.get("tags") or [],
            "teacher_id": principal.id,
            "is_published": False,
            LESSON_COUNTER: 0,
            QUIZ_COUNTER: 0,
            "created_at": now,
            "updated_at": now,
        }

        await self.db.courses.insert_one(course)
        return serialize_mongo(course)

    async def get_by_id(self, principal: Optional[Principal], course_id: str) -> dict:
        return await self.require_visible(principal, course_id)

    async def list_published(self) -> List[dict]:
        cursor = self.db.courses.find({"is_published": True}).sort("created_at", -1)
        return serialize_many(await cursor.to_list(length=None))

    async def list_mine(self, principal: Principal) -> List[dict]:
        """Admin sees all courses, teacher only their own"""
        ensure_role(principal, COURSE_AUTHORS)
        query = {} if principal.role == Role.ADMIN else {"teacher_id": principal.id}
        cursor = self.db.courses.find(query).sort("created_at", -1)
        return serialize_many(await cursor.to_list(length=None))

    async def search(
        self,
        q: Optional[str] = None,
        tags: Optional[List[str]] = None,
        category: Optional[str] = None,
    ) -> List[dict]:
        """Search published courses (full-text + tags + category)"""
        query = {"is_published": True}
        if category:
            query["category"] = category
        if tags:
            query["tags"] = {"$in": tags}

        if q:
            query["$text"] = {"$search": q}
            cursor = self.db.courses.find(
                query, {"score": {"$meta": "textScore"}}
            ).sort([("score", {"$meta": "textScore"})])
        else:
            cursor = self.db.courses.find(query).sort("created_at", -1)

        courses = serialize_many(await cursor.to_list(length=None))
        for course in courses:
            course.pop("score", None)
        return courses

    async def update(self, principal: Principal, course_id: str, changes: dict) -> dict:
        await self.require_owned(principal, course_id)

        updates = reject_nulls(pick_allowed(changes, COURSE_UPDATE_FIELDS), COURSE_REQUIRED_FIELDS)
        updates["updated_at"] = datetime.utcnow()
        course = await self.db.courses.find_one_and_update(
            {"course_id": course_id},
            {"$set": updates},
            projection={"_id": 0},
            return_document=ReturnDocument.AFTER,
        )
        if not course:
            raise NotFound("Course not found")
        return course

    async def toggle_publish(self, principal: Principal, course_id: str) -> dict:
        course = await self.require_owned(principal, course_id)

        published = not course["is_published"]
        result = await self.db.courses.update_one(
            {"course_id": course_id, "is_published": course["is_published"]},
            {"$set": {"is_published": published, "updated_at": datetime.utcnow()}},
        )
        if result.matched_count == 0:
            # Changed or removed underneath us; report what is stored now
            course = await self.require(course_id)
            published = course["is_published"]
        else:
            course["is_published"] = published
            await log_audit(
                self.db, principal, "publish_course" if published else "unpublish_course",
                "course", course_id,
            )
            logger.info("Course %s %s", course_id, "published" if published else "unpublished")

        return course

    async def delete(self, principal: Principal, course_id: str) -> None:
        await self.require_owned(principal, course_id)

        result = await self.db.courses.delete_one({"course_id": course_id})
        if result.deleted_count == 0:
            raise NotFound("Course not found")

        lessons = await self.db.lessons.delete_many({"course_id": course_id})
        quizzes = await self.db.quizzes.delete_many({"course_id": course_id})

        await log_audit(
            self.db, principal, "delete_course", "course", course_id,
            {"lessons_removed": lessons.deleted_count, "quizzes_removed": quizzes.deleted_count},
        )
        logger.info("Course %s deleted", course_id)

    # ==================== COUNTERS ====================

    async def increment_counter(self, course_id: str, counter: str) -> bool:
        """Atomic +1; False when the course no longer exists"""
        result = await self.db.courses.update_one(
            {"course_id": course_id},
            {"$inc": {counter: 1}},
        )
        return result.matched_count == 1

    async def decrement_counter(self, course_id: str, counter: str) -> None:
        """Atomic -1, floored at 0"""
        await self.db.courses.update_one(
            {"course_id": course_id, counter: {"$gt": 0}},
            {"$inc": {counter: -1}},
        )

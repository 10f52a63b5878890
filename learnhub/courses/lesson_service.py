"""
Lesson gateway

A lesson and its course's ``total_lessons`` counter change together: the
lesson is written first and the counter adjusted second; if the counter
cannot be adjusted the lesson write is undone before the error propagates.
"""

import logging
from datetime import datetime
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from learnhub.audit import log_audit
from learnhub.auth.identity import Principal
from learnhub.courses.course_service import CourseGateway, LESSON_COUNTER
from learnhub.courses.database import generate_id, pick_allowed, reject_nulls, serialize_many, serialize_mongo
from learnhub.errors import NotFound
from learnhub.media.uploader import AssetUploader

logger = logging.getLogger("learnhub.lessons")

LESSON_UPDATE_FIELDS = ("title", "content", "duration", "order", "resources", "video_url")
LESSON_REQUIRED_FIELDS = ("title", "duration", "order", "resources")
VIDEO_FOLDER = "lessons"


class LessonGateway:
    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        uploader: Optional[AssetUploader] = None,
        courses: Optional[CourseGateway] = None,
    ):
        self.db = db
        self.uploader = uploader
        self.courses = courses or CourseGateway(db)

    async def require(self, lesson_id: str) -> dict:
        lesson = await self.db.lessons.find_one({"lesson_id": lesson_id}, {"_id": 0})
        if not lesson:
            raise NotFound("Lesson not found")
        return lesson

    async def _upload_video(self, video: bytes) -> str:
        return await self.uploader.upload(video, VIDEO_FOLDER, resource_type="video")

    # ==================== LESSON CRUD ====================

    async def create(
        self,
        principal: Principal,
        course_id: str,
        data: dict,
        video: Optional[bytes] = None,
    ) -> dict:
        await self.courses.require_owned(principal, course_id)

        video_url = data.get("video_url")
        if video:
            video_url = await self._upload_video(video)

        now = datetime.utcnow()
        lesson = {
            "lesson_id": generate_id("LSN"),
            "course_id": course_id,
            "title": data["title"],
            "content": data.get("content"),
            "video_url": video_url,
            "duration": data.get("duration") or 0,
            "order": data.get("order") or 0,
            "resources": data.get("resources") or [],
            "is_published": True,
            "created_at": now,
            "updated_at": now,
        }

        # Insert failure propagates before the counter is touched
        await self.db.lessons.insert_one(lesson)

        try:
            applied = await self.courses.increment_counter(course_id, LESSON_COUNTER)
        except PyMongoError:
            logger.warning("Counter update failed, removing lesson %s", lesson["lesson_id"])
            await self.db.lessons.delete_one({"lesson_id": lesson["lesson_id"]})
            raise

        if not applied:
            await self.db.lessons.delete_one({"lesson_id": lesson["lesson_id"]})
            raise NotFound("Course not found")

        return serialize_mongo(lesson)

    async def list_by_course(self, principal: Optional[Principal], course_id: str) -> List[dict]:
        course = await self.courses.require_visible(principal, course_id)

        query = {"course_id": course_id}
        if not self.courses.can_manage(principal, course):
            query["is_published"] = True

        cursor = self.db.lessons.find(query).sort("order", 1)
        return serialize_many(await cursor.to_list(length=None))

    async def get_by_id(self, principal: Optional[Principal], lesson_id: str) -> dict:
        lesson = await self.require(lesson_id)
        course = await self.courses.find(lesson["course_id"])
        if not course:
            raise NotFound("Lesson not found")

        if self.courses.can_manage(principal, course):
            return lesson
        if lesson["is_published"] and course["is_published"]:
            return lesson
        raise NotFound("Lesson not found")

    async def update(
        self,
        principal: Principal,
        lesson_id: str,
        changes: dict,
        video: Optional[bytes] = None,
    ) -> dict:
        lesson = await self.require(lesson_id)
        await self.courses.require_owned(principal, lesson["course_id"])

        updates = reject_nulls(pick_allowed(changes, LESSON_UPDATE_FIELDS), LESSON_REQUIRED_FIELDS)
        if video:
            updates["video_url"] = await self._upload_video(video)
        updates["updated_at"] = datetime.utcnow()

        updated = await self.db.lessons.find_one_and_update(
            {"lesson_id": lesson_id},
            {"$set": updates},
            projection={"_id": 0},
            return_document=ReturnDocument.AFTER,
        )
        if not updated:
            raise NotFound("Lesson not found")
        return updated

    async def toggle_publish(self, principal: Principal, lesson_id: str) -> dict:
        lesson = await self.require(lesson_id)
        await self.courses.require_owned(principal, lesson["course_id"])

        published = not lesson["is_published"]
        await self.db.lessons.update_one(
            {"lesson_id": lesson_id},
            {"$set": {"is_published": published, "updated_at": datetime.utcnow()}},
        )
        lesson["is_published"] = published
        await log_audit(
            self.db, principal, "publish_lesson" if published else "unpublish_lesson",
            "lesson", lesson_id,
        )
        return lesson

    async def delete(self, principal: Principal, lesson_id: str) -> None:
        lesson = await self.require(lesson_id)
        course_id = lesson["course_id"]
        await self.courses.require_owned(principal, course_id)

        result = await self.db.lessons.delete_one({"lesson_id": lesson_id})
        if result.deleted_count == 0:
            raise NotFound("Lesson not found")

        try:
            await self.courses.decrement_counter(course_id, LESSON_COUNTER)
        except PyMongoError:
            logger.warning("Counter update failed, restoring lesson %s", lesson_id)
            await self.db.lessons.insert_one(lesson)
            raise

        await log_audit(self.db, principal, "delete_lesson", "lesson", lesson_id, {"course_id": course_id})
        logger.info("Lesson %s deleted from course %s", lesson_id, course_id)

import logging
from datetime import datetime
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from learnhub.auth.identity import Principal
from learnhub.auth.policy import Action, STUDENTS, ensure_authorized, ensure_role
from learnhub.courses.database import generate_id, serialize_mongo
from learnhub.errors import Conflict, InvalidState, NotFound

logger = logging.getLogger("learnhub.enrollments")

PROGRESS_WRITE_ATTEMPTS = 5


def compute_progress(completed: int, total_lessons: int) -> float:
    """Percentage of lessons completed, capped at 100"""
    total = total_lessons if total_lessons and total_lessons > 0 else 1
    return min(100.0, 100.0 * completed / total)


class EnrollmentGateway:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    async def find_existing(self, student_id: str, course_id: str) -> Optional[dict]:
        return await self.db.enrollments.find_one({"student_id": student_id, "course_id": course_id})

    async def enroll(self, principal: Principal, course_id: str) -> dict:
        """
        Enroll student in course

        Raises:
            Forbidden: caller is not an active student
            InvalidState: course missing or not published
            Conflict: already enrolled
        """
        ensure_role(principal, STUDENTS, "Only students can enroll")

        course = await self.db.courses.find_one({"course_id": course_id})
        if not course or not course.get("is_published"):
            raise InvalidState("Course not found or not published")

        if await self.find_existing(principal.id, course_id):
            raise Conflict("Already enrolled in this course")

        now = datetime.utcnow()
        enrollment = {
            "enrollment_id": generate_id("ENR"),
            "student_id": principal.id,
            "course_id": course_id,
            "enrolled_at": now,
            "progress": 0.0,
            "completed_lessons": [],
            "created_at": now,
            "updated_at": now,
        }

        try:
            await self.db.enrollments.insert_one(enrollment)
        except DuplicateKeyError:
            # Lost the race against a concurrent enroll for the same pair
            raise Conflict("Already enrolled in this course")

        return serialize_mongo(enrollment)

    async def list_mine(self, principal: Principal) -> List[dict]:
        """Get student's enrolled courses with a short course summary"""
        ensure_role(principal, STUDENTS)

        cursor = self.db.enrollments.find({"student_id": principal.id}, {"_id": 0}).sort("enrolled_at", -1)
        enrollments = await cursor.to_list(length=None)

        course_ids = [e["course_id"] for e in enrollments]
        courses = await self.db.courses.find(
            {"course_id": {"$in": course_ids}},
            {"_id": 0, "course_id": 1, "title": 1, "description": 1, "teacher_id": 1},
        ).to_list(length=None)
        by_id = {c["course_id"]: c for c in courses}

        for enr in enrollments:
            enr["course"] = by_id.get(enr["course_id"])
        return enrollments

    async def write_progress(self, enrollment_id: str, completed_count: int, progress: float) -> bool:
        """Store progress only if completed_lessons still has completed_count entries"""
        result = await self.db.enrollments.update_one(
            {"enrollment_id": enrollment_id, "completed_lessons": {"$size": completed_count}},
            {"$set": {"progress": progress, "updated_at": datetime.utcnow()}},
        )
        return result.matched_count == 1

    async def complete_lesson(self, principal: Principal, enrollment_id: str, lesson_id: str) -> dict:
        """
        Mark lesson as completed and recompute progress

        Idempotent: a lesson id is stored at most once. The progress write is
        conditioned on the size of completed_lessons, so a writer holding an
        outdated count never overwrites a newer progress value.
        """
        enrollment = await self.db.enrollments.find_one({"enrollment_id": enrollment_id})
        if not enrollment:
            raise NotFound("Enrollment not found")

        ensure_authorized(principal, Action.TRACK_PROGRESS, enrollment["student_id"])

        course_id = enrollment["course_id"]
        lesson = await self.db.lessons.find_one({"lesson_id": lesson_id, "course_id": course_id})
        if not lesson:
            raise NotFound("Lesson not found in this course")

        course = await self.db.courses.find_one({"course_id": course_id}, {"total_lessons": 1})
        total_lessons = course.get("total_lessons", 0) if course else 0

        enrollment = await self.db.enrollments.find_one_and_update(
            {"enrollment_id": enrollment_id},
            {"$addToSet": {"completed_lessons": lesson_id}},
            projection={"_id": 0},
            return_document=ReturnDocument.AFTER,
        )

        for _ in range(PROGRESS_WRITE_ATTEMPTS):
            if not enrollment:
                raise NotFound("Enrollment not found")

            completed = len(enrollment["completed_lessons"])
            progress = compute_progress(completed, total_lessons)
            if await self.write_progress(enrollment_id, completed, progress):
                enrollment["progress"] = progress
                return enrollment

            # completed_lessons grew underneath us; recompute from the stored set
            enrollment = await self.db.enrollments.find_one({"enrollment_id": enrollment_id}, {"_id": 0})

        logger.warning("Progress write for enrollment %s kept losing to concurrent updates", enrollment_id)
        raise Conflict("Progress changed concurrently, please retry")

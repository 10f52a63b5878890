"""
Quiz gateway
Same counter discipline as lessons, plus answer hiding for learners
"""

import copy
import logging
from datetime import datetime
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import TypeAdapter, ValidationError as PydanticValidationError
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from learnhub.audit import log_audit
from learnhub.auth.identity import Principal
from learnhub.auth.policy import Decision, STUDENTS, authorize_role
from learnhub.courses.course_service import CourseGateway, QUIZ_COUNTER
from learnhub.courses.database import generate_id, pick_allowed, reject_nulls, serialize_many, serialize_mongo
from learnhub.courses.models import QuestionIn
from learnhub.errors import Forbidden, NotFound, ValidationError

logger = logging.getLogger("learnhub.quizzes")

QUIZ_UPDATE_FIELDS = ("title", "description", "lesson_id", "questions", "time_limit", "passing_score")
QUIZ_REQUIRED_FIELDS = ("title", "questions", "time_limit", "passing_score")

_questions_adapter = TypeAdapter(List[QuestionIn])


def strip_answers(quiz: dict) -> dict:
    """Copy of the quiz without any correct_answer_index"""
    visible = copy.deepcopy(quiz)
    for question in visible.get("questions") or []:
        question.pop("correct_answer_index", None)
    return visible


def normalize_questions(questions) -> List[dict]:
    try:
        return [q.model_dump() for q in _questions_adapter.validate_python(questions or [])]
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid questions: {e.errors()[0]['msg']}")


class QuizGateway:
    def __init__(self, db: AsyncIOMotorDatabase, courses: Optional[CourseGateway] = None):
        self.db = db
        self.courses = courses or CourseGateway(db)

    async def require(self, quiz_id: str) -> dict:
        quiz = await self.db.quizzes.find_one({"quiz_id": quiz_id}, {"_id": 0})
        if not quiz:
            raise NotFound("Quiz not found")
        return quiz

    async def _check_lesson(self, course_id: str, lesson_id: Optional[str]) -> None:
        if lesson_id is None:
            return
        lesson = await self.db.lessons.find_one({"lesson_id": lesson_id, "course_id": course_id})
        if not lesson:
            raise ValidationError("Lesson does not belong to this course")

    async def _is_enrolled(self, student_id: str, course_id: str) -> bool:
        enrollment = await self.db.enrollments.find_one({"student_id": student_id, "course_id": course_id})
        return enrollment is not None

    async def _require_learner(self, principal: Optional[Principal], course_id: str) -> None:
        """Non-managers must be students enrolled in the course"""
        if authorize_role(principal, STUDENTS) != Decision.ALLOW:
            raise Forbidden("Not authorized")
        if not await self._is_enrolled(principal.id, course_id):
            raise Forbidden("You are not enrolled in this course")

    # ==================== QUIZ CRUD ====================

    async def create(self, principal: Principal, course_id: str, data: dict) -> dict:
        await self.courses.require_owned(principal, course_id)

        lesson_id = data.get("lesson_id") or None
        await self._check_lesson(course_id, lesson_id)

        now = datetime.utcnow()
        quiz = {
            "quiz_id": generate_id("QUZ"),
            "course_id": course_id,
            "lesson_id": lesson_id,
            "title": data["title"],
            "description": data.get("description"),
            "questions": normalize_questions(data.get("questions")),
            "time_limit": data.get("time_limit") or 0,
            "passing_score": data.get("passing_score") or 0,
            "is_published": False,
            "created_at": now,
            "updated_at": now,
        }

        await self.db.quizzes.insert_one(quiz)

        try:
            applied = await self.courses.increment_counter(course_id, QUIZ_COUNTER)
        except PyMongoError:
            logger.warning("Counter update failed, removing quiz %s", quiz["quiz_id"])
            await self.db.quizzes.delete_one({"quiz_id": quiz["quiz_id"]})
            raise

        if not applied:
            await self.db.quizzes.delete_one({"quiz_id": quiz["quiz_id"]})
            raise NotFound("Course not found")

        return serialize_mongo(quiz)

    async def list_by_course(self, principal: Optional[Principal], course_id: str) -> List[dict]:
        course = await self.courses.require_visible(principal, course_id)

        # Teacher or Admin -> see all quizzes
        if self.courses.can_manage(principal, course):
            cursor = self.db.quizzes.find({"course_id": course_id})
            return serialize_many(await cursor.to_list(length=None))

        await self._require_learner(principal, course_id)
        cursor = self.db.quizzes.find({"course_id": course_id, "is_published": True})
        return [strip_answers(q) for q in serialize_many(await cursor.to_list(length=None))]

    async def get_by_id(self, principal: Optional[Principal], quiz_id: str) -> dict:
        quiz = await self.require(quiz_id)
        course = await self.courses.require_visible(principal, quiz["course_id"])

        if self.courses.can_manage(principal, course):
            return quiz

        await self._require_learner(principal, quiz["course_id"])
        if not quiz["is_published"]:
            raise NotFound("Quiz not found")
        return strip_answers(quiz)

    async def update(self, principal: Principal, quiz_id: str, changes: dict) -> dict:
        quiz = await self.require(quiz_id)
        await self.courses.require_owned(principal, quiz["course_id"])

        updates = reject_nulls(pick_allowed(changes, QUIZ_UPDATE_FIELDS), QUIZ_REQUIRED_FIELDS)
        if "questions" in updates:
            updates["questions"] = normalize_questions(updates["questions"])
        if "lesson_id" in updates:
            await self._check_lesson(quiz["course_id"], updates["lesson_id"])
        updates["updated_at"] = datetime.utcnow()

        updated = await self.db.quizzes.find_one_and_update(
            {"quiz_id": quiz_id},
            {"$set": updates},
            projection={"_id": 0},
            return_document=ReturnDocument.AFTER,
        )
        if not updated:
            raise NotFound("Quiz not found")
        return updated

    async def toggle_publish(self, principal: Principal, quiz_id: str) -> dict:
        quiz = await self.require(quiz_id)
        await self.courses.require_owned(principal, quiz["course_id"])

        published = not quiz["is_published"]
        await self.db.quizzes.update_one(
            {"quiz_id": quiz_id},
            {"$set": {"is_published": published, "updated_at": datetime.utcnow()}},
        )
        quiz["is_published"] = published
        await log_audit(
            self.db, principal, "publish_quiz" if published else "unpublish_quiz",
            "quiz", quiz_id,
        )
        return quiz

    async def delete(self, principal: Principal, quiz_id: str) -> None:
        quiz = await self.require(quiz_id)
        course_id = quiz["course_id"]
        await self.courses.require_owned(principal, course_id)

        result = await self.db.quizzes.delete_one({"quiz_id": quiz_id})
        if result.deleted_count == 0:
            raise NotFound("Quiz not found")

        try:
            await self.courses.decrement_counter(course_id, QUIZ_COUNTER)
        except PyMongoError:
            logger.warning("Counter update failed, restoring quiz %s", quiz_id)
            await self.db.quizzes.insert_one(quiz)
            raise

        await log_audit(self.db, principal, "delete_quiz", "quiz", quiz_id, {"course_id": course_id})
        logger.info("Quiz %s deleted from course %s", quiz_id, course_id)

"""
Enrollment gateway: one enrollment per (student, course), idempotent lesson
completion, progress recomputed from the course's lesson count.
"""
import asyncio

import pytest

from learnhub.courses.enrollment_service import EnrollmentGateway, compute_progress
from learnhub.errors import Conflict, Forbidden, InvalidState, NotFound

pytestmark = pytest.mark.anyio


class SlowFirstProgressWrite(EnrollmentGateway):
    """Holds the first progress write back so a second completion lands in between"""

    def __init__(self, db):
        super().__init__(db)
        self.writes = 0

    async def write_progress(self, enrollment_id, completed_count, progress):
        self.writes += 1
        if self.writes == 1:
            await asyncio.sleep(0.05)
        return await super().write_progress(enrollment_id, completed_count, progress)


class BlindEnrollmentGateway(EnrollmentGateway):
    """Skips the existing-enrollment lookup, leaving the unique index to reject duplicates"""

    async def find_existing(self, student_id, course_id):
        return None


@pytest.fixture
async def four_lessons(lessons, teacher, published_course):
    return [
        await lessons.create(teacher, published_course["course_id"], {"title": f"L{i}", "order": i})
        for i in range(1, 5)
    ]


async def test_progress_after_completing_one_of_four(enrollments, student, published_course, four_lessons):
    enrollment = await enrollments.enroll(student, published_course["course_id"])
    assert enrollment["enrollment_id"].startswith("ENR_")
    assert enrollment["progress"] == 0
    assert enrollment["completed_lessons"] == []

    first = four_lessons[0]["lesson_id"]
    result = await enrollments.complete_lesson(student, enrollment["enrollment_id"], first)
    assert result["progress"] == 25
    assert result["completed_lessons"] == [first]

    again = await enrollments.complete_lesson(student, enrollment["enrollment_id"], first)
    assert again["progress"] == 25
    assert again["completed_lessons"] == [first]


async def test_progress_is_stored(enrollments, student, published_course, four_lessons, db):
    enrollment = await enrollments.enroll(student, published_course["course_id"])
    for lesson in four_lessons[:2]:
        await enrollments.complete_lesson(student, enrollment["enrollment_id"], lesson["lesson_id"])

    stored = await db.enrollments.find_one({"enrollment_id": enrollment["enrollment_id"]})
    assert stored["progress"] == 50


async def test_second_enroll_conflicts(enrollments, student, published_course, db):
    await enrollments.enroll(student, published_course["course_id"])
    with pytest.raises(Conflict):
        await enrollments.enroll(student, published_course["course_id"])

    assert await db.enrollments.count_documents({"student_id": student.id}) == 1


async def test_enroll_requires_published_course(courses, enrollments, teacher, student):
    draft = await courses.create(teacher, {"title": "Draft"})
    with pytest.raises(InvalidState):
        await enrollments.enroll(student, draft["course_id"])
    with pytest.raises(InvalidState):
        await enrollments.enroll(student, "CRS_MISSING")


async def test_only_students_enroll(enrollments, teacher, admin, published_course):
    for principal in (teacher, admin):
        with pytest.raises(Forbidden) as exc:
            await enrollments.enroll(principal, published_course["course_id"])
        assert exc.value.message == "Only students can enroll"


async def test_cannot_complete_for_someone_else(enrollments, student, other_student, published_course, four_lessons):
    enrollment = await enrollments.enroll(student, published_course["course_id"])
    with pytest.raises(Forbidden):
        await enrollments.complete_lesson(other_student, enrollment["enrollment_id"], four_lessons[0]["lesson_id"])


async def test_lesson_from_other_course_rejected(courses, lessons, enrollments, teacher, student, published_course):
    other = await courses.create(teacher, {"title": "Other"})
    stray = await lessons.create(teacher, other["course_id"], {"title": "Stray"})
    enrollment = await enrollments.enroll(student, published_course["course_id"])

    with pytest.raises(NotFound):
        await enrollments.complete_lesson(student, enrollment["enrollment_id"], stray["lesson_id"])


async def test_unknown_enrollment(enrollments, student):
    with pytest.raises(NotFound):
        await enrollments.complete_lesson(student, "ENR_MISSING", "LSN_MISSING")


async def test_list_mine_includes_course_summary(enrollments, student, other_student, published_course):
    await enrollments.enroll(student, published_course["course_id"])
    await enrollments.enroll(other_student, published_course["course_id"])

    mine = await enrollments.list_mine(student)
    assert len(mine) == 1
    assert mine[0]["course"]["title"] == "Python Basics"
    assert mine[0]["course"]["teacher_id"] == "teacher"
    assert "_id" not in mine[0]


@pytest.mark.parametrize("completed,total,expected", [
    (0, 0, 0),
    (1, 4, 25),
    (4, 4, 100),
    (5, 4, 100),
    (1, 0, 100),
])
def test_compute_progress(completed, total, expected):
    assert compute_progress(completed, total) == expected


async def test_interleaved_completions_keep_latest_progress(db, student, published_course, four_lessons):
    enrollments = SlowFirstProgressWrite(db)
    enrollment = await enrollments.enroll(student, published_course["course_id"])
    first, second = (lesson["lesson_id"] for lesson in four_lessons[:2])

    await asyncio.gather(
        enrollments.complete_lesson(student, enrollment["enrollment_id"], first),
        enrollments.complete_lesson(student, enrollment["enrollment_id"], second),
    )

    stored = await db.enrollments.find_one({"enrollment_id": enrollment["enrollment_id"]})
    assert sorted(stored["completed_lessons"]) == sorted([first, second])
    assert stored["progress"] == 50


async def test_enroll_race_lost_to_unique_index(db, student, published_course):
    enrollments = BlindEnrollmentGateway(db)
    await enrollments.enroll(student, published_course["course_id"])

    with pytest.raises(Conflict) as exc:
        await enrollments.enroll(student, published_course["course_id"])
    assert exc.value.message == "Already enrolled in this course"
    assert await db.enrollments.count_documents({"student_id": student.id}) == 1


async def test_concurrent_enrolls_admit_one(db, student, published_course):
    enrollments = BlindEnrollmentGateway(db)
    results = await asyncio.gather(
        enrollments.enroll(student, published_course["course_id"]),
        enrollments.enroll(student, published_course["course_id"]),
        return_exceptions=True,
    )

    assert len([r for r in results if isinstance(r, dict)]) == 1
    assert len([r for r in results if isinstance(r, Conflict)]) == 1
    assert await db.enrollments.count_documents({"student_id": student.id}) == 1


async def test_progress_write_gives_up_after_repeated_misses(db, student, published_course, four_lessons):
    class AlwaysStale(EnrollmentGateway):
        async def write_progress(self, enrollment_id, completed_count, progress):
            return False

    enrollments = AlwaysStale(db)
    enrollment = await enrollments.enroll(student, published_course["course_id"])

    with pytest.raises(Conflict):
        await enrollments.complete_lesson(student, enrollment["enrollment_id"], four_lessons[0]["lesson_id"])

    stored = await db.enrollments.find_one({"enrollment_id": enrollment["enrollment_id"]})
    assert stored["completed_lessons"] == [four_lessons[0]["lesson_id"]]

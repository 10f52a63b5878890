"""
Quiz gateway: counters, question validation, and answer hiding for students.
"""
import pytest

from learnhub.courses.quiz_service import normalize_questions, strip_answers
from learnhub.errors import Forbidden, NotFound, ValidationError

pytestmark = pytest.mark.anyio

QUESTIONS = [
    {"question": "2 + 2?", "options": ["3", "4"], "correct_answer_index": 1},
    {"question": "Capital of France?", "options": ["Paris", "Rome", "Oslo"], "correct_answer_index": 0},
]


@pytest.fixture
async def quiz(quizzes, teacher, published_course):
    return await quizzes.create(teacher, published_course["course_id"], {"title": "Warmup", "questions": QUESTIONS})


async def test_create_increments_counter(courses, quiz, published_course):
    assert quiz["quiz_id"].startswith("QUZ_")
    assert quiz["is_published"] is False
    assert quiz["questions"][1]["correct_answer_index"] == 0
    assert (await courses.require(published_course["course_id"]))["total_quizzes"] == 1


async def test_answer_index_outside_options_rejected(courses, quizzes, teacher, published_course, db):
    bad = [{"question": "?", "options": ["a", "b"], "correct_answer_index": 2}]
    with pytest.raises(ValidationError):
        await quizzes.create(teacher, published_course["course_id"], {"title": "Bad", "questions": bad})

    assert await db.quizzes.count_documents({}) == 0
    assert (await courses.require(published_course["course_id"]))["total_quizzes"] == 0


async def test_lesson_must_belong_to_course(courses, lessons, quizzes, teacher, published_course):
    other = await courses.create(teacher, {"title": "Other"})
    foreign_lesson = await lessons.create(teacher, other["course_id"], {"title": "Elsewhere"})

    with pytest.raises(ValidationError) as exc:
        await quizzes.create(
            teacher, published_course["course_id"], {"title": "Q", "lesson_id": foreign_lesson["lesson_id"]}
        )
    assert exc.value.message == "Lesson does not belong to this course"


async def test_quiz_attached_to_own_lesson(lessons, quizzes, teacher, published_course):
    lesson = await lessons.create(teacher, published_course["course_id"], {"title": "Here"})
    quiz = await quizzes.create(
        teacher, published_course["course_id"], {"title": "Q", "lesson_id": lesson["lesson_id"]}
    )
    assert quiz["lesson_id"] == lesson["lesson_id"]


async def test_other_teacher_cannot_create(quizzes, other_teacher, published_course):
    with pytest.raises(Forbidden):
        await quizzes.create(other_teacher, published_course["course_id"], {"title": "Nope"})


async def test_enrolled_student_never_sees_answers(quizzes, enrollments, teacher, student, quiz, published_course):
    await enrollments.enroll(student, published_course["course_id"])
    await quizzes.toggle_publish(teacher, quiz["quiz_id"])

    seen = await quizzes.get_by_id(student, quiz["quiz_id"])
    assert all("correct_answer_index" not in q for q in seen["questions"])
    assert seen["questions"][0]["options"] == ["3", "4"]

    listed = await quizzes.list_by_course(student, published_course["course_id"])
    assert len(listed) == 1
    assert all("correct_answer_index" not in q for q in listed[0]["questions"])


async def test_owner_sees_answers(quizzes, teacher, quiz):
    seen = await quizzes.get_by_id(teacher, quiz["quiz_id"])
    assert seen["questions"][0]["correct_answer_index"] == 1


async def test_student_not_enrolled_is_forbidden(quizzes, student, quiz, published_course):
    with pytest.raises(Forbidden) as exc:
        await quizzes.get_by_id(student, quiz["quiz_id"])
    assert exc.value.message == "You are not enrolled in this course"

    with pytest.raises(Forbidden):
        await quizzes.list_by_course(student, published_course["course_id"])


async def test_unpublished_quiz_hidden_from_enrolled_student(quizzes, enrollments, student, quiz, published_course):
    await enrollments.enroll(student, published_course["course_id"])

    with pytest.raises(NotFound):
        await quizzes.get_by_id(student, quiz["quiz_id"])
    assert await quizzes.list_by_course(student, published_course["course_id"]) == []


async def test_other_teacher_cannot_read_quizzes(quizzes, other_teacher, quiz):
    with pytest.raises(Forbidden):
        await quizzes.get_by_id(other_teacher, quiz["quiz_id"])


async def test_update_uses_allow_list(quizzes, teacher, quiz, published_course):
    updated = await quizzes.update(teacher, quiz["quiz_id"], {
        "title": "Renamed",
        "course_id": "CRS_OTHER",
        "is_published": True,
        "passing_score": 50,
    })
    assert updated["title"] == "Renamed"
    assert updated["passing_score"] == 50
    assert updated["course_id"] == published_course["course_id"]
    assert updated["is_published"] is False


async def test_update_revalidates_questions(quizzes, teacher, quiz):
    with pytest.raises(ValidationError):
        await quizzes.update(teacher, quiz["quiz_id"], {"questions": [{"question": "?", "options": ["only"]}]})


async def test_delete_decrements_counter(courses, quizzes, teacher, quiz, published_course):
    await quizzes.delete(teacher, quiz["quiz_id"])
    assert (await courses.require(published_course["course_id"]))["total_quizzes"] == 0

    with pytest.raises(NotFound):
        await quizzes.delete(teacher, quiz["quiz_id"])
    assert (await courses.require(published_course["course_id"]))["total_quizzes"] == 0


def test_strip_answers_leaves_original_untouched():
    quiz = {"quiz_id": "QUZ_1", "questions": [dict(q) for q in QUESTIONS]}
    visible = strip_answers(quiz)

    assert "correct_answer_index" not in visible["questions"][0]
    assert quiz["questions"][0]["correct_answer_index"] == 1


def test_normalize_questions_accepts_empty():
    assert normalize_questions(None) == []
    assert normalize_questions(QUESTIONS)[0]["options"] == ["3", "4"]


async def test_update_refuses_null_for_required_fields(quizzes, teacher, quiz):
    for field in ("title", "questions", "time_limit", "passing_score"):
        with pytest.raises(ValidationError) as exc:
            await quizzes.update(teacher, quiz["quiz_id"], {field: None})
        assert exc.value.message == f"{field} cannot be null"

    stored = await quizzes.get_by_id(teacher, quiz["quiz_id"])
    assert stored["title"] == "Warmup"
    assert len(stored["questions"]) == 2


async def test_update_null_lesson_detaches(lessons, quizzes, teacher, published_course):
    lesson = await lessons.create(teacher, published_course["course_id"], {"title": "Here"})
    quiz = await quizzes.create(
        teacher, published_course["course_id"], {"title": "Q", "lesson_id": lesson["lesson_id"]}
    )

    updated = await quizzes.update(teacher, quiz["quiz_id"], {"lesson_id": None})
    assert updated["lesson_id"] is None

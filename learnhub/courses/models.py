from pydantic import BaseModel, Field, field_validator, model_validator
from typing import List, Optional

# ==================== COURSE MODELS ====================

class CourseCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=120)
    description: Optional[str] = Field(None, max_length=2000)
    category: Optional[str] = None
    level: Optional[str] = None
    thumbnail: Optional[str] = None
    tags: List[str] = []

    @field_validator("title", "description", "category")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v


class CourseUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=120)
    description: Optional[str] = Field(None, max_length=2000)
    category: Optional[str] = None
    level: Optional[str] = None
    tags: Optional[List[str]] = None

    @field_validator("title", "tags")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("may be omitted but not null")
        return v

# ==================== LESSON MODELS ====================

class LessonResource(BaseModel):
    title: str
    url: str


class LessonCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=150)
    content: Optional[str] = None
    video_url: Optional[str] = None
    duration: int = Field(0, ge=0)  # minutes
    order: int = 0
    resources: List[LessonResource] = []


class LessonUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=150)
    content: Optional[str] = None
    video_url: Optional[str] = None
    duration: Optional[int] = Field(None, ge=0)
    order: Optional[int] = None
    resources: Optional[List[LessonResource]] = None

    @field_validator("title", "duration", "order", "resources")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("may be omitted but not null")
        return v

# ==================== QUIZ MODELS ====================

class QuestionIn(BaseModel):
    question: str = Field(..., min_length=1)
    options: List[str] = Field(..., min_length=2)
    correct_answer_index: int = Field(..., ge=0)

    @model_validator(mode="after")
    def answer_within_options(self):
        if self.correct_answer_index >= len(self.options):
            raise ValueError("correct_answer_index must point to one of the options")
        return self


class QuizCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=150)
    description: Optional[str] = None
    lesson_id: Optional[str] = None
    questions: List[QuestionIn] = []
    time_limit: int = Field(0, ge=0)  # minutes
    passing_score: int = Field(0, ge=0)


class QuizUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=150)
    description: Optional[str] = None
    lesson_id: Optional[str] = None
    questions: Optional[List[QuestionIn]] = None
    time_limit: Optional[int] = Field(None, ge=0)
    passing_score: Optional[int] = Field(None, ge=0)

    # lesson_id: null detaches the quiz from its lesson
    @field_validator("title", "questions", "time_limit", "passing_score")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("may be omitted but not null")
        return v

# ==================== ENROLLMENT MODELS ====================

class CompleteLessonRequest(BaseModel):
    lesson_id: str

"""
Record and view models for the exam session engine.

Records mirror the store rows (exams, questions, exam_sessions, exam_results)
and round-trip through ``model_dump(mode="json")`` / ``model_validate(row)``.
Views are what the engine hands back to its callers.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


class Question(BaseModel):
    """Catalog question. Read-only to the engine."""

    id: str
    question: str = Field(..., min_length=1)
    options: List[str]
    correct_option: int = Field(..., ge=0)
    category: str = ""
    difficulty: Literal["easy", "medium", "hard"] = "medium"

    @field_validator("options")
    @classmethod
    def validate_options_length(cls, v: List[str]) -> List[str]:
        if len(v) < 2:
            raise ValueError("a question needs at least 2 options")
        return v

    @model_validator(mode="after")
    def validate_correct_option(self) -> "Question":
        if self.correct_option >= len(self.options):
            raise ValueError(
                f"correct_option {self.correct_option} out of range for {len(self.options)} options"
            )
        return self


class Exam(BaseModel):
    """Catalog exam. ``passing_score`` is a percentage threshold; None means use the configured default."""

    id: str
    title: str
    description: str = ""
    duration_minutes: int = Field(..., gt=0)
    total_questions: int = Field(0, ge=0)
    passing_score: Optional[int] = Field(None, ge=0, le=100)
    is_active: bool = True

    @property
    def budget_seconds(self) -> int:
        return self.duration_minutes * 60


class ExamSession(BaseModel):
    """
    One user's attempt at one exam.

    ``questions`` is frozen at creation; ``answers`` maps question id to the
    selected option index and never holds an id outside ``questions``.
    """

    id: str = Field(default_factory=new_id)
    exam_id: str
    user_id: str
    questions: List[Question]
    answers: Dict[str, int] = Field(default_factory=dict)
    started_at: datetime = Field(default_factory=utcnow)
    submitted_at: Optional[datetime] = None
    score: Optional[int] = Field(None, ge=0, le=100)
    is_completed: bool = False

    @model_validator(mode="after")
    def validate_answer_keys(self) -> "ExamSession":
        known = self.question_ids
        stray = [qid for qid in self.answers if qid not in known]
        if stray:
            raise ValueError(f"answers reference questions outside the attempt: {stray}")
        return self

    @property
    def question_ids(self) -> set:
        return {q.id for q in self.questions}

    def find_question(self, question_id: str) -> Optional[Question]:
        return next((q for q in self.questions if q.id == question_id), None)


class ExamResult(BaseModel):
    """Outcome of a completed attempt. Written once, never updated."""

    id: str = Field(default_factory=new_id)
    exam_session_id: str
    user_id: str
    exam_id: str
    score: int = Field(..., ge=0, le=100)
    total_questions: int = Field(..., gt=0)
    correct_answers: int = Field(..., ge=0)
    time_taken_minutes: int = Field(..., ge=0)
    passed: bool
    created_at: datetime = Field(default_factory=utcnow)


class AttemptState(str, Enum):
    CREATED = "created"
    ACTIVE = "active"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"


class QuestionView(BaseModel):
    """A question as shown during an attempt (no answer key)."""

    id: str
    question: str
    options: List[str]
    category: str = ""
    difficulty: str = "medium"

    @classmethod
    def from_question(cls, q: Question) -> "QuestionView":
        return cls(id=q.id, question=q.question, options=q.options, category=q.category, difficulty=q.difficulty)


class AttemptView(BaseModel):
    session_id: str
    exam_id: str
    user_id: str
    state: AttemptState
    resumed: bool
    remaining_seconds: int
    budget_seconds: int
    answers: Dict[str, int]
    questions: List[QuestionView]
    low_time: bool = False

    @property
    def answered_count(self) -> int:
        return len(self.answers)

    @property
    def unanswered_count(self) -> int:
        return len(self.questions) - len(self.answers)

    @property
    def expired(self) -> bool:
        return self.remaining_seconds <= 0


class SubmissionOutcome(BaseModel):
    session_id: str
    auto_submit: bool
    created: bool  # False when a previous or racing submission already produced the result
    message: str
    result: ExamResult


class QuestionReview(BaseModel):
    index: int
    question_id: str
    question: str
    your_answer: Optional[str]
    correct_answer: str
    is_correct: bool


class ResultView(BaseModel):
    result: ExamResult
    exam_title: str
    exam_description: str = ""
    passing_score: int
    questions: List[QuestionReview]
    category_breakdown: Dict[str, Dict[str, int]]

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Boolean, CheckConstraint, Column, DateTime, Float, ForeignKey, Index, Integer, JSON,
    String, Table, Text, UniqueConstraint, func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase): pass


class AssessmentType(str, enum.Enum):
    QUIZ = "quiz"
    TEST = "test"
    EXAM = "exam"
    ASSIGNMENT = "assignment"
    PROJECT = "project"
    ESSAY = "essay"
    PRESENTATION = "presentation"
    OTHER = "other"


class AssessmentStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ACTIVE = "active"
    ENDED = "ended"
    ARCHIVED = "archived"


class QuestionType(str, enum.Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    SHORT_ANSWER = "short_answer"
    ESSAY = "essay"
    MATCHING = "matching"
    FILL_BLANK = "fill_blank"


class Difficulty(str, enum.Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class SubmissionStatus(str, enum.Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    GRADED = "graded"


class ParticipantKind(str, enum.Enum):
    CHILD = "child"
    CLIENT = "client"


FINISHED_STATUSES = (SubmissionStatus.COMPLETED.value, SubmissionStatus.GRADED.value)

DEFAULT_ASSESSMENT_SETTINGS: Dict[str, Any] = {
    "shuffle_questions": False,
    "show_correct_answers": True,
    "allow_retakes": False,
    "max_retakes": 1,
}


@dataclass(frozen=True)
class ParticipantRef:
    """A submission belongs to exactly one child or one client profile."""
    kind: str
    id: int

    @property
    def label(self) -> str:
        return "student" if self.kind == ParticipantKind.CHILD.value else "client"


# ========== Directory Models ==========

class Course(Base):
    __tablename__ = "courses"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255))
    teacher_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)


class Subject(Base):
    __tablename__ = "subjects"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255))
    slug: Mapped[str] = mapped_column(String(255), unique=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class Material(Base):
    __tablename__ = "materials"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255))
    type: Mapped[str] = mapped_column(String(50), default="document")
    teacher_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    external_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)


class Child(Base):
    __tablename__ = "children"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255))
    parent_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)


class ClientProfile(Base):
    __tablename__ = "client_profiles"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    contact_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)

    @property
    def display_name(self) -> Optional[str]:
        return self.company_name or self.contact_name


# ========== Assessment Models ==========

assessment_materials = Table(
    "assessment_materials",
    Base.metadata,
    Column("assessment_id", ForeignKey("assessments.id", ondelete="CASCADE"), primary_key=True),
    Column("material_id", ForeignKey("materials.id", ondelete="CASCADE"), primary_key=True),
)


class Assessment(Base):
    __tablename__ = "assessments"
    __table_args__ = (
        Index("idx_assessments_teacher", "teacher_id"),
        CheckConstraint("total_points > 0", name="ck_assessment_total_points"),
        CheckConstraint(
            "passing_points IS NULL OR passing_points <= total_points",
            name="ck_assessment_passing_points",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    instructions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String(30), default=AssessmentType.QUIZ.value)
    teacher_id: Mapped[str] = mapped_column(String(255))
    course_id: Mapped[Optional[int]] = mapped_column(ForeignKey("courses.id", ondelete="SET NULL"), nullable=True)
    subject_id: Mapped[Optional[int]] = mapped_column(ForeignKey("subjects.id", ondelete="SET NULL"), nullable=True)
    total_points: Mapped[int] = mapped_column(Integer, default=100)
    passing_points: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    time_limit: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    start_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    is_published: Mapped[bool] = mapped_column(Boolean, default=False)
    archived: Mapped[bool] = mapped_column(Boolean, default=False)
    settings: Mapped[Dict[str, Any]] = mapped_column(JSON, default=lambda: dict(DEFAULT_ASSESSMENT_SETTINGS))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=func.now(), onupdate=func.now())

    course: Mapped[Optional[Course]] = relationship()
    subject: Mapped[Optional[Subject]] = relationship()
    questions: Mapped[List["Question"]] = relationship(
        back_populates="assessment", cascade="all, delete-orphan", order_by="Question.order"
    )
    submissions: Mapped[List["Submission"]] = relationship(
        back_populates="assessment", cascade="all, delete-orphan", order_by="Submission.id"
    )
    materials: Mapped[List[Material]] = relationship(secondary=assessment_materials)

    def setting(self, key: str) -> Any:
        return (self.settings or {}).get(key, DEFAULT_ASSESSMENT_SETTINGS.get(key))

    def __repr__(self) -> str:
        return f"<Assessment(id={self.id}, title={self.title!r})>"


class Question(Base):
    __tablename__ = "assessment_questions"
    __table_args__ = (
        Index("idx_aq_assessment", "assessment_id"),
        CheckConstraint("points >= 1", name="ck_question_points"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    assessment_id: Mapped[int] = mapped_column(ForeignKey("assessments.id", ondelete="CASCADE"))
    question: Mapped[str] = mapped_column(Text)
    type: Mapped[str] = mapped_column(String(30))
    options: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True)
    correct_answer: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    points: Mapped[int] = mapped_column(Integer, default=1)
    difficulty: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    order: Mapped[int] = mapped_column(Integer, default=0)
    extra: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())

    assessment: Mapped[Assessment] = relationship(back_populates="questions")

    def __repr__(self) -> str:
        return f"<Question(id={self.id}, type={self.type}, order={self.order})>"


class Submission(Base):
    __tablename__ = "assessment_submissions"
    __table_args__ = (
        Index("idx_as_assessment", "assessment_id"),
        Index("idx_as_participant", "participant_kind", "participant_id"),
        UniqueConstraint(
            "assessment_id", "participant_kind", "participant_id", "attempt",
            name="uq_submission_attempt",
        ),
        CheckConstraint("participant_kind IN ('child', 'client')", name="ck_submission_participant"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    assessment_id: Mapped[int] = mapped_column(ForeignKey("assessments.id", ondelete="CASCADE"))
    participant_kind: Mapped[str] = mapped_column(String(10))
    participant_id: Mapped[int] = mapped_column(Integer)
    attempt: Mapped[int] = mapped_column(Integer, default=1)
    status: Mapped[str] = mapped_column(String(20), default=SubmissionStatus.NOT_STARTED.value)
    start_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    answers: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    auto_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    manual_scores: Mapped[Dict[str, float]] = mapped_column(JSON, default=dict)
    score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    feedback: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    graded_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    graded_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())

    assessment: Mapped[Assessment] = relationship(back_populates="submissions")

    @property
    def participant(self) -> ParticipantRef:
        return ParticipantRef(self.participant_kind, self.participant_id)

    @participant.setter
    def participant(self, ref: ParticipantRef) -> None:
        self.participant_kind = ref.kind
        self.participant_id = ref.id

    @property
    def is_finished(self) -> bool:
        return self.status in FINISHED_STATUSES

    def answer_for(self, question_id: int) -> Any:
        return (self.answers or {}).get(str(question_id))

    def has_answer(self, question_id: int) -> bool:
        return str(question_id) in (self.answers or {})

    def __repr__(self) -> str:
        return f"<Submission(id={self.id}, status={self.status}, participant={self.participant_kind}:{self.participant_id})>"

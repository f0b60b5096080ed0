from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, constr

from tutorhub.models.orm import AssessmentStatus, AssessmentType, Difficulty, ParticipantKind, QuestionType, SubmissionStatus

AnswerValue = Union[bool, str]


class AssessmentSettings(BaseModel):
    shuffle_questions: bool = False
    show_correct_answers: bool = True
    allow_retakes: bool = False
    max_retakes: int = Field(default=1, ge=1)


class AssessmentSpec(BaseModel):
    title: constr(min_length=1, max_length=255)
    description: Optional[str] = None
    instructions: Optional[str] = None
    type: AssessmentType = AssessmentType.QUIZ
    course_id: Optional[int] = None
    subject_id: Optional[int] = None
    total_points: int = Field(default=100, ge=1)
    passing_points: Optional[int] = Field(default=None, ge=0)
    time_limit: Optional[int] = Field(default=None, ge=1)
    start_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    settings: AssessmentSettings = Field(default_factory=AssessmentSettings)
    material_ids: List[int] = Field(default_factory=list)


class AssessmentUpdate(BaseModel):
    title: Optional[constr(min_length=1, max_length=255)] = None
    description: Optional[str] = None
    instructions: Optional[str] = None
    type: Optional[AssessmentType] = None
    course_id: Optional[int] = None
    subject_id: Optional[int] = None
    total_points: Optional[int] = Field(default=None, ge=1)
    passing_points: Optional[int] = Field(default=None, ge=0)
    time_limit: Optional[int] = Field(default=None, ge=1)
    start_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    settings: Optional[AssessmentSettings] = None
    material_ids: Optional[List[int]] = None


class QuestionSpec(BaseModel):
    question: constr(min_length=1)
    type: QuestionType
    options: Optional[List[str]] = None
    correct_answer: Optional[AnswerValue] = None
    points: int = Field(default=1, ge=1)
    difficulty: Optional[Difficulty] = None
    extra: Dict[str, Any] = Field(default_factory=dict)


class QuestionUpdate(BaseModel):
    question: Optional[constr(min_length=1)] = None
    type: Optional[QuestionType] = None
    options: Optional[List[str]] = None
    correct_answer: Optional[AnswerValue] = None
    points: Optional[int] = Field(default=None, ge=1)
    difficulty: Optional[Difficulty] = None
    extra: Optional[Dict[str, Any]] = None


class AssessmentFilters(BaseModel):
    search: Optional[str] = None
    type: Optional[AssessmentType] = None
    course_id: Optional[int] = None
    subject_id: Optional[int] = None
    status: Optional[AssessmentStatus] = None
    participant: Optional[Literal["children", "clients"]] = None
    sort_field: Literal["created_at", "title", "type", "total_points", "start_date", "due_date"] = "created_at"
    sort_direction: Literal["asc", "desc"] = "desc"
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=10, ge=1, le=200)


class QuestionBankFilters(BaseModel):
    search: Optional[str] = None
    type: Optional[QuestionType] = None
    subject_id: Optional[int] = None
    difficulty: Optional[Difficulty] = None
    sort_field: Literal["created_at", "type", "points", "difficulty"] = "created_at"
    sort_direction: Literal["asc", "desc"] = "desc"
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=10, ge=1, le=200)


class SubmissionFilters(BaseModel):
    status: Optional[SubmissionStatus] = None
    participant: Optional[ParticipantKind] = None
    search: Optional[str] = None


class ParticipantSubmissionFilters(BaseModel):
    status: Optional[SubmissionStatus] = None
    type: Optional[AssessmentType] = None


class ReportFilters(BaseModel):
    timeframe: Literal["all", "last7days", "last30days", "last3months", "last6months", "thisyear"] = "all"
    course_id: Optional[int] = None
    subject_id: Optional[int] = None
    type: Optional[AssessmentType] = None
    participant: Optional[Literal["children", "clients"]] = None
    show_all_assessments: bool = False

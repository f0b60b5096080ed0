"""
Filter layer: dashboard filter state translated into SQLAlchemy statements
(assessments, question bank, report scope) and in-memory submission filters.

The assessment status filter mirrors lifecycle.derive_status as date
predicates so listing and derived status always agree for the same `now`.
"""
import calendar
from datetime import datetime, timedelta
from typing import Iterable, List, Mapping, Optional

from sqlalchemy import String, and_, cast, false, or_, select, true
from sqlalchemy.sql import Select

from tutorhub.models.orm import (
    Assessment, AssessmentStatus, ParticipantKind, ParticipantRef, Question, Submission,
)
from tutorhub.models.schemas import (
    AssessmentFilters, ParticipantSubmissionFilters, QuestionBankFilters, ReportFilters, SubmissionFilters,
)
from tutorhub.services.analytics import participant_name

PARTICIPANT_FILTERS = {
    "children": ParticipantKind.CHILD.value,
    "clients": ParticipantKind.CLIENT.value,
}


def _like(term: str) -> str:
    return f"%{term.strip()}%"


def status_predicate(status: AssessmentStatus, now: datetime):
    live = and_(Assessment.archived == false(), Assessment.is_published == true())
    not_ended = or_(Assessment.due_date.is_(None), Assessment.due_date >= now)
    if status == AssessmentStatus.ARCHIVED:
        return Assessment.archived == true()
    if status == AssessmentStatus.DRAFT:
        return and_(Assessment.archived == false(), Assessment.is_published == false())
    if status == AssessmentStatus.ENDED:
        return and_(live, Assessment.due_date.is_not(None), Assessment.due_date < now)
    if status == AssessmentStatus.ACTIVE:
        return and_(live, not_ended, Assessment.start_date.is_not(None), Assessment.start_date <= now)
    return and_(live, not_ended, or_(Assessment.start_date.is_(None), Assessment.start_date > now))


def participant_predicate(participant: str):
    kind = PARTICIPANT_FILTERS[participant]
    return Assessment.submissions.any(Submission.participant_kind == kind)


def assessment_query(teacher_id: str, filters: AssessmentFilters, now: datetime) -> Select:
    stmt = select(Assessment).where(Assessment.teacher_id == teacher_id)
    if filters.search and filters.search.strip():
        term = _like(filters.search)
        stmt = stmt.where(or_(Assessment.title.ilike(term), Assessment.description.ilike(term)))
    if filters.type:
        stmt = stmt.where(Assessment.type == filters.type.value)
    if filters.course_id:
        stmt = stmt.where(Assessment.course_id == filters.course_id)
    if filters.subject_id:
        stmt = stmt.where(Assessment.subject_id == filters.subject_id)
    if filters.status:
        stmt = stmt.where(status_predicate(filters.status, now))
    if filters.participant:
        stmt = stmt.where(participant_predicate(filters.participant))
    column = getattr(Assessment, filters.sort_field)
    order = column.asc() if filters.sort_direction == "asc" else column.desc()
    return stmt.order_by(order, Assessment.id.asc())


def question_bank_query(teacher_id: str, filters: QuestionBankFilters) -> Select:
    stmt = select(Question).join(Assessment, Question.assessment_id == Assessment.id).where(
        Assessment.teacher_id == teacher_id
    )
    if filters.search and filters.search.strip():
        term = _like(filters.search)
        stmt = stmt.where(or_(Question.question.ilike(term), cast(Question.correct_answer, String).ilike(term)))
    if filters.type:
        stmt = stmt.where(Question.type == filters.type.value)
    if filters.subject_id:
        stmt = stmt.where(Assessment.subject_id == filters.subject_id)
    if filters.difficulty:
        stmt = stmt.where(Question.difficulty == filters.difficulty.value)
    column = getattr(Question, filters.sort_field)
    order = column.asc() if filters.sort_direction == "asc" else column.desc()
    return stmt.order_by(order, Question.id.asc())


def _months_ago(now: datetime, months: int) -> datetime:
    month_index = now.month - 1 - months
    year = now.year + month_index // 12
    month = month_index % 12 + 1
    day = min(now.day, calendar.monthrange(year, month)[1])
    return now.replace(year=year, month=month, day=day)


def timeframe_start(timeframe: str, now: datetime) -> Optional[datetime]:
    if timeframe == "last7days":
        return now - timedelta(days=7)
    if timeframe == "last30days":
        return now - timedelta(days=30)
    if timeframe == "last3months":
        return _months_ago(now, 3)
    if timeframe == "last6months":
        return _months_ago(now, 6)
    if timeframe == "thisyear":
        return datetime(now.year, 1, 1)
    return None


def report_query(teacher_id: str, filters: ReportFilters, now: datetime) -> Select:
    """Assessments in scope for the teacher report, newest first."""
    stmt = select(Assessment).where(Assessment.teacher_id == teacher_id)
    start = timeframe_start(filters.timeframe, now)
    if start is not None:
        stmt = stmt.where(Assessment.submissions.any(Submission.end_time >= start))
    if filters.course_id:
        stmt = stmt.where(Assessment.course_id == filters.course_id)
    if filters.subject_id:
        stmt = stmt.where(Assessment.subject_id == filters.subject_id)
    if filters.type:
        stmt = stmt.where(Assessment.type == filters.type.value)
    if filters.participant:
        stmt = stmt.where(participant_predicate(filters.participant))
    return stmt.order_by(Assessment.created_at.desc(), Assessment.id.desc())


def participant_submissions_query(participant: ParticipantRef, filters: ParticipantSubmissionFilters) -> Select:
    """Every attempt of one child or client across assessments, newest first."""
    stmt = (
        select(Submission)
        .join(Assessment, Submission.assessment_id == Assessment.id)
        .where(
            Submission.participant_kind == participant.kind,
            Submission.participant_id == participant.id,
        )
    )
    if filters.status:
        stmt = stmt.where(Submission.status == filters.status.value)
    if filters.type:
        stmt = stmt.where(Assessment.type == filters.type.value)
    return stmt.order_by(Submission.created_at.desc(), Submission.id.desc())


def filter_submissions(
    submissions: Iterable,
    filters: Optional[SubmissionFilters],
    names: Optional[Mapping[ParticipantRef, str]] = None,
) -> List:
    rows = list(submissions)
    if filters is None:
        return rows
    if filters.status:
        rows = [s for s in rows if s.status == filters.status.value]
    if filters.participant:
        rows = [s for s in rows if s.participant_kind == filters.participant.value]
    if filters.search and filters.search.strip():
        needle = filters.search.strip().lower()
        rows = [s for s in rows if needle in participant_name(s.participant, names).lower()]
    return rows

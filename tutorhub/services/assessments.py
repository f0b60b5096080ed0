"""
Assessment lifecycle operations.

Each operation validates first, mutates inside one transaction and never
retries. Status is derived on read (see lifecycle.derive_status); the
operations here only flip is_published, archived and the schedule dates.
"""
import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from tutorhub.core.clock import Clock, to_utc_naive, utcnow
from tutorhub.core.config import settings
from tutorhub.core.database import atomic
from tutorhub.core.errors import InvalidStateTransition, ValidationError
from tutorhub.models.orm import DEFAULT_ASSESSMENT_SETTINGS, Assessment, Question
from tutorhub.models.schemas import AssessmentFilters, AssessmentSpec, AssessmentUpdate
from tutorhub.services import filters as query_filters
from tutorhub.services.lifecycle import assessment_status, validate_points, validate_window
from tutorhub.services.lookups import get_assessment, get_materials

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("title", "type", "total_points")


def _enum_value(value):
    return getattr(value, "value", value)


def _ensure_not_archived(a: Assessment, action: str) -> None:
    if a.archived:
        raise InvalidStateTransition(f"Cannot {action} an archived assessment", assessment_id=a.id)


def _ensure_publishable(db: Session, a: Assessment, require_questions: Optional[bool]) -> None:
    if not (a.title or "").strip():
        raise ValidationError("An assessment needs a title before it can be published", assessment_id=a.id)
    validate_points(a.total_points, a.passing_points)
    if require_questions is None:
        require_questions = settings.REQUIRE_QUESTIONS_TO_PUBLISH
    if require_questions:
        count = db.scalar(select(func.count(Question.id)).where(Question.assessment_id == a.id))
        if not count:
            raise InvalidStateTransition("Cannot publish an assessment without questions", assessment_id=a.id)


def create_assessment(db: Session, spec: AssessmentSpec, actor: str, clock: Clock = utcnow) -> Assessment:
    start_date, due_date = to_utc_naive(spec.start_date), to_utc_naive(spec.due_date)
    validate_points(spec.total_points, spec.passing_points)
    validate_window(start_date, due_date)
    materials = get_materials(db, spec.material_ids)
    now = clock()
    a = Assessment(
        title=spec.title.strip(),
        description=spec.description,
        instructions=spec.instructions,
        type=_enum_value(spec.type),
        teacher_id=actor,
        course_id=spec.course_id,
        subject_id=spec.subject_id,
        total_points=spec.total_points,
        passing_points=spec.passing_points,
        time_limit=spec.time_limit,
        start_date=start_date,
        due_date=due_date,
        is_published=False,
        archived=False,
        settings={**DEFAULT_ASSESSMENT_SETTINGS, **spec.settings.model_dump()},
        created_at=now,
        updated_at=now,
    )
    a.materials = materials
    with atomic(db):
        db.add(a)
    db.refresh(a)
    logger.info(f"Assessment {a.id} created by {actor}")
    return a


def update_assessment(db: Session, assessment_id: int, changes: AssessmentUpdate, clock: Clock = utcnow) -> Assessment:
    a = get_assessment(db, assessment_id)
    _ensure_not_archived(a, "update")
    data = changes.model_dump(exclude_unset=True)
    for key in REQUIRED_FIELDS:
        if key in data and data[key] is None:
            raise ValidationError(f"{key} cannot be cleared", field=key)
    for key in ("start_date", "due_date"):
        if key in data:
            data[key] = to_utc_naive(data[key])

    total = data.get("total_points", a.total_points)
    passing = data["passing_points"] if "passing_points" in data else a.passing_points
    validate_points(total, passing)
    validate_window(data.get("start_date", a.start_date), data.get("due_date", a.due_date))
    material_ids = data.pop("material_ids", None)
    materials = get_materials(db, material_ids) if material_ids is not None else None
    new_settings = data.pop("settings", None)

    with atomic(db):
        for key, value in data.items():
            setattr(a, key, _enum_value(value))
        if "title" in data:
            a.title = a.title.strip()
        if new_settings is not None:
            a.settings = {**DEFAULT_ASSESSMENT_SETTINGS, **(a.settings or {}), **new_settings}
        if materials is not None:
            a.materials = materials
        a.updated_at = clock()
    db.refresh(a)
    logger.info(f"Assessment {a.id} updated: {sorted(changes.model_dump(exclude_unset=True))}")
    return a


def delete_assessment(db: Session, assessment_id: int) -> None:
    a = get_assessment(db, assessment_id)
    with atomic(db):
        db.delete(a)
    logger.info(f"Assessment {assessment_id} deleted with its questions and submissions")


def duplicate_assessment(db: Session, assessment_id: int, actor: Optional[str] = None, clock: Clock = utcnow) -> Assessment:
    src = get_assessment(db, assessment_id)
    now = clock()
    copy = Assessment(
        title=f"Copy of {src.title}",
        description=src.description,
        instructions=src.instructions,
        type=src.type,
        teacher_id=actor or src.teacher_id,
        course_id=src.course_id,
        subject_id=src.subject_id,
        total_points=src.total_points,
        passing_points=src.passing_points,
        time_limit=src.time_limit,
        start_date=src.start_date,
        due_date=src.due_date,
        is_published=False,
        archived=False,
        settings=dict(src.settings or DEFAULT_ASSESSMENT_SETTINGS),
        created_at=now,
        updated_at=now,
    )
    copy.materials = list(src.materials)
    copy.questions = [
        Question(
            question=q.question,
            type=q.type,
            options=list(q.options) if q.options is not None else None,
            correct_answer=q.correct_answer,
            points=q.points,
            difficulty=q.difficulty,
            order=q.order,
            extra=dict(q.extra or {}),
            created_at=now,
        )
        for q in src.questions
    ]
    with atomic(db):
        db.add(copy)
    db.refresh(copy)
    logger.info(f"Assessment {src.id} duplicated as {copy.id}")
    return copy


def publish(db: Session, assessment_id: int, clock: Clock = utcnow, require_questions: Optional[bool] = None) -> Assessment:
    a = get_assessment(db, assessment_id)
    _ensure_not_archived(a, "publish")
    if a.is_published:
        return a
    _ensure_publishable(db, a, require_questions)
    with atomic(db):
        a.is_published = True
        a.updated_at = clock()
    logger.info(f"Assessment {a.id} published")
    return a


def unpublish(db: Session, assessment_id: int, clock: Clock = utcnow) -> Assessment:
    a = get_assessment(db, assessment_id)
    _ensure_not_archived(a, "unpublish")
    if not a.is_published:
        return a
    with atomic(db):
        a.is_published = False
        a.updated_at = clock()
    logger.info(f"Assessment {a.id} moved back to draft")
    return a


def schedule(
    db: Session,
    assessment_id: int,
    start_date: Optional[datetime],
    due_date: Optional[datetime],
    clock: Clock = utcnow,
    require_questions: Optional[bool] = None,
) -> Assessment:
    """Set the availability window and publish in one step."""
    a = get_assessment(db, assessment_id)
    _ensure_not_archived(a, "schedule")
    start_date, due_date = to_utc_naive(start_date), to_utc_naive(due_date)
    validate_window(start_date, due_date)
    if not a.is_published:
        _ensure_publishable(db, a, require_questions)
    with atomic(db):
        a.start_date = start_date
        a.due_date = due_date
        a.is_published = True
        a.updated_at = clock()
    logger.info(f"Assessment {a.id} scheduled {start_date} -> {due_date}")
    return a


def archive(db: Session, assessment_id: int, clock: Clock = utcnow) -> Assessment:
    a = get_assessment(db, assessment_id)
    if a.archived:
        return a
    with atomic(db):
        a.archived = True
        a.updated_at = clock()
    logger.info(f"Assessment {a.id} archived")
    return a


def restore(db: Session, assessment_id: int, clock: Clock = utcnow) -> Assessment:
    a = get_assessment(db, assessment_id)
    if not a.archived:
        raise InvalidStateTransition("Only archived assessments can be restored", assessment_id=a.id)
    now = clock()
    with atomic(db):
        a.archived = False
        a.updated_at = now
    logger.info(f"Assessment {a.id} restored as {assessment_status(a, now).value}")
    return a


def list_assessments(
    db: Session, teacher_id: str, filters: AssessmentFilters, clock: Clock = utcnow
) -> Tuple[List[Assessment], int]:
    stmt = query_filters.assessment_query(teacher_id, filters, clock())
    total = db.scalar(select(func.count()).select_from(stmt.order_by(None).subquery()))
    page = db.scalars(
        stmt.offset((filters.page - 1) * filters.page_size).limit(filters.page_size)
    ).unique().all()
    return list(page), int(total or 0)

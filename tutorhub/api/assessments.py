from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Response
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel
from sqlalchemy.orm import Session

from tutorhub.core import cache
from tutorhub.core.auth import TEACHER_ROLES, TokenData, is_admin, require_roles
from tutorhub.core.clock import Clock, get_clock
from tutorhub.core.database import get_db
from tutorhub.core.errors import NotFound
from tutorhub.models.orm import Assessment
from tutorhub.models.schemas import AssessmentFilters, AssessmentSpec, AssessmentUpdate, SubmissionFilters
from tutorhub.services import assessments as service
from tutorhub.services.lifecycle import assessment_status, format_time_limit
from tutorhub.services.lookups import get_assessment
from tutorhub.services.reports import get_analytics

router = APIRouter()


class AssessmentOut(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    instructions: Optional[str] = None
    type: str
    teacher_id: str
    course_id: Optional[int] = None
    subject_id: Optional[int] = None
    total_points: int
    passing_points: Optional[int] = None
    time_limit: Optional[int] = None
    time_limit_display: str
    start_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    is_published: bool
    archived: bool
    status: str
    settings: Dict[str, Any]
    material_ids: List[int]
    question_count: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AssessmentPage(BaseModel):
    items: List[AssessmentOut]
    total: int
    page: int
    page_size: int


class ScheduleIn(BaseModel):
    start_date: Optional[datetime] = None
    due_date: Optional[datetime] = None


def to_out(a: Assessment, now: datetime) -> AssessmentOut:
    return AssessmentOut(
        id=a.id, title=a.title, description=a.description, instructions=a.instructions, type=a.type,
        teacher_id=a.teacher_id, course_id=a.course_id, subject_id=a.subject_id,
        total_points=a.total_points, passing_points=a.passing_points,
        time_limit=a.time_limit, time_limit_display=format_time_limit(a.time_limit),
        start_date=a.start_date, due_date=a.due_date, is_published=a.is_published, archived=a.archived,
        status=assessment_status(a, now).value, settings=dict(a.settings or {}),
        material_ids=[m.id for m in a.materials], question_count=len(a.questions),
        created_at=a.created_at, updated_at=a.updated_at,
    )


def owned_assessment(db: Session, assessment_id: int, user: TokenData) -> Assessment:
    """Teachers only see their own assessments; admins see everything."""
    a = get_assessment(db, assessment_id)
    if not is_admin(user) and a.teacher_id != user.sub:
        raise NotFound("Assessment not found", assessment_id=assessment_id)
    return a


@router.get("", response_model=AssessmentPage)
def list_assessments(filters: AssessmentFilters = Depends(), user: TokenData = Depends(require_roles(*TEACHER_ROLES)),
                     db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    now = clock()
    items, total = service.list_assessments(db, user.sub, filters, clock=lambda: now)
    return AssessmentPage(items=[to_out(a, now) for a in items], total=total, page=filters.page, page_size=filters.page_size)


@router.post("", response_model=AssessmentOut, status_code=201)
def create_assessment(payload: AssessmentSpec, user: TokenData = Depends(require_roles(*TEACHER_ROLES)),
                      db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    a = service.create_assessment(db, payload, user.sub, clock=clock)
    return to_out(a, clock())


@router.get("/{assessment_id}", response_model=AssessmentOut)
def read_assessment(assessment_id: int, user: TokenData = Depends(require_roles(*TEACHER_ROLES)),
                    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    return to_out(owned_assessment(db, assessment_id, user), clock())


@router.patch("/{assessment_id}", response_model=AssessmentOut)
def update_assessment(assessment_id: int, payload: AssessmentUpdate,
                      user: TokenData = Depends(require_roles(*TEACHER_ROLES)),
                      db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    owned_assessment(db, assessment_id, user)
    a = service.update_assessment(db, assessment_id, payload, clock=clock)
    cache.invalidate_analytics(assessment_id)
    return to_out(a, clock())


@router.delete("/{assessment_id}", status_code=204)
def delete_assessment(assessment_id: int, user: TokenData = Depends(require_roles(*TEACHER_ROLES)),
                      db: Session = Depends(get_db)):
    owned_assessment(db, assessment_id, user)
    service.delete_assessment(db, assessment_id)
    cache.invalidate_analytics(assessment_id)
    return Response(status_code=204)


@router.post("/{assessment_id}/duplicate", response_model=AssessmentOut, status_code=201)
def duplicate_assessment(assessment_id: int, user: TokenData = Depends(require_roles(*TEACHER_ROLES)),
                         db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    owned_assessment(db, assessment_id, user)
    a = service.duplicate_assessment(db, assessment_id, actor=user.sub, clock=clock)
    return to_out(a, clock())


@router.post("/{assessment_id}/publish", response_model=AssessmentOut)
def publish(assessment_id: int, user: TokenData = Depends(require_roles(*TEACHER_ROLES)),
            db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    owned_assessment(db, assessment_id, user)
    a = service.publish(db, assessment_id, clock=clock)
    cache.invalidate_analytics(assessment_id)
    return to_out(a, clock())


@router.post("/{assessment_id}/unpublish", response_model=AssessmentOut)
def unpublish(assessment_id: int, user: TokenData = Depends(require_roles(*TEACHER_ROLES)),
              db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    owned_assessment(db, assessment_id, user)
    a = service.unpublish(db, assessment_id, clock=clock)
    cache.invalidate_analytics(assessment_id)
    return to_out(a, clock())


@router.post("/{assessment_id}/schedule", response_model=AssessmentOut)
def schedule(assessment_id: int, payload: ScheduleIn, user: TokenData = Depends(require_roles(*TEACHER_ROLES)),
             db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    owned_assessment(db, assessment_id, user)
    a = service.schedule(db, assessment_id, payload.start_date, payload.due_date, clock=clock)
    cache.invalidate_analytics(assessment_id)
    return to_out(a, clock())


@router.post("/{assessment_id}/archive", response_model=AssessmentOut)
def archive(assessment_id: int, user: TokenData = Depends(require_roles(*TEACHER_ROLES)),
            db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    owned_assessment(db, assessment_id, user)
    a = service.archive(db, assessment_id, clock=clock)
    cache.invalidate_analytics(assessment_id)
    return to_out(a, clock())


@router.post("/{assessment_id}/restore", response_model=AssessmentOut)
def restore(assessment_id: int, user: TokenData = Depends(require_roles(*TEACHER_ROLES)),
            db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    owned_assessment(db, assessment_id, user)
    a = service.restore(db, assessment_id, clock=clock)
    cache.invalidate_analytics(assessment_id)
    return to_out(a, clock())


@router.get("/{assessment_id}/analytics")
def analytics(assessment_id: int, filters: SubmissionFilters = Depends(),
              user: TokenData = Depends(require_roles(*TEACHER_ROLES)),
              db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    owned_assessment(db, assessment_id, user)
    key = filters.model_dump(mode="json")
    cached = cache.get_cached_analytics(assessment_id, key)
    if cached is not None:
        return cached
    payload = jsonable_encoder(get_analytics(db, assessment_id, filters, clock=clock))
    cache.store_analytics(assessment_id, key, payload)
    return payload

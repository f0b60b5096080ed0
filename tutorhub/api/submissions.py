from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, confloat
from sqlalchemy.orm import Session

from tutorhub.api.assessments import owned_assessment
from tutorhub.core import cache
from tutorhub.core.auth import PARTICIPANT_ROLES, TEACHER_ROLES, TokenData, is_admin, require_roles
from tutorhub.core.clock import Clock, get_clock
from tutorhub.core.database import get_db
from tutorhub.models.orm import ParticipantKind, ParticipantRef, Submission
from tutorhub.models.schemas import AnswerValue, ParticipantSubmissionFilters, SubmissionFilters
from tutorhub.services import submissions as service
from tutorhub.services.filters import filter_submissions
from tutorhub.services.lifecycle import is_late
from tutorhub.services.lookups import get_submission, participant_names

router = APIRouter()


class ParticipantIn(BaseModel):
    kind: ParticipantKind
    id: int


class AnswerIn(BaseModel):
    question_id: int
    answer: AnswerValue


class GradeIn(BaseModel):
    manual_scores: Dict[int, confloat(allow_inf_nan=False)] = {}
    feedback: Dict[int, str] = {}


class SubmissionOut(BaseModel):
    id: int
    assessment_id: int
    participant_kind: str
    participant_id: int
    attempt: int
    status: str
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    answers: Dict[str, Any] = {}
    auto_score: Optional[float] = None
    manual_scores: Dict[str, float] = {}
    score: Optional[float] = None
    feedback: Dict[str, Any] = {}
    graded_at: Optional[datetime] = None
    graded_by: Optional[str] = None
    late: bool


def to_out(s: Submission, now: datetime) -> SubmissionOut:
    return SubmissionOut(
        id=s.id, assessment_id=s.assessment_id, participant_kind=s.participant_kind,
        participant_id=s.participant_id, attempt=s.attempt, status=s.status,
        start_time=s.start_time, end_time=s.end_time, answers=dict(s.answers or {}),
        auto_score=s.auto_score, manual_scores=dict(s.manual_scores or {}), score=s.score,
        feedback=dict(s.feedback or {}), graded_at=s.graded_at, graded_by=s.graded_by,
        late=is_late(s, s.assessment.due_date, now),
    )


class ParticipantSubmissionOut(SubmissionOut):
    assessment_title: str
    assessment_type: str


def acting_participant(user: TokenData) -> Optional[str]:
    """The account whose children or client profile must own the submission; admins act for anyone."""
    return None if is_admin(user) else user.sub


@router.post("/assessments/{assessment_id}/participants", response_model=SubmissionOut, status_code=201)
def assign_participant(assessment_id: int, payload: ParticipantIn,
                       user: TokenData = Depends(require_roles(*TEACHER_ROLES)),
                       db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    owned_assessment(db, assessment_id, user)
    s = service.assign_participant(db, assessment_id, ParticipantRef(payload.kind.value, payload.id), clock=clock)
    cache.invalidate_analytics(assessment_id)
    return to_out(s, clock())


@router.get("/assessments/{assessment_id}/submissions", response_model=List[SubmissionOut])
def list_submissions(assessment_id: int, filters: SubmissionFilters = Depends(),
                     user: TokenData = Depends(require_roles(*TEACHER_ROLES)),
                     db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    a = owned_assessment(db, assessment_id, user)
    names = participant_names(db, (s.participant for s in a.submissions))
    now = clock()
    return [to_out(s, now) for s in filter_submissions(a.submissions, filters, names)]


@router.get("/submissions/{submission_id}", response_model=SubmissionOut)
def read_submission(submission_id: int, user: TokenData = Depends(require_roles(*PARTICIPANT_ROLES)),
                    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    s = get_submission(db, submission_id)
    if s.assessment.teacher_id != user.sub:
        s = service.get_owned_submission(db, submission_id, acting_participant(user))
    return to_out(s, clock())


@router.put("/submissions/{submission_id}/answers", response_model=SubmissionOut)
def record_answer(submission_id: int, payload: AnswerIn, user: TokenData = Depends(require_roles(*PARTICIPANT_ROLES)),
                  db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    s = service.record_answer(db, submission_id, payload.question_id, payload.answer, clock=clock,
                              actor=acting_participant(user))
    cache.invalidate_analytics(s.assessment_id)
    return to_out(s, clock())


@router.post("/submissions/{submission_id}/submit", response_model=SubmissionOut)
def submit(submission_id: int, user: TokenData = Depends(require_roles(*PARTICIPANT_ROLES)),
           db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    s = service.submit(db, submission_id, clock=clock, actor=acting_participant(user))
    cache.invalidate_analytics(s.assessment_id)
    return to_out(s, clock())


@router.post("/submissions/{submission_id}/grade", response_model=SubmissionOut)
def grade(submission_id: int, payload: GradeIn, user: TokenData = Depends(require_roles(*TEACHER_ROLES)),
          db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    owned_assessment(db, get_submission(db, submission_id).assessment_id, user)
    s = service.grade(db, submission_id, payload.manual_scores, user.sub, feedback=payload.feedback, clock=clock)
    cache.invalidate_analytics(s.assessment_id)
    return to_out(s, clock())


@router.get("/participants/{kind}/{participant_id}/submissions", response_model=List[ParticipantSubmissionOut])
def list_participant_submissions(kind: ParticipantKind, participant_id: int,
                                 filters: ParticipantSubmissionFilters = Depends(),
                                 user: TokenData = Depends(require_roles(*PARTICIPANT_ROLES)),
                                 db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    rows = service.list_participant_submissions(
        db, ParticipantRef(kind.value, participant_id), filters, actor=acting_participant(user)
    )
    now = clock()
    return [
        ParticipantSubmissionOut(
            **to_out(s, now).model_dump(), assessment_title=s.assessment.title, assessment_type=s.assessment.type,
        )
        for s in rows
    ]

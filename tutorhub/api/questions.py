from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel
from sqlalchemy.orm import Session

from tutorhub.api.assessments import owned_assessment
from tutorhub.core import cache
from tutorhub.core.auth import TEACHER_ROLES, TokenData, require_roles
from tutorhub.core.clock import Clock, get_clock
from tutorhub.core.database import get_db
from tutorhub.models.orm import Question
from tutorhub.models.schemas import QuestionBankFilters, QuestionSpec, QuestionUpdate
from tutorhub.services import questions as service
from tutorhub.services.lookups import get_question
from tutorhub.services.scoring import is_auto_gradable

router = APIRouter()


class QuestionOut(BaseModel):
    id: int
    assessment_id: int
    question: str
    type: str
    options: Optional[List[str]] = None
    correct_answer: Any = None
    points: int
    difficulty: Optional[str] = None
    order: int
    extra: Dict[str, Any] = {}
    auto_gradable: bool
    created_at: Optional[datetime] = None


class QuestionPage(BaseModel):
    items: List[QuestionOut]
    total: int
    page: int
    page_size: int


class ReorderIn(BaseModel):
    question_ids: List[int]


def to_out(q: Question) -> QuestionOut:
    return QuestionOut(
        id=q.id, assessment_id=q.assessment_id, question=q.question, type=q.type,
        options=q.options, correct_answer=q.correct_answer, points=q.points,
        difficulty=q.difficulty, order=q.order, extra=dict(q.extra or {}),
        auto_gradable=is_auto_gradable(q), created_at=q.created_at,
    )


@router.get("/questions/bank", response_model=QuestionPage)
def question_bank(filters: QuestionBankFilters = Depends(), user: TokenData = Depends(require_roles(*TEACHER_ROLES)),
                  db: Session = Depends(get_db)):
    items, total = service.list_question_bank(db, user.sub, filters)
    return QuestionPage(items=[to_out(q) for q in items], total=total, page=filters.page, page_size=filters.page_size)


@router.get("/assessments/{assessment_id}/questions", response_model=List[QuestionOut])
def list_questions(assessment_id: int, user: TokenData = Depends(require_roles(*TEACHER_ROLES)),
                   db: Session = Depends(get_db)):
    a = owned_assessment(db, assessment_id, user)
    return [to_out(q) for q in a.questions]


@router.post("/assessments/{assessment_id}/questions", response_model=QuestionOut, status_code=201)
def add_question(assessment_id: int, payload: QuestionSpec, user: TokenData = Depends(require_roles(*TEACHER_ROLES)),
                 db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    owned_assessment(db, assessment_id, user)
    q = service.add_question(db, assessment_id, payload, clock=clock)
    cache.invalidate_analytics(assessment_id)
    return to_out(q)


@router.put("/assessments/{assessment_id}/questions/order", response_model=List[QuestionOut])
def reorder_questions(assessment_id: int, payload: ReorderIn, user: TokenData = Depends(require_roles(*TEACHER_ROLES)),
                      db: Session = Depends(get_db)):
    owned_assessment(db, assessment_id, user)
    questions = service.reorder_questions(db, assessment_id, payload.question_ids)
    cache.invalidate_analytics(assessment_id)
    return [to_out(q) for q in questions]


@router.patch("/questions/{question_id}", response_model=QuestionOut)
def update_question(question_id: int, payload: QuestionUpdate, user: TokenData = Depends(require_roles(*TEACHER_ROLES)),
                    db: Session = Depends(get_db)):
    owned_assessment(db, get_question(db, question_id).assessment_id, user)
    q = service.update_question(db, question_id, payload)
    cache.invalidate_analytics(q.assessment_id)
    return to_out(q)


@router.delete("/questions/{question_id}", status_code=204)
def delete_question(question_id: int, user: TokenData = Depends(require_roles(*TEACHER_ROLES)),
                    db: Session = Depends(get_db)):
    assessment_id = get_question(db, question_id).assessment_id
    owned_assessment(db, assessment_id, user)
    service.delete_question(db, question_id)
    cache.invalidate_analytics(assessment_id)
    return Response(status_code=204)

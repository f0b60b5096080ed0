import logging
from typing import List, Sequence, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from tutorhub.core.clock import Clock, utcnow
from tutorhub.core.database import atomic
from tutorhub.core.errors import ValidationError
from tutorhub.models.orm import Question
from tutorhub.models.schemas import QuestionBankFilters, QuestionSpec, QuestionUpdate
from tutorhub.services import filters as query_filters
from tutorhub.services.lookups import get_assessment, get_question
from tutorhub.services.scoring import validate_question_shape

logger = logging.getLogger(__name__)


def _value(v):
    return getattr(v, "value", v)


def add_question(db: Session, assessment_id: int, spec: QuestionSpec, clock: Clock = utcnow) -> Question:
    a = get_assessment(db, assessment_id)
    qtype = _value(spec.type)
    validate_question_shape(qtype, spec.options, spec.correct_answer)
    next_order = (db.scalar(
        select(func.coalesce(func.max(Question.order), 0)).where(Question.assessment_id == a.id)
    ) or 0) + 1
    q = Question(
        assessment_id=a.id,
        question=spec.question,
        type=qtype,
        options=list(spec.options) if spec.options is not None else None,
        correct_answer=spec.correct_answer,
        points=spec.points,
        difficulty=_value(spec.difficulty),
        order=next_order,
        extra=dict(spec.extra),
        created_at=clock(),
    )
    with atomic(db):
        db.add(q)
    db.refresh(q)
    logger.info(f"Question {q.id} ({qtype}) added to assessment {a.id} at position {next_order}")
    return q


def update_question(db: Session, question_id: int, changes: QuestionUpdate) -> Question:
    q = get_question(db, question_id)
    data = changes.model_dump(exclude_unset=True)
    for key in ("question", "type", "points"):
        if key in data and data[key] is None:
            raise ValidationError(f"{key} cannot be cleared", field=key)
    merged_type = _value(data.get("type", q.type))
    merged_options = data["options"] if "options" in data else q.options
    merged_answer = data["correct_answer"] if "correct_answer" in data else q.correct_answer
    validate_question_shape(merged_type, merged_options, merged_answer)
    with atomic(db):
        for key, value in data.items():
            setattr(q, key, _value(value))
    db.refresh(q)
    logger.info(f"Question {q.id} updated: {sorted(data)}")
    return q


def delete_question(db: Session, question_id: int) -> None:
    q = get_question(db, question_id)
    with atomic(db):
        db.delete(q)
    logger.info(f"Question {question_id} deleted")


def reorder_questions(db: Session, assessment_id: int, ordered_ids: Sequence[int]) -> List[Question]:
    """Assign orders 1..n following ordered_ids; the ids must be exactly the assessment's questions."""
    a = get_assessment(db, assessment_id)
    by_id = {q.id: q for q in a.questions}
    ids = list(ordered_ids)
    if len(set(ids)) != len(ids):
        raise ValidationError("Question order contains duplicates", assessment_id=a.id)
    if set(ids) != set(by_id):
        raise ValidationError(
            "Question order must list every question of the assessment exactly once",
            missing=sorted(set(by_id) - set(ids)),
            unknown=sorted(set(ids) - set(by_id)),
        )
    with atomic(db):
        for position, qid in enumerate(ids, start=1):
            by_id[qid].order = position
    db.refresh(a)
    logger.info(f"Assessment {a.id} questions reordered")
    return list(a.questions)


def list_question_bank(db: Session, teacher_id: str, filters: QuestionBankFilters) -> Tuple[List[Question], int]:
    stmt = query_filters.question_bank_query(teacher_id, filters)
    total = db.scalar(select(func.count()).select_from(stmt.order_by(None).subquery()))
    page = db.scalars(stmt.offset((filters.page - 1) * filters.page_size).limit(filters.page_size)).all()
    return list(page), int(total or 0)

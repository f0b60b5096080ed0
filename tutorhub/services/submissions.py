"""
Submission lifecycle: assignment, answering, submitting and grading.

    not_started --answer--> in_progress --submit--> completed --grade--> graded

Submitting runs the automatic grading pass. Submissions whose assessment has
no manually graded questions are finalized immediately when
AUTO_FINALIZE_OBJECTIVE_SUBMISSIONS is on; everything else waits for a teacher.
"""
import logging
from typing import Any, List, Mapping, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tutorhub.core.clock import Clock, utcnow
from tutorhub.core.config import settings
from tutorhub.core.database import atomic
from tutorhub.core.errors import Conflict, InvalidStateTransition, NotFound, ValidationError
from tutorhub.models.orm import ParticipantKind, ParticipantRef, Question, Submission, SubmissionStatus
from tutorhub.models.schemas import ParticipantSubmissionFilters
from tutorhub.services.filters import participant_submissions_query
from tutorhub.services.lookups import get_assessment, get_submission, participant_exists, participant_owned_by
from tutorhub.services.scoring import grade_automatic, grade_manual, manual_questions, validate_answer, validate_feedback

logger = logging.getLogger(__name__)

SYSTEM_GRADER = "system"


def get_owned_submission(db: Session, submission_id: int, actor: Optional[str]) -> Submission:
    """Fetch a submission on behalf of its participant; actor None skips the ownership check."""
    s = get_submission(db, submission_id)
    if actor is not None and not participant_owned_by(db, s.participant, actor):
        logger.warning(f"User {actor} denied access to submission {s.id}")
        raise NotFound("Submission not found", submission_id=submission_id)
    return s


def list_participant_submissions(
    db: Session,
    participant: ParticipantRef,
    filters: Optional[ParticipantSubmissionFilters] = None,
    actor: Optional[str] = None,
) -> List[Submission]:
    if not participant_exists(db, participant):
        raise NotFound(f"{participant.label.capitalize()} not found", participant_id=participant.id)
    if actor is not None and not participant_owned_by(db, participant, actor):
        raise NotFound(f"{participant.label.capitalize()} not found", participant_id=participant.id)
    stmt = participant_submissions_query(participant, filters or ParticipantSubmissionFilters())
    return list(db.scalars(stmt).all())


def assign_participant(db: Session, assessment_id: int, participant: ParticipantRef, clock: Clock = utcnow) -> Submission:
    a = get_assessment(db, assessment_id)
    if participant.kind not in {k.value for k in ParticipantKind}:
        raise ValidationError("Participant must be a child or a client", kind=participant.kind)
    if a.archived:
        raise InvalidStateTransition("Cannot assign participants to an archived assessment", assessment_id=a.id)
    if not participant_exists(db, participant):
        raise NotFound(f"{participant.label.capitalize()} not found", participant_id=participant.id)

    previous = db.scalars(
        select(Submission)
        .where(
            Submission.assessment_id == a.id,
            Submission.participant_kind == participant.kind,
            Submission.participant_id == participant.id,
        )
        .order_by(Submission.attempt)
    ).all()
    if previous:
        if not a.setting("allow_retakes"):
            raise Conflict("Participant is already assigned to this assessment", assessment_id=a.id)
        if any(not s.is_finished for s in previous):
            raise Conflict("Participant has an unfinished attempt", assessment_id=a.id)
        if len(previous) >= int(a.setting("max_retakes") or 1):
            raise Conflict("Participant has used every allowed attempt", assessment_id=a.id, attempts=len(previous))

    s = Submission(
        assessment_id=a.id,
        attempt=len(previous) + 1,
        status=SubmissionStatus.NOT_STARTED.value,
        answers={},
        manual_scores={},
        feedback={},
        created_at=clock(),
    )
    s.participant = participant
    try:
        with atomic(db):
            db.add(s)
    except IntegrityError:
        raise Conflict("Participant was assigned concurrently", assessment_id=a.id)
    db.refresh(s)
    logger.info(f"Assigned {participant.kind}:{participant.id} to assessment {a.id} (attempt {s.attempt})")
    return s


def record_answer(
    db: Session,
    submission_id: int,
    question_id: int,
    answer: Any,
    clock: Clock = utcnow,
    actor: Optional[str] = None,
) -> Submission:
    s = get_owned_submission(db, submission_id, actor)
    q = db.get(Question, question_id)
    if q is None or q.assessment_id != s.assessment_id:
        raise NotFound("Question not found in this assessment", question_id=question_id)
    if s.is_finished:
        raise InvalidStateTransition("Submission has already been submitted", submission_id=s.id, status=s.status)
    validate_answer(q, answer)
    with atomic(db):
        s.answers = {**(s.answers or {}), str(q.id): answer}
        if s.status == SubmissionStatus.NOT_STARTED.value:
            s.status = SubmissionStatus.IN_PROGRESS.value
            logger.info(f"Submission {s.id} started")
        if s.start_time is None:
            s.start_time = clock()
    db.refresh(s)
    return s


def submit(
    db: Session,
    submission_id: int,
    clock: Clock = utcnow,
    auto_finalize: Optional[bool] = None,
    actor: Optional[str] = None,
) -> Submission:
    s = get_owned_submission(db, submission_id, actor)
    if s.status != SubmissionStatus.IN_PROGRESS.value or s.start_time is None:
        raise InvalidStateTransition("Only an in-progress submission can be submitted", submission_id=s.id, status=s.status)
    if auto_finalize is None:
        auto_finalize = settings.AUTO_FINALIZE_OBJECTIVE_SUBMISSIONS
    questions = list(s.assessment.questions)
    auto = grade_automatic(s, questions)
    now = clock()
    with atomic(db):
        s.end_time = now
        s.auto_score = auto
        s.score = auto
        s.status = SubmissionStatus.COMPLETED.value
        if auto_finalize and not manual_questions(questions):
            s.status = SubmissionStatus.GRADED.value
            s.graded_at = now
            s.graded_by = SYSTEM_GRADER
    db.refresh(s)
    logger.info(f"Submission {s.id} submitted: status={s.status} auto_score={auto}")
    return s


def grade(
    db: Session,
    submission_id: int,
    manual_scores: Mapping[Any, float],
    actor: str,
    feedback: Optional[Mapping[Any, str]] = None,
    clock: Clock = utcnow,
) -> Submission:
    s = get_submission(db, submission_id)
    if s.status == SubmissionStatus.GRADED.value or s.graded_at is not None:
        raise Conflict("Submission has already been graded", submission_id=s.id)
    if s.status != SubmissionStatus.COMPLETED.value:
        raise InvalidStateTransition("Only a completed submission can be graded", submission_id=s.id, status=s.status)
    questions = list(s.assessment.questions)
    breakdown = grade_manual(s, questions, manual_scores)
    manual = {str(q.id): breakdown.per_question[str(q.id)] for q in manual_questions(questions)}
    notes = validate_feedback(questions, feedback)

    with atomic(db):
        result = db.execute(
            update(Submission)
            .where(
                Submission.id == s.id,
                Submission.graded_at.is_(None),
                Submission.status == SubmissionStatus.COMPLETED.value,
            )
            .values(
                status=SubmissionStatus.GRADED.value,
                auto_score=breakdown.auto_score,
                manual_scores=manual,
                score=breakdown.total,
                feedback=notes,
                graded_at=clock(),
                graded_by=actor,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise Conflict("Submission was graded concurrently", submission_id=s.id)
    db.refresh(s)
    logger.info(f"Submission {s.id} graded by {actor}: score={s.score}")
    return s

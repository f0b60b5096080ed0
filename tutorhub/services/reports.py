"""
Analytics entry points that touch the database: the per-assessment analytics
payload and the teacher-wide report. They load a snapshot, resolve participant
names and hand everything to the pure aggregators in services.analytics.
"""
import logging
from collections import OrderedDict
from typing import Dict, List, Mapping, Optional, Sequence

from sqlalchemy.orm import Session, selectinload

from tutorhub.core.clock import Clock, utcnow
from tutorhub.core.config import settings
from tutorhub.models.orm import Assessment, ParticipantRef
from tutorhub.models.schemas import ReportFilters, SubmissionFilters
from tutorhub.services import analytics
from tutorhub.services import filters as query_filters
from tutorhub.services.lookups import get_assessment, participant_names
from tutorhub.services.scoring import points_mismatch

logger = logging.getLogger(__name__)

NO_SUBJECT = "No Subject"


def get_analytics(
    db: Session,
    assessment_id: int,
    filters: Optional[SubmissionFilters] = None,
    clock: Clock = utcnow,
    ranking_limit: Optional[int] = None,
) -> dict:
    a = get_assessment(db, assessment_id)
    questions = list(a.questions)
    submissions = list(a.submissions)
    names = participant_names(db, (s.participant for s in submissions))
    selected = query_filters.filter_submissions(submissions, filters, names)

    mismatch = points_mismatch(questions, a.total_points)
    if questions and mismatch:
        logger.warning(
            f"Assessment {a.id}: question points sum to {a.total_points + mismatch}, total_points is {a.total_points}"
        )
    return analytics.build_assessment_analytics(
        a, questions, selected,
        names=names,
        now=clock(),
        ranking_limit=ranking_limit if ranking_limit is not None else settings.RANKING_LIMIT,
    )


# ========== Teacher report ==========

def overall_stats(assessments: Sequence[Assessment]) -> dict:
    submissions = [s for a in assessments for s in a.submissions]
    done = analytics.finished(submissions)
    question_counts = [len(a.questions) for a in assessments]
    return {
        "total_assessments": len(assessments),
        "total_submissions": len(submissions),
        "completion_rate": analytics.percentage(len(done), len(submissions)),
        "average_score": analytics.average_score(submissions),
        "average_questions": round(sum(question_counts) / len(question_counts)) if question_counts else 0,
    }


def performance_overview(assessments: Sequence[Assessment], limit: Optional[int] = None) -> List[dict]:
    rows = []
    for a in assessments:
        done = analytics.scored(a.submissions)
        if not done:
            continue
        avg = sum(s.score for s in done) / len(done)
        rows.append({
            "id": a.id,
            "title": a.title if len(a.title) <= 30 else a.title[:30] + "...",
            "type": a.type,
            "average_score": analytics.percentage(avg, a.total_points),
            "submissions_count": len(done),
            "passing_rate": analytics.passing_rate(done, a.passing_points),
        })
    rows.sort(key=lambda r: r["average_score"], reverse=True)
    return rows[:limit] if limit else rows


def subject_performance(assessments: Sequence[Assessment]) -> List[dict]:
    by_subject: Dict[Optional[int], dict] = OrderedDict()
    for a in assessments:
        entry = by_subject.setdefault(a.subject_id, {
            "subject_id": a.subject_id,
            "name": a.subject.name if a.subject else NO_SUBJECT,
            "total_score": 0.0,
            "total_submissions": 0,
        })
        done = analytics.scored(a.submissions)
        entry["total_score"] += sum(s.score for s in done)
        entry["total_submissions"] += len(done)
    rows = []
    for entry in by_subject.values():
        count = entry["total_submissions"]
        rows.append({**entry, "average_score": round(entry["total_score"] / count, 1) if count else 0.0})
    rows.sort(key=lambda r: r["average_score"], reverse=True)
    return rows


def participant_averages(
    assessments: Sequence[Assessment], names: Optional[Mapping[ParticipantRef, str]] = None
) -> List[dict]:
    totals: Dict[ParticipantRef, dict] = OrderedDict()
    for a in assessments:
        for s in analytics.finished(a.submissions):
            ref = s.participant
            entry = totals.setdefault(ref, {
                "participant_kind": ref.kind,
                "participant_id": ref.id,
                "name": analytics.participant_name(ref, names),
                "type": ref.label,
                "total_score": 0.0,
                "total_possible": 0,
                "submissions_count": 0,
            })
            entry["total_score"] += s.score or 0.0
            entry["total_possible"] += a.total_points
            entry["submissions_count"] += 1
    return [
        {**e, "average_percentage": analytics.percentage(e["total_score"], e["total_possible"])}
        for e in totals.values()
    ]


def recent_submissions(
    assessments: Sequence[Assessment],
    names: Optional[Mapping[ParticipantRef, str]] = None,
    limit: int = 5,
) -> List[dict]:
    rows = [
        (a, s) for a in assessments for s in analytics.finished(a.submissions) if s.end_time is not None
    ]
    rows.sort(key=lambda pair: pair[1].end_time, reverse=True)
    return [
        {
            "submission_id": s.id,
            "assessment_id": a.id,
            "assessment_title": a.title,
            "name": analytics.participant_name(s.participant, names),
            "type": s.participant.label,
            "score": s.score,
            "percentage": analytics.percentage(s.score or 0, a.total_points),
            "status": s.status,
            "submitted_at": s.end_time,
        }
        for a, s in rows[:limit]
    ]


def build_teacher_report(db: Session, teacher_id: str, filters: ReportFilters, clock: Clock = utcnow) -> dict:
    stmt = query_filters.report_query(teacher_id, filters, clock()).options(
        selectinload(Assessment.submissions),
        selectinload(Assessment.questions),
        selectinload(Assessment.subject),
    )
    assessments = list(db.scalars(stmt).unique().all())
    names = participant_names(db, (s.participant for a in assessments for s in a.submissions))
    top_n = settings.REPORT_TOP_N

    participants = participant_averages(assessments, names)
    top = sorted(participants, key=lambda p: p["average_percentage"], reverse=True)[:top_n]
    attention = sorted(participants, key=lambda p: p["average_percentage"])[:top_n]
    overview_limit = None if filters.show_all_assessments else settings.REPORT_OVERVIEW_LIMIT

    logger.info(f"Teacher report for {teacher_id}: {len(assessments)} assessments in scope")
    return {
        "stats": overall_stats(assessments),
        "performance_overview": performance_overview(assessments, overview_limit),
        "subject_performance": subject_performance(assessments),
        "top_performers": top,
        "needs_attention": attention,
        "recent_submissions": recent_submissions(assessments, names, top_n),
    }

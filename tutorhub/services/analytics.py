"""
Assessment analytics.

Every function here is pure: it reads a materialized snapshot of submissions
(ORM rows or anything shaped like them), never touches the session, and
returns zeroed structures for empty input so dashboards render before the
first submission arrives.
"""
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from tutorhub.core.clock import minutes_between
from tutorhub.models.orm import FINISHED_STATUSES, ParticipantKind, ParticipantRef
from tutorhub.services.lifecycle import is_late
from tutorhub.services.scoring import is_auto_gradable, is_correct, points_mismatch

SCORE_BUCKETS = ("0-20", "21-40", "41-60", "61-80", "81-100")

UNKNOWN_NAMES = {
    ParticipantKind.CHILD.value: "Unknown Student",
    ParticipantKind.CLIENT.value: "Unknown Client",
}


def finished(submissions: Iterable) -> List:
    return [s for s in submissions if s.status in FINISHED_STATUSES]


def scored(submissions: Iterable) -> List:
    return [s for s in finished(submissions) if s.score is not None]


def percentage(part: float, whole: float, ndigits: int = 1) -> float:
    if not whole:
        return 0.0
    return round(part / whole * 100, ndigits)


def participant_name(ref: ParticipantRef, names: Optional[Mapping[ParticipantRef, str]] = None) -> str:
    name = (names or {}).get(ref)
    return name or UNKNOWN_NAMES.get(ref.kind, "Unknown")


def _bucket(pct: float) -> str:
    if pct <= 20:
        return "0-20"
    if pct <= 40:
        return "21-40"
    if pct <= 60:
        return "41-60"
    if pct <= 80:
        return "61-80"
    return "81-100"


def score_distribution(submissions: Iterable, total_points: int) -> Dict[str, int]:
    buckets = {label: 0 for label in SCORE_BUCKETS}
    if not total_points or total_points <= 0:
        return buckets
    for s in scored(submissions):
        buckets[_bucket(s.score / total_points * 100)] += 1
    return buckets


def _excerpt(text: str, limit: int = 40) -> str:
    text = text or ""
    return text[:limit] + "..." if len(text) > limit else text


def question_performance(questions: Sequence, submissions: Sequence) -> List[dict]:
    """
    Per-question success rates.

    Manually graded questions report attempts only; their correct and
    percentage are None so they stay out of any success-rate average.
    """
    rows = []
    for q in questions:
        attempted = 0
        correct = 0
        for s in submissions:
            if not s.has_answer(q.id):
                continue
            attempted += 1
            if is_correct(q, s.answer_for(q.id)):
                correct += 1
        auto = is_auto_gradable(q)
        rows.append({
            "id": q.id,
            "text": _excerpt(q.question),
            "type": q.type,
            "auto_gradable": auto,
            "attempted": attempted,
            "correct": correct if auto else None,
            "percentage": percentage(correct, attempted) if auto else None,
        })
    return rows


def passing_rate(submissions: Iterable, passing_points: Optional[int]) -> Optional[float]:
    if passing_points is None:
        return None
    done = finished(submissions)
    passed = sum(1 for s in done if s.score is not None and s.score >= passing_points)
    return percentage(passed, len(done))


def average_score(submissions: Iterable) -> float:
    scores = [s.score for s in scored(submissions)]
    return round(sum(scores) / len(scores), 1) if scores else 0.0


def participant_ranking(
    submissions: Iterable,
    total_points: int,
    names: Optional[Mapping[ParticipantRef, str]] = None,
    *,
    due_date: Optional[datetime] = None,
    now: Optional[datetime] = None,
    limit: Optional[int] = None,
) -> List[dict]:
    def sort_key(s):
        ratio = s.score / total_points if total_points else 0.0
        return (-ratio, s.end_time is None, s.end_time or datetime.max)

    ranking = []
    for s in sorted(scored(submissions), key=sort_key):
        ref = s.participant
        ranking.append({
            "submission_id": s.id,
            "participant_kind": ref.kind,
            "participant_id": ref.id,
            "name": participant_name(ref, names),
            "type": ref.label,
            "score": s.score,
            "percentage": percentage(s.score, total_points),
            "status": s.status,
            "attempt": s.attempt,
            "submitted_at": s.end_time,
            "late": bool(now and is_late(s, due_date, now)),
        })
    return ranking[:limit] if limit else ranking


def _durations(submissions: Iterable) -> List:
    return [
        (s, minutes_between(s.start_time, s.end_time))
        for s in finished(submissions)
        if s.start_time is not None and s.end_time is not None
    ]


def average_completion_minutes(submissions: Iterable) -> float:
    minutes = [m for _, m in _durations(submissions)]
    return round(sum(minutes) / len(minutes), 1) if minutes else 0.0


def completion_times(
    submissions: Iterable,
    names: Optional[Mapping[ParticipantRef, str]] = None,
    limit: Optional[int] = None,
) -> List[dict]:
    rows = [
        {
            "submission_id": s.id,
            "name": participant_name(s.participant, names),
            "minutes": round(m, 1),
            "submitted_at": s.end_time,
        }
        for s, m in sorted(_durations(submissions), key=lambda pair: pair[1])
    ]
    return rows[:limit] if limit else rows


def summary_stats(
    questions: Sequence,
    submissions: Sequence,
    *,
    due_date: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> dict:
    done = finished(submissions)
    participants = {s.participant for s in submissions}
    return {
        "total_questions": len(questions),
        "total_participants": len(participants),
        "total_submissions": len(submissions),
        "completed_submissions": len(done),
        "average_score": average_score(submissions),
        "progress": round(percentage(len(done), len(submissions), ndigits=0)),
        "late_submissions": sum(1 for s in submissions if now and is_late(s, due_date, now)),
    }


def build_assessment_analytics(
    assessment,
    questions: Sequence,
    submissions: Sequence,
    *,
    names: Optional[Mapping[ParticipantRef, str]] = None,
    now: Optional[datetime] = None,
    ranking_limit: Optional[int] = None,
) -> dict:
    return {
        "assessment_id": assessment.id,
        "total_points": assessment.total_points,
        "passing_points": assessment.passing_points,
        "points_mismatch": points_mismatch(questions, assessment.total_points),
        "summary": summary_stats(questions, submissions, due_date=assessment.due_date, now=now),
        "score_distribution": score_distribution(submissions, assessment.total_points),
        "question_performance": question_performance(questions, submissions),
        "passing_rate": passing_rate(submissions, assessment.passing_points),
        "ranking": participant_ranking(
            submissions, assessment.total_points, names,
            due_date=assessment.due_date, now=now, limit=ranking_limit,
        ),
        "avg_completion_minutes": average_completion_minutes(submissions),
        "completion_times": completion_times(submissions, names, limit=ranking_limit),
    }

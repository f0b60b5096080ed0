"""
Pure lifecycle rules for assessments and submissions.

Assessment status is never stored: it is derived from is_published, archived,
start_date and due_date every time it is read.
"""
from datetime import datetime
from typing import Optional

from tutorhub.core.errors import ValidationError
from tutorhub.models.orm import AssessmentStatus


def derive_status(
    *,
    is_published: bool,
    archived: bool,
    start_date: Optional[datetime],
    due_date: Optional[datetime],
    now: datetime,
) -> AssessmentStatus:
    if archived:
        return AssessmentStatus.ARCHIVED
    if not is_published:
        return AssessmentStatus.DRAFT
    if due_date is not None and due_date < now:
        return AssessmentStatus.ENDED
    if start_date is not None and start_date <= now:
        return AssessmentStatus.ACTIVE
    return AssessmentStatus.PUBLISHED


def assessment_status(assessment, now: datetime) -> AssessmentStatus:
    return derive_status(
        is_published=bool(assessment.is_published),
        archived=bool(assessment.archived),
        start_date=assessment.start_date,
        due_date=assessment.due_date,
        now=now,
    )


def is_late(submission, due_date: Optional[datetime], now: datetime) -> bool:
    if due_date is None or due_date >= now:
        return False
    return submission.end_time is None or submission.end_time > due_date


def validate_points(total_points: Optional[int], passing_points: Optional[int]) -> None:
    if total_points is None or total_points < 1:
        raise ValidationError("total_points must be at least 1", total_points=total_points)
    if passing_points is not None and passing_points > total_points:
        raise ValidationError(
            "passing_points cannot exceed total_points",
            passing_points=passing_points,
            total_points=total_points,
        )


def validate_window(start_date: Optional[datetime], due_date: Optional[datetime]) -> None:
    if start_date is not None and due_date is not None and due_date < start_date:
        raise ValidationError("due_date must be on or after start_date")


def format_time_limit(time_limit: Optional[int]) -> str:
    if not time_limit:
        return "No time limit"
    hours, minutes = divmod(int(time_limit), 60)
    if hours > 0:
        return f"{hours}h {minutes}m" if minutes else f"{hours}h"
    return f"{minutes} minutes"

"""
Scoring engine.

Only multiple_choice and true_false questions are graded automatically, by
exact comparison with the stored correct answer. Every other type waits for a
teacher-supplied score between 0 and the question's points.
"""
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from tutorhub.core.errors import ValidationError
from tutorhub.models.orm import QuestionType

AUTO_GRADABLE_TYPES = frozenset({QuestionType.MULTIPLE_CHOICE.value, QuestionType.TRUE_FALSE.value})


@dataclass
class ScoreBreakdown:
    auto_score: float
    manual_score: float
    per_question: Dict[str, float] = field(default_factory=dict)
    pending_manual: List[int] = field(default_factory=list)

    @property
    def total(self) -> float:
        return self.auto_score + self.manual_score


def _type_of(question_or_type: Union[str, Any]) -> str:
    if isinstance(question_or_type, str):
        return question_or_type
    t = question_or_type.type
    return t.value if isinstance(t, QuestionType) else str(t)


def is_auto_gradable(question_or_type) -> bool:
    return _type_of(question_or_type) in AUTO_GRADABLE_TYPES


def validate_question_shape(qtype: str, options: Optional[List[str]], correct_answer: Any) -> None:
    if qtype == QuestionType.MULTIPLE_CHOICE.value:
        if not options or len(options) < 2:
            raise ValidationError("multiple_choice questions need at least two options")
        if len(set(options)) != len(options):
            raise ValidationError("multiple_choice options must be unique")
        if not isinstance(correct_answer, str) or correct_answer not in options:
            raise ValidationError("correct_answer must be one of the options", correct_answer=correct_answer)
    elif qtype == QuestionType.TRUE_FALSE.value:
        if not isinstance(correct_answer, bool):
            raise ValidationError("true_false correct_answer must be true or false", correct_answer=correct_answer)
    elif correct_answer is not None and not isinstance(correct_answer, str):
        raise ValidationError(f"{qtype} correct_answer must be reference text")


def validate_answer(question, answer: Any) -> None:
    qtype = _type_of(question)
    if qtype == QuestionType.TRUE_FALSE.value:
        if not isinstance(answer, bool):
            raise ValidationError("true_false answers must be true or false", question_id=question.id)
    elif qtype == QuestionType.MULTIPLE_CHOICE.value:
        if not isinstance(answer, str) or answer not in (question.options or []):
            raise ValidationError("answer must be one of the question options", question_id=question.id)
    elif not isinstance(answer, str):
        raise ValidationError(f"{qtype} answers must be text", question_id=question.id)


def is_correct(question, answer: Any) -> bool:
    """Exact, case-sensitive comparison; bool never equals its string form."""
    if not is_auto_gradable(question):
        return False
    expected = question.correct_answer
    if type(answer) is not type(expected):
        return False
    return answer == expected


def grade_automatic(submission, questions: Iterable) -> float:
    total = 0.0
    for q in questions:
        if not is_auto_gradable(q) or not submission.has_answer(q.id):
            continue
        if is_correct(q, submission.answer_for(q.id)):
            total += q.points
    return total


def manual_questions(questions: Iterable) -> List:
    return [q for q in questions if not is_auto_gradable(q)]


def validate_manual_scores(questions: Iterable, manual_scores: Mapping[Any, float]) -> Dict[str, float]:
    by_id = {str(q.id): q for q in manual_questions(questions)}
    cleaned: Dict[str, float] = {}
    for raw_id, raw_score in manual_scores.items():
        key = str(raw_id)
        q = by_id.get(key)
        if q is None:
            raise ValidationError("manual scores are only accepted for manually graded questions", question_id=key)
        try:
            score = float(raw_score)
        except (TypeError, ValueError):
            raise ValidationError("manual score must be a number", question_id=key)
        if not math.isfinite(score):
            raise ValidationError("manual score must be a finite number", question_id=key)
        if score < 0 or score > q.points:
            raise ValidationError(
                f"manual score must be between 0 and {q.points}", question_id=key, score=score
            )
        cleaned[key] = score
    return cleaned


def validate_feedback(questions: Iterable, feedback: Optional[Mapping[Any, str]]) -> Dict[str, str]:
    known = {str(q.id) for q in questions}
    notes: Dict[str, str] = {}
    for raw_id, text in (feedback or {}).items():
        key = str(raw_id)
        if key not in known:
            raise ValidationError("feedback refers to a question outside this assessment", question_id=key)
        if not isinstance(text, str):
            raise ValidationError("feedback must be text", question_id=key)
        notes[key] = text
    return notes


def grade_manual(submission, questions: Iterable, manual_scores: Mapping[Any, float]) -> ScoreBreakdown:
    questions = list(questions)
    cleaned = validate_manual_scores(questions, manual_scores)
    breakdown = ScoreBreakdown(auto_score=grade_automatic(submission, questions), manual_score=0.0)
    for q in questions:
        key = str(q.id)
        if is_auto_gradable(q):
            correct = submission.has_answer(q.id) and is_correct(q, submission.answer_for(q.id))
            breakdown.per_question[key] = float(q.points) if correct else 0.0
        elif key in cleaned:
            breakdown.per_question[key] = cleaned[key]
            breakdown.manual_score += cleaned[key]
        else:
            breakdown.per_question[key] = 0.0
            breakdown.pending_manual.append(q.id)
    return breakdown


def points_mismatch(questions: Iterable, total_points: int) -> int:
    """Sum of question points minus total_points; zero when they agree."""
    return sum(q.points for q in questions) - int(total_points or 0)

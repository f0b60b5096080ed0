from tutorhub.services.assessments import (
    archive, create_assessment, delete_assessment, duplicate_assessment, list_assessments, publish, restore,
    schedule, unpublish, update_assessment,
)
from tutorhub.services.questions import (
    add_question, delete_question, list_question_bank, reorder_questions, update_question,
)
from tutorhub.services.reports import build_teacher_report, get_analytics
from tutorhub.services.scoring import is_auto_gradable
from tutorhub.services.submissions import (
    assign_participant, grade, list_participant_submissions, record_answer, submit,
)

__all__ = [
    "add_question", "archive", "assign_participant", "build_teacher_report", "create_assessment",
    "delete_assessment", "delete_question", "duplicate_assessment", "get_analytics", "grade",
    "is_auto_gradable", "list_assessments", "list_participant_submissions", "list_question_bank", "publish",
    "record_answer", "reorder_questions", "restore", "schedule", "submit", "unpublish", "update_assessment",
    "update_question",
]

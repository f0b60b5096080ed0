"""
Populate a development database with subjects, participants and a sample quiz.

    python -m tutorhub.seed --database-url sqlite:///dev.db --subjects 4 --children 3
"""
import argparse
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from tutorhub.core.config import settings
from tutorhub.core.database import init_db, make_engine
from tutorhub.core.logging_config import configure_logging
from tutorhub.fixtures import SubjectNameGenerator
from tutorhub.models.orm import Child, ClientProfile, Course, QuestionType, Subject
from tutorhub.models.schemas import AssessmentSpec, QuestionSpec
from tutorhub.services.assessments import create_assessment, publish
from tutorhub.services.questions import add_question

logger = logging.getLogger(__name__)

SAMPLE_QUESTIONS = [
    QuestionSpec(question="2 + 2 = 4", type=QuestionType.TRUE_FALSE, correct_answer=True, points=25),
    QuestionSpec(question="Which number is prime?", type=QuestionType.MULTIPLE_CHOICE,
                 options=["4", "6", "7", "9"], correct_answer="7", points=25),
    QuestionSpec(question="Explain why the sum of two even numbers is even.", type=QuestionType.SHORT_ANSWER, points=50),
]


def seed(db: Session, teacher: str, subjects: int, children: int, clients: int, seed_value=None) -> dict:
    generator = SubjectNameGenerator(seed=seed_value)
    taken = set(db.scalars(select(Subject.slug)).all())
    created_subjects = []
    for _ in range(subjects):
        data = generator.next_subject(taken)
        taken.add(data["slug"])
        subject = Subject(**data)
        db.add(subject)
        created_subjects.append(subject)
    for i in range(children):
        db.add(Child(name=f"Student {i + 1}", parent_id="parent-demo"))
    for i in range(clients):
        db.add(ClientProfile(
            company_name=f"Client Co {i + 1}", contact_name=f"Contact {i + 1}", user_id=f"client-demo-{i + 1}",
        ))
    course = Course(title="Foundations", teacher_id=teacher)
    db.add(course)
    db.commit()

    spec = AssessmentSpec(
        title="Number sense check",
        course_id=course.id,
        subject_id=created_subjects[0].id if created_subjects else None,
        total_points=100,
        passing_points=60,
        time_limit=30,
    )
    assessment = create_assessment(db, spec, teacher)
    for q in SAMPLE_QUESTIONS:
        add_question(db, assessment.id, q)
    publish(db, assessment.id)
    summary = {"subjects": len(created_subjects), "children": children, "clients": clients, "assessment_id": assessment.id}
    logger.info(f"Seeded {summary}")
    return summary


def main(argv=None):
    ap = argparse.ArgumentParser(description="Seed a TutorHub assessments database")
    ap.add_argument("--database-url", dest="database_url", default=settings.DATABASE_URL)
    ap.add_argument("--teacher", default="teacher-demo")
    ap.add_argument("--subjects", type=int, default=4)
    ap.add_argument("--children", type=int, default=3)
    ap.add_argument("--clients", type=int, default=2)
    ap.add_argument("--seed", type=int, default=None)
    args = ap.parse_args(argv)

    configure_logging()
    engine = make_engine(args.database_url)
    init_db(bind=engine)
    with Session(engine) as db:
        return seed(db, args.teacher, args.subjects, args.children, args.clients, args.seed)


if __name__ == "__main__":
    main()

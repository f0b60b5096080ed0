import pytest

from tutorhub.fixtures import DEFAULT_SUBJECTS, SubjectNameGenerator, slugify, unique_slug
from tutorhub.models.orm import Assessment, Child, ClientProfile, Subject
from tutorhub.seed import seed


def test_generator_exhausts_catalogue_before_repeating():
    gen = SubjectNameGenerator(seed=7)
    first_round = [gen.next_name() for _ in DEFAULT_SUBJECTS]
    assert sorted(first_round) == sorted(DEFAULT_SUBJECTS)
    assert gen.next_name() in DEFAULT_SUBJECTS
    assert len(gen.used) == 1


def test_generators_do_not_share_state():
    a = SubjectNameGenerator(["Art", "Music"], seed=1)
    b = SubjectNameGenerator(["Art", "Music"], seed=1)
    a.next_name()
    assert len(a.used) == 1 and b.used == set()


def test_empty_catalogue_rejected():
    with pytest.raises(ValueError):
        SubjectNameGenerator([])


def test_unique_slug():
    assert slugify("Computer Science") == "computer-science"
    assert unique_slug("Computer Science", set()) == "computer-science"
    assert unique_slug("Computer Science", {"computer-science", "computer-science-1"}) == "computer-science-2"


def test_next_subject_avoids_taken_slugs():
    gen = SubjectNameGenerator(["Physics"])
    assert gen.next_subject({"physics"})["slug"] == "physics-1"


def test_seed_populates_database(db):
    summary = seed(db, "teacher-demo", subjects=10, children=2, clients=1, seed_value=3)
    assert summary["subjects"] == 10
    slugs = [s.slug for s in db.query(Subject).all()]
    assert len(slugs) == len(set(slugs)) == 10
    assert db.query(Child).count() == 2
    assert db.query(ClientProfile).count() == 1
    quiz = db.get(Assessment, summary["assessment_id"])
    assert quiz.is_published
    assert sum(q.points for q in quiz.questions) == quiz.total_points

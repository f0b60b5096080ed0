import pytest

from tutorhub.core.errors import NotFound, ValidationError
from tutorhub.models.orm import QuestionType
from tutorhub.models.schemas import AssessmentSpec, QuestionBankFilters, QuestionSpec, QuestionUpdate
from tutorhub.services import assessments, questions

from conftest import TEACHER


def test_add_question_assigns_next_order(db, clock, make_assessment, specs):
    a = make_assessment()
    first = questions.add_question(db, a.id, specs.true_false(), clock)
    second = questions.add_question(db, a.id, specs.essay_question(), clock)
    assert (first.order, second.order) == (1, 2)


def test_add_question_validates_shape(db, clock, make_assessment):
    a = make_assessment()
    bad = QuestionSpec(question="Pick", type=QuestionType.MULTIPLE_CHOICE, options=["a", "b"], correct_answer="c")
    with pytest.raises(ValidationError):
        questions.add_question(db, a.id, bad, clock)
    with pytest.raises(NotFound):
        questions.add_question(db, 999, QuestionSpec(question="?", type=QuestionType.ESSAY), clock)


def test_update_question_revalidates_merged_shape(db, clock, make_assessment, specs):
    a = make_assessment([specs.multiple_choice(options=("a", "b", "c"), answer="c")])
    q = a.questions[0]
    with pytest.raises(ValidationError):
        questions.update_question(db, q.id, QuestionUpdate(options=["a", "b"]))
    q = questions.update_question(db, q.id, QuestionUpdate(options=["a", "b"], correct_answer="b", points=5))
    assert q.options == ["a", "b"] and q.correct_answer == "b" and q.points == 5


def test_delete_question(db, clock, make_assessment, specs):
    a = make_assessment([specs.true_false(), specs.essay_question()])
    questions.delete_question(db, a.questions[0].id)
    db.refresh(a)
    assert len(a.questions) == 1
    with pytest.raises(NotFound):
        questions.delete_question(db, 12345)


def test_reorder_is_all_or_nothing(db, clock, make_assessment, specs):
    a = make_assessment([specs.true_false("one"), specs.true_false("two"), specs.true_false("three")])
    one, two, three = [q.id for q in a.questions]

    reordered = questions.reorder_questions(db, a.id, [three, one, two])
    assert [q.id for q in reordered] == [three, one, two]
    assert [q.order for q in reordered] == [1, 2, 3]

    for bad in ([three, one], [three, one, two, two], [three, one, two, 999]):
        with pytest.raises(ValidationError):
            questions.reorder_questions(db, a.id, bad)
    db.refresh(a)
    assert [q.id for q in a.questions] == [three, one, two]


def test_question_bank_search_and_filters(db, clock, make_assessment, specs):
    make_assessment([specs.true_false("Water boils at 100C"), specs.essay_question("Describe the water cycle")])
    make_assessment([specs.multiple_choice("Largest planet?", options=("Mars", "Jupiter"), answer="Jupiter")])
    other = assessments.create_assessment(db, AssessmentSpec(title="Theirs"), "teacher-2", clock)
    questions.add_question(db, other.id, specs.true_false("Water is wet"), clock)

    items, total = questions.list_question_bank(db, TEACHER, QuestionBankFilters(search="water"))
    assert total == 2
    assert {q.question for q in items} == {"Water boils at 100C", "Describe the water cycle"}

    items, total = questions.list_question_bank(db, TEACHER, QuestionBankFilters(search="jupiter"))
    assert [q.question for q in items] == ["Largest planet?"]

    items, total = questions.list_question_bank(db, TEACHER, QuestionBankFilters(type="essay"))
    assert total == 1 and items[0].type == "essay"

    items, total = questions.list_question_bank(db, TEACHER, QuestionBankFilters(page_size=2, page=2))
    assert total == 3 and len(items) == 1

from grading.models.exercise import ChoiceOption, QuestionKind
from grading.services import comparison_service as service
from grading.services.answer_key_service import ResolvedAnswer


def test_compare_multiple_select_is_set_equality() -> None:
    assert service.compare_multiple_select(["Paris", "London"], ["london", "PARIS"])
    assert not service.compare_multiple_select(["Paris"], ["Paris", "London"])
    assert not service.compare_multiple_select(["Paris", "Berlin"], ["Paris", "London"])
    assert service.compare_multiple_select(["Paris", "paris"], ["Paris"])


def test_compare_multiple_select_is_symmetric() -> None:
    pairs = [
        (["a", "b"], ["B", "A"]),
        (["a"], ["a", "b"]),
        ([], ["a"]),
        (["x", "y", "z"], ["x", "y"]),
    ]
    for left, right in pairs:
        assert service.compare_multiple_select(left, right) == service.compare_multiple_select(
            right, left
        )


def test_compare_fill_blank_is_case_insensitive() -> None:
    for submitted in ["Paris", "paris", "PARIS "]:
        text = service.user_answer_text(submitted)
        assert service.compare_fill_blank(text, ["Paris"])
    assert service.compare_fill_blank("colour", ["color", "Colour"])
    assert not service.compare_fill_blank("Lyon", ["Paris"])


def test_user_answer_texts_resolves_legacy_indexes() -> None:
    options = [ChoiceOption(id="0", text="Paris"), ChoiceOption(id="1", text='"London"')]

    assert service.user_answer_texts([0, 1], options) == ["Paris", "London"]
    assert service.user_answer_texts(1, options) == ["London"]
    assert service.user_answer_texts([5, "Rome", " "], options) == ["Rome"]
    assert service.user_answer_texts('"Paris"') == ["Paris"]


def test_user_answer_text_takes_first_list_element() -> None:
    assert service.user_answer_text(["42", "43"]) == "42"
    assert service.user_answer_text([]) == ""
    assert service.user_answer_text(42) == "42"


def test_judge_answer_multiple_choice() -> None:
    resolved = ResolvedAnswer(
        kind=QuestionKind.MULTIPLE_CHOICE, correct_texts=["Paris", "London"]
    )

    verdict = service.judge_answer("page_0_question_1", ["london", "Paris"], resolved)

    assert verdict is not None
    assert verdict.isCorrect is True
    assert verdict.userAnswer == ["london", "Paris"]
    assert verdict.correctAnswer == ["Paris", "London"]
    assert verdict.questionKey == "page_0_question_1"
    assert verdict.resolved is True


def test_judge_answer_fill_blank_variants() -> None:
    resolved = ResolvedAnswer(kind=QuestionKind.FILL_BLANK, correct_texts=["42"])

    verdict = service.judge_answer("page_1_question_2", "41", resolved)

    assert verdict is not None
    assert verdict.isCorrect is False
    assert verdict.correctAnswer == "42"


def test_judge_answer_with_empty_key_is_not_found() -> None:
    resolved = ResolvedAnswer(kind=QuestionKind.FILL_BLANK, correct_texts=[])
    assert service.judge_answer("page_0_question_1", "", resolved) is None


def test_unresolved_verdict() -> None:
    verdict = service.unresolved_verdict("page_3_question_1", "x")
    assert verdict.isCorrect is False
    assert verdict.resolved is False
    assert verdict.correctAnswer is None
    assert verdict.source is None

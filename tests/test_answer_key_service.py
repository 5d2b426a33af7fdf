import json

from grading.models.exercise import QuestionKind, parse_exercise_structure
from grading.models.validation import AnswerKeyEntry, PageMapping
from grading.services import answer_key_service as service

HEADER = (
    "exercise_id,page_id,question_type,question_number,question,"
    "is_correct,correct_answer_text,answer_text,option_id"
)


def _exercises() -> list[dict[str, object]]:
    return [
        {
            "exercise_id": "reading_comprehension_1",
            "pages": [
                {
                    "page_id": 1,
                    "template_type": "story_with_questions",
                    "components": [
                        {"type": "timer_selector"},
                        {
                            "type": "multiple_choice_checkbox",
                            "question_number": 1,
                            "options": [
                                {"id": "a", "text": "Paris", "correct": True},
                                {"id": "b", "text": "Berlin", "correct": False},
                            ],
                        },
                    ],
                },
                {
                    "page_id": 2,
                    "components": [
                        {
                            "type": "multiple_choice_checkbox",
                            "question_number": 1,
                            "options": [{"id": "a", "text": "Rome", "correct": "true"}],
                        }
                    ],
                },
            ],
        },
        {
            "exercise_id": "math_word_problems_1",
            "pages": [
                {
                    # Stale page_id must not affect positional lookup
                    "page_id": 1,
                    "components": [
                        {
                            "type": "fill_blank_question",
                            "question_number": 1,
                            "blanks": [{"id": "b1", "correct_answers": ["= 42"]}],
                        }
                    ],
                }
            ],
        },
    ]


def test_find_correct_answer_uses_cumulative_page_index() -> None:
    exercises = parse_exercise_structure(_exercises())

    resolved = service.find_correct_answer(exercises, 2, 1)

    assert resolved is not None
    assert resolved.kind is QuestionKind.FILL_BLANK
    assert resolved.correct_texts == ["42"]
    assert resolved.source == service.SOURCE_EXERCISE


def test_find_correct_answer_multiple_choice_accepts_string_true() -> None:
    exercises = parse_exercise_structure(_exercises())

    first = service.find_correct_answer(exercises, 0, 1)
    second = service.find_correct_answer(exercises, 1, 1, QuestionKind.MULTIPLE_CHOICE)

    assert first is not None and first.correct_texts == ["Paris"]
    assert [option.id for option in first.correct_options] == ["a"]
    assert second is not None and second.correct_texts == ["Rome"]


def test_find_correct_answer_respects_type_and_number() -> None:
    exercises = parse_exercise_structure(_exercises())

    assert service.find_correct_answer(exercises, 0, 2) is None
    assert service.find_correct_answer(exercises, 0, 1, QuestionKind.FILL_BLANK) is None
    assert service.find_correct_answer(exercises, 5, 1) is None


def test_find_correct_answer_without_question_number_matches_any() -> None:
    exercises = parse_exercise_structure(
        [
            {
                "pages": [
                    {
                        "components": [
                            {
                                "type": "fill_blank_question",
                                "blanks": [{"correctAnswers": ["blue"]}],
                            }
                        ]
                    }
                ]
            }
        ]
    )

    resolved = service.find_correct_answer(exercises, 0, 7)

    assert resolved is not None
    assert resolved.correct_texts == ["blue"]


def test_multiple_choice_without_correct_options_is_not_found() -> None:
    exercises = parse_exercise_structure(
        [
            {
                "pages": [
                    {
                        "components": [
                            {
                                "type": "multiple_choice_checkbox",
                                "question_number": 1,
                                "options": [
                                    {"text": "A", "correct": False},
                                    {"text": "B"},
                                ],
                            }
                        ]
                    }
                ]
            }
        ]
    )

    assert service.find_correct_answer(exercises, 0, 1) is None


def test_multiple_choice_component_level_fallback() -> None:
    exercises = parse_exercise_structure(
        [
            {
                "pages": [
                    {
                        "components": [
                            {
                                "type": "multiple_choice_checkbox",
                                "question_number": 1,
                                "options": [{"text": "A"}, {"text": "B"}],
                                "correct_answer": '"B"',
                            }
                        ]
                    }
                ]
            }
        ]
    )

    resolved = service.find_correct_answer(exercises, 0, 1)

    assert resolved is not None
    assert resolved.correct_texts == ["B"]
    assert resolved.correct_options[0].id == service.TEXT_ANSWER_OPTION_ID


def test_fill_blank_component_level_fallback_and_null_text() -> None:
    exercises = parse_exercise_structure(
        [
            {
                "pages": [
                    {
                        "components": [
                            {
                                "type": "fill_blank_question",
                                "question_number": 1,
                                "blanks": [],
                                "answer": "seven",
                            },
                            {
                                "type": "fill_blank_question",
                                "question_number": 2,
                                "blanks": [{"correct_answers": ["null", " "]}],
                            },
                        ]
                    }
                ]
            }
        ]
    )

    resolved = service.find_correct_answer(exercises, 0, 1)
    assert resolved is not None and resolved.correct_texts == ["seven"]
    assert service.find_correct_answer(exercises, 0, 2) is None


def test_load_exercise_structure_handles_invalid_json() -> None:
    assert service.load_exercise_structure("{not json") == []
    assert service.load_exercise_structure(None) == []
    exercises = service.load_exercise_structure(json.dumps(_exercises()))
    assert len(exercises) == 2
    assert len(exercises[0].pages) == 2


def test_extract_correct_answers_dedupes_text() -> None:
    csv_content = "\n".join(
        [
            HEADER,
            "capitals,1,fill_blank_question,1,Capital of France?,true,,Paris,",
            "capitals,1,fill_blank_question,1,Capital of France?,false,Paris,,",
        ]
    )

    answer_key = service.extract_correct_answers(csv_content)

    entry = answer_key["capitals_1_fill_blank_question_1"]
    assert entry.correctAnswerText == ["Paris"]
    assert entry.pageId == 1
    assert entry.questionNumber == 1
    assert entry.correctOptions == []


def test_extract_correct_answers_multiple_choice_rows() -> None:
    csv_content = "\n".join(
        [
            HEADER,
            'quiz,2,multiple_choice_checkbox,3,"Pick cities, all",true,,"Paris, France",opt1',
            "quiz,2,multiple_choice_checkbox,3,Pick cities,true,,London,",
            "quiz,2,multiple_choice_checkbox,3,Pick cities,false,,Berlin,opt3",
            "quiz,2,multiple_choice_checkbox,3,Pick cities,true,,null,opt4",
        ]
    )

    answer_key = service.extract_correct_answers(csv_content)

    entry = answer_key["quiz_2_multiple_choice_checkbox_3"]
    assert entry.question == "Pick cities, all"
    assert entry.correctAnswerText == ["Paris, France", "London"]
    assert [(option.id, option.text) for option in entry.correctOptions] == [
        ("opt1", "Paris, France"),
        ("1", "London"),
    ]


def test_extract_correct_answers_skips_malformed_rows() -> None:
    csv_content = "\n".join(
        [
            HEADER,
            "quiz,1,fill_blank_question,1,Q,true",
            "",
            "quiz,1,fill_blank_question,2,Q,true,,42,",
        ]
    )

    answer_key = service.extract_correct_answers(csv_content)

    assert list(answer_key) == ["quiz_1_fill_blank_question_2"]


def test_extract_correct_answers_empty_input() -> None:
    assert service.extract_correct_answers(None) == {}
    assert service.extract_correct_answers("") == {}
    assert service.extract_correct_answers(HEADER) == {}


def test_split_csv_line_keeps_commas_in_quotes() -> None:
    assert service.split_csv_line('a,"b, c", d ') == ["a", "b, c", "d"]


def test_legacy_candidate_keys_order() -> None:
    assert service.legacy_candidate_keys(0, 1) == [
        "reading_comprehension_1_1_fill_blank_question_1",
        "reading_comprehension_1_1_multiple_choice_checkbox_1",
        "reading_comprehension_1_1_fill_blank_question_1",
        "math_word_problems_1_1_fill_blank_question_1",
    ]
    assert service.legacy_candidate_keys(2, 4) == [
        "reading_comprehension_1_3_fill_blank_question_4",
        "reading_comprehension_1_3_multiple_choice_checkbox_4",
        "math_word_problems_1_1_fill_blank_question_4",
        "math_word_problems_1_1_multiple_choice_checkbox_4",
        "math_word_problems_1_2_fill_blank_question_4",
        "math_word_problems_1_2_multiple_choice_checkbox_4",
        "reading_comprehension_1_3_fill_blank_question_4",
        "math_word_problems_1_3_fill_blank_question_4",
    ]
    assert service.legacy_candidate_keys(5, 2)[0] == "math_word_problems_1_4_fill_blank_question_2"


def test_candidate_keys_prefers_page_map() -> None:
    page_map = [None, PageMapping(exerciseId="essay", pageId=3)]

    keys = service.candidate_keys(1, 2, page_map=page_map, legacy=False)
    assert keys == [
        "essay_3_fill_blank_question_2",
        "essay_3_multiple_choice_checkbox_2",
    ]

    keys = service.candidate_keys(1, 2, page_map=page_map, legacy=True)
    assert keys[:2] == ["essay_3_fill_blank_question_2", "essay_3_multiple_choice_checkbox_2"]
    assert keys[2] == "reading_comprehension_1_2_fill_blank_question_2"
    assert service.candidate_keys(0, 2, page_map=page_map, legacy=False) == []


def test_build_page_map_tracks_exercise_positions() -> None:
    exercises = parse_exercise_structure(
        [
            {"exercise_id": "ex1", "pages": [{"page_id": 1}, {}]},
            {"title": "untitled", "pages": [{"page_id": 1}]},
        ]
    )

    page_map = service.build_page_map(exercises)

    assert page_map[0] == PageMapping(exerciseId="ex1", pageId=1)
    assert page_map[1] == PageMapping(exerciseId="ex1", pageId=2)
    assert page_map[2] is None


def test_resolve_from_answer_key_skips_unusable_entries() -> None:
    answer_key = {
        "reading_comprehension_1_1_fill_blank_question_1": AnswerKeyEntry(
            questionType="fill_blank_question", correctAnswerText=["null"]
        ),
        "reading_comprehension_1_1_multiple_choice_checkbox_1": AnswerKeyEntry(
            questionType="multiple_choice_checkbox", correctAnswerText=["A", "C"]
        ),
    }

    resolved = service.resolve_from_answer_key(answer_key, 0, 1, legacy=True)

    assert resolved is not None
    assert resolved.kind is QuestionKind.MULTIPLE_CHOICE
    assert resolved.correct_texts == ["A", "C"]
    assert resolved.source == service.SOURCE_CSV
    assert resolved.key == "reading_comprehension_1_1_multiple_choice_checkbox_1"
    assert service.resolve_from_answer_key(answer_key, 0, 1, legacy=False) is None


def test_find_correct_answer_skips_component_without_usable_text() -> None:
    exercises = parse_exercise_structure(
        [
            {
                "pages": [
                    {
                        "components": [
                            {
                                "type": "multiple_choice_checkbox",
                                "question_number": 1,
                                "options": [{"text": "null", "correct": True}],
                            },
                            {
                                "type": "fill_blank_question",
                                "question_number": 1,
                                "blanks": [{"correct_answers": ["Paris"]}],
                            },
                        ]
                    }
                ]
            }
        ]
    )

    resolved = service.find_correct_answer(exercises, 0, 1)

    assert resolved is not None
    assert resolved.kind is QuestionKind.FILL_BLANK
    assert resolved.correct_texts == ["Paris"]

import json
from pathlib import Path

import pytest

import cli
from grading.services import validation_service

CSV_CONTENT = "\n".join(
    [
        "exercise_id,page_id,question_type,question_number,question,"
        "is_correct,correct_answer_text,answer_text,option_id",
        "reading_comprehension_1,1,fill_blank_question,1,Color?,true,,blue,",
    ]
)


def _write_request(tmp_path: Path, answers: dict[str, object]) -> Path:
    path = tmp_path / "request.json"
    path.write_text(
        json.dumps({"assignmentId": "a1", "answers": answers, "homeworkData": {}}),
        encoding="utf-8",
    )
    return path


def test_extract_key_prints_answer_key(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    csv_path = tmp_path / "key.csv"
    csv_path.write_text(CSV_CONTENT, encoding="utf-8")

    cli.main(["extract-key", str(csv_path)])

    output = json.loads(capsys.readouterr().out)
    entry = output["reading_comprehension_1_1_fill_blank_question_1"]
    assert entry["correctAnswerText"] == ["blue"]


def test_extract_key_missing_file(tmp_path: Path) -> None:
    with pytest.raises(SystemExit):
        cli.main(["extract-key", str(tmp_path / "missing.csv")])


def test_validate_uses_csv_fallback(tmp_path: Path) -> None:
    csv_path = tmp_path / "key.csv"
    csv_path.write_text(CSV_CONTENT, encoding="utf-8")
    request_path = _write_request(tmp_path, {"page_0_question_1": "Blue", "page_4_question_1": "x"})
    output_path = tmp_path / "out" / "result.json"

    cli.main(["--output", str(output_path), "validate", str(request_path), "--csv", str(csv_path)])

    result = json.loads(output_path.read_text(encoding="utf-8"))
    assert result["validationResults"]["page_0_question_1"]["isCorrect"] is True
    assert result["validationResults"]["page_4_question_1"]["resolved"] is False
    assert result["totalQuestions"] == 2
    assert result["correctAnswers"] == 1


def test_validate_flags(tmp_path: Path) -> None:
    csv_path = tmp_path / "key.csv"
    csv_path.write_text(CSV_CONTENT, encoding="utf-8")
    request_path = _write_request(tmp_path, {"page_0_question_1": "Blue"})

    args = cli.parse_args(
        ["validate", str(request_path), "--csv", str(csv_path), "--no-legacy-keys", "--exclude-unresolved"]
    )
    result = cli.run(args)

    assert result["validationResults"]["page_0_question_1"]["resolved"] is False
    assert result["totalQuestions"] == 0
    assert result["unresolvedQuestions"] == 1


def test_validate_follows_configured_policy(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(validation_service, "UNRESOLVED_POLICY", "exclude")
    request_path = _write_request(tmp_path, {"page_4_question_1": "x"})

    result = cli.run(cli.parse_args(["validate", str(request_path)]))

    assert result["unresolvedQuestions"] == 1
    assert result["totalQuestions"] == 0

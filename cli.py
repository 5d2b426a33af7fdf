import argparse
import sys
from pathlib import Path

from core.logging_setup import setup_console_logging
from grading.config import LOG_LEVEL
from grading.services.answer_key_service import extract_correct_answers
from grading.services.validation_service import UnresolvedPolicy, validate_answers
from grading.utils import json_dump, read_json_file, read_text_file, write_json_file


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Homework answer-key and grading tools")
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write the JSON result to this file instead of stdout",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    extract = subparsers.add_parser("extract-key", help="Extract the answer key from a CSV file")
    extract.add_argument("csv", type=Path, help="Path to the CSV answer-key table")

    validate = subparsers.add_parser("validate", help="Validate answers from a request JSON file")
    validate.add_argument("request", type=Path, help="Path to the validation request JSON")
    validate.add_argument(
        "--csv",
        type=Path,
        default=None,
        help="CSV answer key used when the exercise data has no answer",
    )
    validate.add_argument(
        "--exclude-unresolved",
        action="store_true",
        help="Leave questions without correct answers out of totalQuestions",
    )
    validate.add_argument(
        "--no-legacy-keys",
        action="store_true",
        help="Do not guess CSV keys from page positions",
    )
    return parser.parse_args(argv)


def run(args: argparse.Namespace) -> dict[str, object]:
    if args.command == "extract-key":
        csv_content = read_text_file(args.csv)
        if csv_content is None:
            raise SystemExit(f"CSV file not found: {args.csv}")
        answer_key = extract_correct_answers(csv_content)
        return {key: entry.model_dump() for key, entry in answer_key.items()}

    request = read_json_file(args.request, None)
    if request is None:
        raise SystemExit(f"Request file not found: {args.request}")
    csv_content = read_text_file(args.csv)
    policy = UnresolvedPolicy.EXCLUDE if args.exclude_unresolved else None
    response = validate_answers(
        request,
        lambda _assignment_id: csv_content,
        policy=policy,
        legacy_key_guessing=False if args.no_legacy_keys else None,
    )
    return response.model_dump()


def main(argv: list[str] | None = None) -> None:
    setup_console_logging(LOG_LEVEL)
    args = parse_args(argv)
    result = run(args)
    if args.output:
        write_json_file(args.output, result)
        print(f"Saved result to {args.output}", file=sys.stderr)
    else:
        print(json_dump(result))


if __name__ == "__main__":
    main()

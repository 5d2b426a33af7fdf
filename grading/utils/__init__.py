"""Utility modules."""
from grading.utils.answer_text import (
    answer_to_text,
    clean_answer_text,
    is_usable_answer_text,
    normalize_correct_texts,
    strip_formula_prefix,
)
from grading.utils.json_utils import (
    json_dump,
    json_load,
    read_json_file,
    read_text_file,
    write_json_file,
)
from grading.utils.time_utils import parse_iso_timestamp, utc_now
from grading.utils.validation import validate_id

__all__ = [
    "answer_to_text",
    "clean_answer_text",
    "is_usable_answer_text",
    "normalize_correct_texts",
    "strip_formula_prefix",
    "json_dump",
    "json_load",
    "read_json_file",
    "read_text_file",
    "write_json_file",
    "parse_iso_timestamp",
    "utc_now",
    "validate_id",
]

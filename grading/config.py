"""Application configuration and constants."""
import os
from pathlib import Path


def _parse_int_env(name: str, default: int) -> int:
    """Parse integer from environment variable."""
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _parse_bool_env(name: str, default: bool) -> bool:
    """Parse boolean flag from environment variable."""
    raw = os.environ.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    return default


# Database
DB_DIR = Path(os.environ.get("DB_DIR", Path.cwd() / "data"))
DB_DIR.mkdir(parents=True, exist_ok=True)
DATABASE_URL = os.environ.get(
    "DATABASE_URL", f"sqlite:///{DB_DIR / 'homework.db'}"
)

# Logging
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# Answer normalization
NORMALIZE_MAX_ITERATIONS = _parse_int_env("NORMALIZE_MAX_ITERATIONS", 10)

# Grading policy
# "count_as_incorrect" keeps unresolved questions in totalQuestions,
# "exclude" drops them from the denominator.
UNRESOLVED_POLICY = os.environ.get("UNRESOLVED_POLICY", "count_as_incorrect")

# Heuristic CSV key templates (reading_comprehension_1 / math_word_problems_1)
LEGACY_CSV_KEY_GUESSING = _parse_bool_env("LEGACY_CSV_KEY_GUESSING", True)

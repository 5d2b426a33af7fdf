"""Validation utilities."""
from fastapi import HTTPException


def validate_id(name: str, value: object) -> str:
    """Validate an identifier string (non-empty, no whitespace or separators)."""
    if isinstance(value, int) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str):
        raise HTTPException(status_code=400, detail=f"{name} is required")
    cleaned = value.strip()
    if not cleaned:
        raise HTTPException(status_code=400, detail=f"{name} is required")
    if any(ch.isspace() for ch in cleaned) or "/" in cleaned or "\\" in cleaned:
        raise HTTPException(status_code=400, detail=f"Invalid {name}")
    return cleaned

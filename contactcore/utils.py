"""Utility functions for contactcore."""

import uuid
from pathlib import Path
from typing import Union


def generate_id() -> str:
    """Generate an opaque, globally unique record id (32 hex characters)."""
    return uuid.uuid4().hex


def sanitize_string(value: Union[str, None]) -> str:
    """Remove null bytes and surrounding whitespace from user input."""
    if value is None:
        return ""
    return value.replace("\0", "").strip()


def read_card_file(file_path: Union[str, Path]) -> str:
    """Read a card file as text.

    Bytes that are not valid UTF-8 are carried through as surrogate escapes so
    that the decoder can apply its own charset fallback per value.

    Raises:
        FileNotFoundError: If the file does not exist
    """
    path = Path(file_path)

    if not path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    with open(path, "r", encoding="utf-8", errors="surrogateescape", newline="") as f:
        return f.read()

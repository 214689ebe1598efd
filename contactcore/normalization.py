"""
Normalization Utilities

Pure functions that turn raw phone, email and name strings into the canonical
keys used for duplicate detection. Normalized forms are for comparison only and
are never shown to a user.
"""

import math
import re
from typing import Optional, Tuple

_NON_DIGIT = re.compile(r"\D")
_WHITESPACE_RUN = re.compile(r"\s+")
# Digits, plus sign, dashes, whitespace and parentheses survive sanitizing
_PHONE_DISPLAY_JUNK = re.compile(r"[^\d+\-\s()]")


def normalize_phone(raw: Optional[str]) -> str:
    """Normalize a phone number for identity comparison.

    All non-digit characters are stripped. A leading ``+`` in the source is
    preserved, so ``+15551234567`` and ``15551234567`` are different numbers.

    Args:
        raw: Phone number as entered

    Returns:
        Digits only, re-prefixed with ``+`` when the input started with one
    """
    if not raw:
        return ""
    phone = raw.strip()
    digits = _NON_DIGIT.sub("", phone)
    return f"+{digits}" if phone.startswith("+") else digits


def sanitize_phone(raw: Optional[str]) -> str:
    """Keep only characters that belong in a displayed phone number."""
    if raw is None:
        return ""
    return _PHONE_DISPLAY_JUNK.sub("", raw)


def normalize_name(raw: Optional[str]) -> str:
    """Normalize a display name for identity comparison.

    Lowercases, trims and collapses whitespace runs. Honorifics are kept:
    "Mrs Adegboyega" and "Mr Adegboyega" stay distinct.
    """
    if not raw:
        return ""
    return _WHITESPACE_RUN.sub(" ", raw.lower().strip())


def normalize_email(raw: Optional[str]) -> str:
    """Trim and lowercase an email address."""
    if not raw:
        return ""
    return raw.strip().lower()


def _longest_common_substring(first: str, second: str) -> Tuple[int, int, int]:
    """Return (start in first, start in second, length) of the first longest match."""
    best_first = best_second = best_length = 0
    for i in range(len(first)):
        for j in range(len(second)):
            k = 0
            while (
                i + k < len(first)
                and j + k < len(second)
                and first[i + k] == second[j + k]
            ):
                k += 1
            if k > best_length:
                best_first, best_second, best_length = i, j, k
    return best_first, best_second, best_length


def similar_text(first: str, second: str) -> int:
    """Count characters shared by two strings.

    Finds the longest common substring, then recurses into the unmatched
    parts on its left and on its right and sums all matched lengths.
    """
    if not first or not second:
        return 0

    pos_first, pos_second, length = _longest_common_substring(first, second)
    if length == 0:
        return 0

    return (
        length
        + similar_text(first[:pos_first], second[:pos_second])
        + similar_text(first[pos_first + length:], second[pos_second + length:])
    )


def similar_text_percent(first: str, second: str) -> int:
    """Similarity of two strings as a whole percentage (0-100).

    ``2 * matched / (len(first) + len(second)) * 100``, rounded half up.
    """
    total_length = len(first) + len(second)
    if total_length == 0:
        return 0
    percent = similar_text(first, second) * 2 * 100 / total_length
    return int(math.floor(percent + 0.5))

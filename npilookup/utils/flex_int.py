"""Lenient integer decoding for registry JSON fields.

The registry returns epoch timestamps either as integers (``1234567890``) or
as numeric strings (``"1234567890"``), and sometimes as an empty string.
"""

from typing import Any


def parse_flex_int(value: Any) -> int:
    """Converts an int, a numeric string, an empty string or None to int.

    Raises:
        ValueError: If the value cannot be read as an integer.
    """
    if value is None:
        return 0
    # bool is an int subclass but never a valid epoch
    if isinstance(value, bool):
        raise ValueError(f"Cannot parse boolean {value!r} as integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        try:
            return int(text)
        except ValueError:
            raise ValueError(f"Cannot parse {value!r} as integer") from None
    raise ValueError(f"Cannot parse {type(value).__name__} value {value!r} as integer")

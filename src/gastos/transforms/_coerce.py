"""Lenient scalar coercion for upstream JSON values."""


def to_int(value) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def to_float(value) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def to_str(value) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None

# ids and amounts are stored as 32-bit INTEGER columns
MAX_INT = 2 ** 31 - 1


def as_int(value):
    """Lenient int parsing for JSON/form input. None when not a whole number in column range."""
    if isinstance(value, bool):
        return None
    if isinstance(value, float):
        value = int(value) if value.is_integer() else None
    elif isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError:
            return None
    if not isinstance(value, int) or not -MAX_INT <= value <= MAX_INT:
        return None
    return value


def as_float(value):
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None

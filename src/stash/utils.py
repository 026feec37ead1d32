from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional


def normalize_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def clamp_int(value: Any, lo: int, hi: int, fallback: int) -> int:
    """Coerce ``value`` to an int inside ``[lo, hi]``, or ``fallback`` if it isn't numeric."""
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return fallback
    if parsed != parsed or parsed in (float("inf"), float("-inf")):
        return fallback
    return min(hi, max(lo, int(parsed // 1)))


def normalize_working_set_ids(raw_value: Any, max_items: int = 50) -> List[str]:
    """Trim, de-duplicate and cap a list of ids. Strings are split on commas/newlines."""
    if isinstance(raw_value, str):
        values: Iterable[Any] = raw_value.replace("\n", ",").split(",")
    elif isinstance(raw_value, (list, tuple, set)):
        values = raw_value
    else:
        values = []

    ids: List[str] = []
    seen = set()
    for value in values:
        normalized = normalize_text(value)
        if not normalized or normalized in seen:
            continue
        seen.add(normalized)
        ids.append(normalized)
        if len(ids) >= max_items:
            break
    return ids


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_aware(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes (sqlite hands these back) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def timestamp_or_zero(value: Optional[datetime]) -> float:
    aware = as_aware(value)
    return aware.timestamp() if aware else 0.0

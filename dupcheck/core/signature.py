from typing import Any, Dict, Mapping, Sequence

SEPARATOR = "|"


def normalize_value(value: Any) -> str:
    """Flow inputs may arrive as None or non-strings; store them trimmed."""
    if value is None:
        return ""
    return str(value).strip()


def normalize_criteria(fields: Sequence[str], values: Mapping[str, Any]) -> Dict[str, str]:
    """Build a criteria mapping in profile field order, missing fields as ''."""
    return {name: normalize_value(values.get(name)) for name in fields}


def compute_signature(criteria: Mapping[str, str]) -> str:
    """
    Equality key over the current criteria values.
    Order follows the mapping's insertion order, which the session fixes
    to the profile's field order, so identical values give identical keys.
    """
    return SEPARATOR.join(criteria.values())


def has_any_input(criteria: Mapping[str, str]) -> bool:
    return any(v for v in criteria.values())

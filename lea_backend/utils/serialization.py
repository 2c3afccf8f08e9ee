from dataclasses import asdict, is_dataclass
from datetime import date, datetime, timezone
from typing import Any, Optional

from pydantic.alias_generators import to_camel


def iso_timestamp(value: Optional[datetime]) -> Optional[str]:
    """ISO-8601 in UTC with milliseconds and a ``Z`` suffix. Naive values are taken as UTC."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def camelize(value: Any) -> Any:
    """Dataclasses and dicts to JSON-ready values with camelCase keys."""
    if is_dataclass(value) and not isinstance(value, type):
        value = asdict(value)
    if isinstance(value, dict):
        return {to_camel(k) if "_" in k else k: camelize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [camelize(v) for v in value]
    if isinstance(value, datetime):
        return iso_timestamp(value)
    if isinstance(value, date):
        return value.isoformat()
    return value

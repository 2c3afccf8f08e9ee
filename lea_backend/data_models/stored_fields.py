"""
Typed decoding of JSON stored in text columns.

Some columns keep a JSON-encoded list of strings (``community_notes.reasons``,
``verified_researchers.research_topics``). Each such column is described by a
``StoredJsonField``: the pydantic type the decoded value must satisfy, the
value to use when the column is NULL, and the value to use when the stored
text does not satisfy the type. Decoding never raises.
"""
import json
from dataclasses import dataclass
from typing import Any, List, Optional

from pydantic import TypeAdapter, ValidationError

from lea_backend.utils.logger import logger

_STRING_LIST = TypeAdapter(List[str])


@dataclass(frozen=True)
class StoredJsonField:
    column: str
    adapter: TypeAdapter
    when_null: Any
    when_invalid: Any

    def decode(self, raw: Optional[str]) -> Any:
        if raw is None or raw == "":
            return _copy(self.when_null)
        try:
            return self.adapter.validate_python(json.loads(raw), strict=True)
        except (ValueError, ValidationError) as e:
            # json.JSONDecodeError is a ValueError
            logger.warning("Invalid JSON in %s, using fallback: %s", self.column, e)
            return _copy(self.when_invalid)


def _copy(value: Any) -> Any:
    return list(value) if isinstance(value, list) else value


NOTE_REASONS = StoredJsonField(
    column="community_notes.reasons",
    adapter=_STRING_LIST,
    when_null=[],
    when_invalid=[],
)

RESEARCH_TOPICS = StoredJsonField(
    column="verified_researchers.research_topics",
    adapter=_STRING_LIST,
    when_null=None,
    when_invalid=None,
)

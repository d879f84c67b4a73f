"""JSON column types with a validated serialization boundary.

Values are validated with a pydantic ``TypeAdapter`` when written and again
when read, so malformed JSON never leaks past the model layer.
"""
from typing import Any, Dict, List, Union

from pydantic import TypeAdapter
from sqlalchemy import JSON
from sqlalchemy.types import TypeDecorator


class ValidatedJSON(TypeDecorator):
    """JSON column validated against ``adapter`` on bind and on load"""

    impl = JSON
    cache_ok = True

    adapter: TypeAdapter = TypeAdapter(Any)

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return self.adapter.dump_python(self.adapter.validate_python(value), mode="json")

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, (str, bytes)):
            return self.adapter.validate_json(value)
        return self.adapter.validate_python(value)


class OptionList(ValidatedJSON):
    """Ordered list of option labels"""

    cache_ok = True
    adapter = TypeAdapter(List[str])


class ResultsMap(ValidatedJSON):
    """Option index (as string) -> accumulated weight"""

    cache_ok = True
    adapter = TypeAdapter(Dict[str, Union[int, float]])


class BallotPayload(ValidatedJSON):
    """Raw vote payload: a JSON object or list. Option shape is left to the tally."""

    cache_ok = True
    adapter = TypeAdapter(Union[Dict[str, Any], List[Any]])

    def process_result_value(self, value, dialect):
        # Unvalidated on load; unreadable ballots are skipped when tallying
        return value

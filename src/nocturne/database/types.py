"""Custom SQLAlchemy column types for nocturne."""

import json

from typing import Any

import numpy as np

from sqlalchemy import LargeBinary, Text, TypeDecorator


class ValidatedJSON(TypeDecorator[dict[str, Any]]):
    """
    A JSON column type that validates JSON before storing.

    Values are serialized with json.dumps on the way in and deserialized on
    the way out; unserializable values raise ValueError at bind time.
    """

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> str | None:
        if value is None:
            return None

        try:
            return json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise ValueError(
                f"Cannot serialize value to JSON: {e}. Value type: {type(value).__name__}"
            ) from e

    def process_result_value(self, value: str | None, dialect: Any) -> Any:
        if value is None:
            return None

        try:
            return json.loads(value)
        except json.JSONDecodeError as e:
            raise ValueError(
                f"Stored value is not valid JSON: {e}. Value: {value[:100]}..."
            ) from e


class ValidatedJSONWithDefault(ValidatedJSON):
    """A ValidatedJSON column that reads back NULL as an empty dict."""

    def process_result_value(self, value: str | None, dialect: Any) -> Any:
        result = super().process_result_value(value, dialect)
        return result if result is not None else {}


class SampleArray(TypeDecorator[np.ndarray]):
    """
    Stores a signal's samples as raw float32 bytes.

    No compression - SQLite and the filesystem handle that efficiently.
    """

    impl = LargeBinary
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> bytes | None:
        if value is None:
            return None
        return np.asarray(value, dtype=np.float32).tobytes()

    def process_result_value(self, value: bytes | None, dialect: Any) -> Any:
        if value is None:
            return np.array([], dtype=np.float32)
        return np.frombuffer(value, dtype=np.float32).copy()

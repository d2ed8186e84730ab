"""Validation helpers for settings read from the environment."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from pydantic_settings import EnvSettingsSource

if TYPE_CHECKING:
    from pydantic.fields import FieldInfo

# list[str] settings that accept either JSON or comma-separated values
STRING_LIST_FIELDS = frozenset({"cors_origins"})


def _parse_json_list(text: str) -> list[str]:
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON array: {e}") from e
    if not isinstance(parsed, list) or not all(isinstance(item, str) for item in parsed):
        raise ValueError("JSON value must be an array of strings")
    return parsed


def parse_string_list(value: str | list[str], *, allow_empty: bool = False) -> list[str]:
    """Parse a string list given as a list, a JSON array string, or a CSV string.

    Raises ValueError for blank strings, malformed JSON, and (unless
    ``allow_empty``) empty results.
    """
    if isinstance(value, list):
        items = value
    else:
        text = value.strip()
        if not text:
            raise ValueError("String list value must not be empty")
        if text.startswith("["):
            items = _parse_json_list(text)
        else:
            items = [part.strip() for part in text.split(",") if part.strip()]

    if not items and not allow_empty:
        raise ValueError("String list value must not be empty")
    return items


class StringListEnvSettingsSource(EnvSettingsSource):
    """Env source that hands STRING_LIST_FIELDS to validators as raw strings.

    pydantic-settings would otherwise JSON-decode list fields itself and
    reject the comma-separated form before ``parse_string_list`` runs.
    """

    def prepare_field_value(
        self,
        field_name: str,
        field: FieldInfo,
        value: Any,  # noqa: ANN401
        value_is_complex: bool,  # noqa: FBT001
    ) -> Any:  # noqa: ANN401
        if field_name in STRING_LIST_FIELDS and isinstance(value, str):
            return value
        return super().prepare_field_value(field_name, field, value, value_is_complex)

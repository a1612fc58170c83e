"""
Guest Order Service — カスタムフィールド

書き込み時: 定義に対してボディの customFields を検証し、
           json 型の値はシリアライズして保存する。
読み取り時: $expand=customFields.<name> で指定された json 型フィールドを
           デコードして返す。それ以外の型はそのまま。
"""

import json
from datetime import date, datetime
from typing import Any

from .config import CustomField
from .errors import WrongParameterError


def _matches_type(value: Any, field_type: str) -> bool:
    if field_type == "string":
        return isinstance(value, str)
    if field_type == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if field_type == "boolean":
        return isinstance(value, bool)
    if field_type == "date":
        if not isinstance(value, str):
            return False
        try:
            # Python 3.10 の fromisoformat は末尾の Z を受け付けない
            datetime.fromisoformat(
                value[:-1] + "+00:00" if value.endswith(("Z", "z")) else value
            )
        except ValueError:
            try:
                date.fromisoformat(value)
            except ValueError:
                return False
        return True
    # json: 任意の JSON 値
    return True


def validate_custom_fields(
    custom_fields: dict[str, Any] | None,
    definitions: list[CustomField],
) -> None:
    """定義外のキー・型違い・必須欠落があれば WrongParameterError"""
    values = custom_fields or {}
    by_name = {d.name: d for d in definitions}
    errors: list[str] = []

    for name, value in values.items():
        definition = by_name.get(name)
        if definition is None:
            errors.append(f"customFields.{name} is not a defined custom field")
        elif value is not None and not _matches_type(value, definition.type):
            errors.append(f"customFields.{name} must be of type {definition.type}")

    for definition in definitions:
        if definition.required and values.get(definition.name) is None:
            errors.append(f"customFields.{definition.name} is required")

    if errors:
        raise WrongParameterError("; ".join(errors))


def serialize_custom_fields(
    custom_fields: dict[str, Any] | None,
    definitions: list[CustomField],
) -> dict[str, Any] | None:
    if custom_fields is None:
        return None
    json_fields = {d.name for d in definitions if d.type == "json"}
    return {
        name: json.dumps(value) if name in json_fields and value is not None else value
        for name, value in custom_fields.items()
    }


def expand_custom_fields(
    custom_fields: dict[str, Any] | None,
    definitions: list[CustomField],
    names_to_expand: set[str],
) -> dict[str, Any] | None:
    if custom_fields is None:
        return None
    expandable = {
        d.name for d in definitions if d.type == "json" and d.name in names_to_expand
    }
    expanded = dict(custom_fields)
    for name in expandable:
        value = expanded.get(name)
        if isinstance(value, str):
            expanded[name] = json.loads(value)
    return expanded

"""Per-item parameter lookup and coercion."""

import json
from typing import Any, Dict, Mapping, Optional, Sequence

from redisops.errors import ParameterValidationError
from redisops.errors_catalog import actionable_error
from redisops.models import Item

MISSING = object()

FIELD_REFERENCE_PREFIX = "$json."

_TRUE_WORDS = {"true", "1", "yes", "on"}
_FALSE_WORDS = {"false", "0", "no", "off", ""}


def get_path(data: Any, path: str) -> Any:
    current = data
    for part in path.split("."):
        if isinstance(current, Mapping) and part in current:
            current = current[part]
        elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        else:
            return MISSING
    return current


def set_path(data: Dict[str, Any], path: str, value: Any):
    """Assign `value` at a dotted path, creating intermediate mappings."""
    parts = path.split(".")
    current = data
    for part in parts[:-1]:
        child = current.get(part)
        if not isinstance(child, dict):
            child = {}
            current[part] = child
        current = child
    current[parts[-1]] = value


class ParameterResolver:
    """Implements `get(name, item_index, default)` over item and run-level parameters.

    A field present in the item payload wins over the run-level value. A
    string written as `$json.<path>` is read from the item's own payload, so
    a single run can target a different key per item.
    """

    def __init__(self, parameters: Optional[Mapping[str, Any]], items: Sequence[Item]):
        self.parameters = dict(parameters or {})
        self.items = items

    def _payload(self, item_index: int) -> Mapping[str, Any]:
        if item_index < len(self.items):
            return self.items[item_index].json
        return {}

    def get(self, name: str, item_index: int, default: Any = MISSING) -> Any:
        payload = self._payload(item_index)
        value = payload.get(name, MISSING)
        if value is MISSING:
            value = self.parameters.get(name, MISSING)

        if isinstance(value, str) and value.startswith(FIELD_REFERENCE_PREFIX):
            value = get_path(payload, value[len(FIELD_REFERENCE_PREFIX):])

        if value is MISSING:
            if default is MISSING:
                raise ParameterValidationError(
                    actionable_error("missing_parameter", name=name, item_index=item_index)
                )
            return default
        return value

    def resolve(self, name: str, kind: str, item_index: int, default: Any = MISSING) -> Any:
        raw = self.get(name, item_index, default)
        try:
            return coerce(kind, raw)
        except (TypeError, ValueError) as exc:
            raise ParameterValidationError(
                actionable_error(
                    "invalid_parameter",
                    name=name,
                    item_index=item_index,
                    kind=_KIND_LABELS.get(kind, kind),
                    value=raw,
                )
            ) from exc


_KIND_LABELS = {
    "string": "a string",
    "integer": "an integer",
    "number": "a number",
    "boolean": "a boolean",
    "options": "a mapping of options",
}


def coerce(kind: str, value: Any) -> Any:
    if kind in ("value", "cursor"):
        return value

    if kind == "string":
        if value is None:
            return ""
        if isinstance(value, (dict, list)):
            return json.dumps(value)
        return str(value)

    if kind == "integer":
        if isinstance(value, bool):
            raise TypeError("booleans are not integers")
        if isinstance(value, float):
            if not value.is_integer():
                raise ValueError(f"{value} is not integral")
            return int(value)
        return int(value)

    if kind == "number":
        if isinstance(value, bool):
            raise TypeError("booleans are not numbers")
        return float(value)

    if kind == "boolean":
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return bool(value)
        word = str(value).strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
        raise ValueError(f"{value!r} is not a boolean")

    if kind == "options":
        if value is None or value == "":
            return {}
        if isinstance(value, str):
            value = json.loads(value)
        if not isinstance(value, Mapping):
            raise TypeError("options must be a mapping")
        return dict(value)

    raise ValueError(f"Unknown parameter kind: {kind}")

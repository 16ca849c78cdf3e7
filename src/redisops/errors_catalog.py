"""Actionable error catalog for redisops."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "odd_pairs": {
        "what": "{label} must be an even number of arguments, got {count}.",
        "next": "Provide whitespace-separated pairs such as `a 1 b 2`.",
    },
    "unresolved_type": {
        "what": "Could not identify the type to set for key `{key}`.",
        "next": "Set `keyType` explicitly to one of: string, hash, list, sets.",
    },
    "invalid_json": {
        "what": "Invalid JSON value: {detail}",
        "next": "Check quoting and escaping of the `value` parameter.",
    },
    "unknown_operation": {
        "what": "Unknown operation: {operation}",
        "next": "Run `redisops operations` to list supported operations.",
    },
    "missing_parameter": {
        "what": "Missing required parameter `{name}` for item {item_index}.",
        "next": "Pass it with `--param {name}=...` or add it to the item payload.",
    },
    "invalid_parameter": {
        "what": "Parameter `{name}` for item {item_index} must be {kind}, got {value!r}.",
        "next": "Fix the parameter value and retry.",
    },
    "connection_failed": {
        "what": "Could not connect to {host}:{port}: {detail}",
        "next": "Check host, port, credentials and the `ssl` flag.",
    },
}


def actionable_error(code: str, **kwargs: object) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"

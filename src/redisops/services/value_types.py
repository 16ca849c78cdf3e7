"""Type-aware reads and writes for the get/set operation family."""

import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from redisops.errors import ParameterValidationError
from redisops.errors_catalog import actionable_error
from redisops.models import AUTOMATIC, ResolvedType, SetResult

SET_MODES = ("always", "nx", "xx")


def split_tokens(value: Any) -> List[str]:
    """Split a space-delimited parameter, dropping empty tokens."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(token) for token in value if str(token)]
    return str(value).split()


def require_pairs(tokens: Sequence[str], label: str) -> List[tuple]:
    if len(tokens) % 2 != 0:
        raise ParameterValidationError(
            actionable_error("odd_pairs", label=label, count=len(tokens))
        )
    return list(zip(tokens[0::2], tokens[1::2]))


def to_store_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class ValueTypeService:
    """Resolves which store primitive a get/set targets and issues the calls."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def resolve_read_type(self, client, key: str, type_tag: Optional[str]) -> Optional[ResolvedType]:
        if type_tag is None or type_tag == AUTOMATIC:
            type_tag = client.type(key)
            self.logger.debug("Key %s reported type %s", key, type_tag)
        return ResolvedType.from_tag(type_tag)

    def get_value(self, client, key: str, type_tag: Optional[str] = None) -> Any:
        """Read a key; unknown or unsupported types yield None."""
        resolved = self.resolve_read_type(client, key, type_tag)

        if resolved is ResolvedType.STRING:
            return client.get(key)
        if resolved is ResolvedType.HASH:
            return client.hgetall(key)
        if resolved is ResolvedType.LIST:
            return client.lrange(key, 0, -1)
        if resolved is ResolvedType.SETS:
            return sorted(client.smembers(key))
        return None

    def resolve_write_type(self, key: str, value: Any, type_tag: Optional[str]) -> ResolvedType:
        if type_tag is not None and type_tag != AUTOMATIC:
            resolved = ResolvedType.from_tag(type_tag)
        elif isinstance(value, str):
            resolved = ResolvedType.STRING
        elif isinstance(value, (list, tuple)):
            resolved = ResolvedType.LIST
        elif isinstance(value, Mapping):
            resolved = ResolvedType.HASH
        else:
            resolved = None

        if resolved is None:
            raise ParameterValidationError(actionable_error("unresolved_type", key=key))
        return resolved

    def set_value(
        self,
        client,
        key: str,
        value: Any,
        expire: bool = False,
        ttl: int = -1,
        type_tag: Optional[str] = None,
        value_is_json: bool = True,
        set_mode: str = "always",
    ) -> SetResult:
        resolved = self.resolve_write_type(key, value, type_tag)
        operation = "SET" if set_mode == "always" else f"SET {set_mode.upper()}"

        if resolved is ResolvedType.STRING:
            options: Dict[str, Any] = {}
            if expire and ttl > 0:
                options["ex"] = ttl
            if set_mode == "nx":
                options["nx"] = True
            elif set_mode == "xx":
                options["xx"] = True

            result = client.set(key, to_store_text(value), **options)
            if result is None and set_mode in ("nx", "xx"):
                exists = set_mode == "nx"
                return SetResult(
                    success=False,
                    operation=operation,
                    key=key,
                    reason="key_already_exists" if exists else "key_does_not_exist",
                    message=(
                        f'{operation} condition not met: key "{key}" '
                        f'{"already exists" if exists else "does not exist"}'
                    ),
                )
        else:
            if set_mode != "always":
                self.logger.debug("Set mode %s only applies to strings; ignored for %s", set_mode, key)
            if resolved is ResolvedType.HASH:
                mapping = self._hash_mapping(value, value_is_json)
                if mapping:
                    client.hset(key, mapping=mapping)
            elif resolved is ResolvedType.LIST:
                self._replace_list(client, key, value)
            else:
                members = split_tokens(value)
                if members:
                    client.sadd(key, *members)

            if expire and ttl > 0:
                client.expire(key, ttl)

        return SetResult(success=True, operation=operation, key=key)

    def _hash_mapping(self, value: Any, value_is_json: bool) -> Dict[str, str]:
        if not value_is_json:
            return dict(require_pairs(split_tokens(value), "Hash field-value pairs"))

        parsed = value
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
            except ValueError:
                parsed = value

        if not isinstance(parsed, Mapping):
            return {"value": to_store_text(value)}
        return {str(field): to_store_text(field_value) for field, field_value in parsed.items()}

    def _replace_list(self, client, key: str, value: Any):
        elements = value
        if isinstance(value, str):
            try:
                elements = json.loads(value)
            except ValueError:
                elements = value.split()
            if not isinstance(elements, list):
                elements = [value]

        client.delete(key)
        if elements:
            client.rpush(key, *[to_store_text(element) for element in elements])

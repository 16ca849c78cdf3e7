"""Operation registry: parameter contracts and store calls per operation id."""

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from redisops.errors import ParameterValidationError, UnknownOperationError
from redisops.errors_catalog import actionable_error
from redisops.models import AUTOMATIC, Item
from redisops.services.parameters import MISSING, set_path
from redisops.services.report import parse_report
from redisops.services.value_types import (
    SET_MODES,
    ValueTypeService,
    require_pairs,
    split_tokens,
)

SAFE_INTEGER_LIMIT = 2**53 - 1


@dataclass(frozen=True)
class Parameter:
    """A declared operation parameter; `default=MISSING` marks it required."""

    name: str
    kind: str = "string"
    default: Any = MISSING
    description: str = ""

    @property
    def required(self) -> bool:
        return self.default is MISSING


@dataclass
class OperationContext:
    client: Any
    params: Dict[str, Any]
    item: Item
    values: ValueTypeService


Handler = Callable[[OperationContext], Dict[str, Any]]


@dataclass(frozen=True)
class OperationDescriptor:
    id: str
    description: str
    handler: Handler
    parameters: Tuple[Parameter, ...] = field(default_factory=tuple)
    per_item: bool = True


def decode_json(value: Any) -> Any:
    """Best-effort JSON decode; anything undecodable is returned untouched."""
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except ValueError:
        return value


def narrow_integers(value: Any) -> Any:
    """Map script results into float-safe range; precision above 2**53 is lost."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and abs(value) > SAFE_INTEGER_LIMIT:
        return float(value)
    if isinstance(value, list):
        return [narrow_integers(element) for element in value]
    return value


def _place(ctx: OperationContext, value: Any) -> Dict[str, Any]:
    output: Dict[str, Any] = {}
    property_name = ctx.params["propertyName"]
    if ctx.params.get("options", {}).get("dotNotation", True) is False:
        output[property_name] = value
    else:
        set_path(output, property_name, value)
    return output


# Keys and values

def _delete(ctx: OperationContext) -> Dict[str, Any]:
    ctx.client.delete(ctx.params["key"])
    return dict(ctx.item.json)


def _get(ctx: OperationContext) -> Dict[str, Any]:
    value = ctx.values.get_value(ctx.client, ctx.params["key"], ctx.params["keyType"])
    return _place(ctx, value)


def _set(ctx: OperationContext) -> Dict[str, Any]:
    params = ctx.params
    if params["setMode"] not in SET_MODES:
        raise ParameterValidationError(
            f"Unsupported setMode {params['setMode']!r}; expected one of {', '.join(SET_MODES)}."
        )
    result = ctx.values.set_value(
        ctx.client,
        params["key"],
        params["value"],
        expire=params["expire"],
        ttl=params["ttl"],
        type_tag=params["keyType"],
        value_is_json=params["valueIsJSON"],
        set_mode=params["setMode"],
    )
    output = dict(ctx.item.json)
    output["redis_result"] = result.to_dict()
    return output


def _keys(ctx: OperationContext) -> Dict[str, Any]:
    keys = sorted(ctx.client.keys(ctx.params["keyPattern"]))
    if not ctx.params["getValues"]:
        return {"keys": keys}
    return {key: ctx.values.get_value(ctx.client, key) for key in keys}


def _incr(ctx: OperationContext) -> Dict[str, Any]:
    key = ctx.params["key"]
    value = ctx.client.incr(key)
    if ctx.params["expire"] and ctx.params["ttl"] > 0:
        ctx.client.expire(key, ctx.params["ttl"])
    return {key: value}


def _exists(ctx: OperationContext) -> Dict[str, Any]:
    keys = split_tokens(ctx.params["keys"])
    count = ctx.client.exists(*keys) if keys else 0
    return {"exists": count, "keys": keys}


def _mget(ctx: OperationContext) -> Dict[str, Any]:
    keys = split_tokens(ctx.params["keys"])
    values = ctx.client.mget(keys) if keys else []
    return dict(zip(keys, values))


def _mset(ctx: OperationContext) -> Dict[str, Any]:
    pairs = require_pairs(split_tokens(ctx.params["keyValuePairs"]), "Key-value pairs")
    if pairs:
        ctx.client.mset(dict(pairs))
    return dict(ctx.item.json)


def _scan(ctx: OperationContext) -> Dict[str, Any]:
    cursor, keys = ctx.client.scan(
        cursor=ctx.params["cursor"],
        match=ctx.params["pattern"],
        count=ctx.params["count"],
    )
    return {"cursor": cursor, "keys": keys}


def _ttl(ctx: OperationContext) -> Dict[str, Any]:
    key = ctx.params["key"]
    return {"key": key, "ttl": ctx.client.ttl(key)}


def _persist(ctx: OperationContext) -> Dict[str, Any]:
    key = ctx.params["key"]
    return {"key": key, "persisted": bool(ctx.client.persist(key))}


def _expireat(ctx: OperationContext) -> Dict[str, Any]:
    key = ctx.params["key"]
    return {"key": key, "set": bool(ctx.client.expireat(key, ctx.params["timestamp"]))}


def _getset(ctx: OperationContext) -> Dict[str, Any]:
    old_value = ctx.client.getset(ctx.params["key"], ctx.params["value"])
    return {ctx.params["propertyName"]: old_value}


def _append(ctx: OperationContext) -> Dict[str, Any]:
    key = ctx.params["key"]
    return {"key": key, "newLength": ctx.client.append(key, ctx.params["value"])}


def _strlen(ctx: OperationContext) -> Dict[str, Any]:
    key = ctx.params["key"]
    return {"key": key, "length": ctx.client.strlen(key)}


# JSON documents (RedisJSON module, issued as raw commands)

def _jsonset(ctx: OperationContext) -> Dict[str, Any]:
    key, path, raw_value = ctx.params["key"], ctx.params["path"], ctx.params["value"]
    if isinstance(raw_value, str):
        try:
            document = json.loads(raw_value)
        except ValueError as exc:
            raise ParameterValidationError(actionable_error("invalid_json", detail=exc)) from exc
    else:
        document = raw_value

    args: List[Any] = [key, path, json.dumps(document)]
    mode = ctx.params["setMode"].upper()
    if mode in ("NX", "XX"):
        args.append(mode)

    result = ctx.client.execute_command("JSON.SET", *args)
    return {
        "key": key,
        "path": path,
        "result": result or "OK",
        "success": result is not None,
    }


def _jsonget(ctx: OperationContext) -> Dict[str, Any]:
    key, path = ctx.params["key"], ctx.params["path"]
    options = ctx.params["options"]

    args: List[Any] = [key]
    if path:
        args.append(path)
    for option in ("indent", "newline", "space"):
        if options.get(option):
            args.extend([option.upper(), options[option]])

    result = ctx.client.execute_command("JSON.GET", *args)
    return {
        "key": key,
        "path": path,
        "value": decode_json(result) if result else None,
        "exists": result is not None,
    }


# Pub/sub and lists

def _publish(ctx: OperationContext) -> Dict[str, Any]:
    ctx.client.publish(ctx.params["channel"], ctx.params["messageData"])
    return dict(ctx.item.json)


def _push(ctx: OperationContext) -> Dict[str, Any]:
    push = ctx.client.rpush if ctx.params["tail"] else ctx.client.lpush
    push(ctx.params["list"], ctx.params["messageData"])
    return dict(ctx.item.json)


def _pop(ctx: OperationContext) -> Dict[str, Any]:
    pop = ctx.client.rpop if ctx.params["tail"] else ctx.client.lpop
    value = pop(ctx.params["list"])
    return _place(ctx, decode_json(value))


def _blocking_pop(tail: bool) -> Handler:
    def _handler(ctx: OperationContext) -> Dict[str, Any]:
        pop = ctx.client.brpop if tail else ctx.client.blpop
        timeout = ctx.params["timeout"]
        # servers before 6.0 only accept whole-second timeouts
        if isinstance(timeout, float) and timeout.is_integer():
            timeout = int(timeout)
        result = pop([ctx.params["list"]], timeout=timeout)
        property_name = ctx.params["propertyName"]
        if not result:
            return {property_name: None}
        source, element = result
        return {property_name: decode_json(element), "list": source}

    return _handler


def _llen(ctx: OperationContext) -> Dict[str, Any]:
    name = ctx.params["list"]
    return {"list": name, "length": ctx.client.llen(name)}


# Sets

def _sadd(ctx: OperationContext) -> Dict[str, Any]:
    name, members = ctx.params["set"], split_tokens(ctx.params["members"])
    return {"set": name, "added": ctx.client.sadd(name, *members), "members": members}


def _srem(ctx: OperationContext) -> Dict[str, Any]:
    name, members = ctx.params["set"], split_tokens(ctx.params["members"])
    return {"set": name, "removed": ctx.client.srem(name, *members), "members": members}


def _sismember(ctx: OperationContext) -> Dict[str, Any]:
    name, member = ctx.params["set"], ctx.params["member"]
    return {"set": name, "member": member, "isMember": bool(ctx.client.sismember(name, member))}


def _scard(ctx: OperationContext) -> Dict[str, Any]:
    name = ctx.params["set"]
    return {"set": name, "cardinality": ctx.client.scard(name)}


# Sorted sets

def _zadd(ctx: OperationContext) -> Dict[str, Any]:
    name = ctx.params["sortedSet"]
    pairs = require_pairs(split_tokens(ctx.params["scoreMembers"]), "Score-member pairs")
    try:
        members = [{"score": float(score), "value": member} for score, member in pairs]
    except ValueError as exc:
        raise ParameterValidationError(f"Invalid score in scoreMembers: {exc}") from exc
    added = ctx.client.zadd(name, {member["value"]: member["score"] for member in members})
    return {"sortedSet": name, "added": added, "members": members}


def _zrange(ctx: OperationContext) -> Dict[str, Any]:
    name = ctx.params["sortedSet"]
    with_scores = ctx.params["withScores"]
    result = ctx.client.zrange(name, ctx.params["start"], ctx.params["stop"], withscores=with_scores)
    if with_scores:
        result = [{"value": member, "score": score} for member, score in result]
    return {"sortedSet": name, "result": result}


def _zrem(ctx: OperationContext) -> Dict[str, Any]:
    name, members = ctx.params["sortedSet"], split_tokens(ctx.params["members"])
    return {"sortedSet": name, "removed": ctx.client.zrem(name, *members), "members": members}


def _zcard(ctx: OperationContext) -> Dict[str, Any]:
    name = ctx.params["sortedSet"]
    return {"sortedSet": name, "cardinality": ctx.client.zcard(name)}


# Hashes

def _hlen(ctx: OperationContext) -> Dict[str, Any]:
    name = ctx.params["hash"]
    return {"hash": name, "length": ctx.client.hlen(name)}


def _hkeys(ctx: OperationContext) -> Dict[str, Any]:
    name = ctx.params["hash"]
    return {"hash": name, "keys": ctx.client.hkeys(name)}


def _hvals(ctx: OperationContext) -> Dict[str, Any]:
    name = ctx.params["hash"]
    return {"hash": name, "values": ctx.client.hvals(name)}


def _hexists(ctx: OperationContext) -> Dict[str, Any]:
    name, hash_field = ctx.params["hash"], ctx.params["field"]
    return {"hash": name, "field": hash_field, "exists": bool(ctx.client.hexists(name, hash_field))}


# Scripting and introspection

def _eval(ctx: OperationContext) -> Dict[str, Any]:
    keys = split_tokens(ctx.params["keys"])
    args = split_tokens(ctx.params["args"])
    result = ctx.client.eval(ctx.params["script"], len(keys), *keys, *args)
    return {"result": narrow_integers(result)}


def _info(ctx: OperationContext) -> Dict[str, Any]:
    report = ctx.client.info()
    if isinstance(report, bytes):
        report = report.decode("utf-8", errors="replace")
    return parse_report(report)


KEY = Parameter("key", description="Key to operate on")
PROPERTY_NAME = Parameter("propertyName", default="propertyName", description="Output field for the value")
DOT_OPTIONS = Parameter("options", kind="options", default=None, description="{dotNotation: bool}")
EXPIRE = Parameter("expire", kind="boolean", default=False)
TTL = Parameter("ttl", kind="integer", default=-1, description="Seconds until expiration")
LIST = Parameter("list", description="List key")
TAIL = Parameter("tail", kind="boolean", default=False, description="Use the tail of the list")
MESSAGE = Parameter("messageData", description="Payload")
SET = Parameter("set", description="Set key")
SORTED_SET = Parameter("sortedSet", description="Sorted set key")
HASH = Parameter("hash", description="Hash key")
MEMBERS = Parameter("members", description="Space-delimited members")
TIMEOUT = Parameter("timeout", kind="number", default=0, description="Seconds to block; 0 waits forever")


_DESCRIPTORS = (
    OperationDescriptor("append", "Append a value to a string key", _append, (KEY, Parameter("value"))),
    OperationDescriptor(
        "blpop", "Blocking pop from the head of a list", _blocking_pop(tail=False),
        (LIST, TIMEOUT, PROPERTY_NAME),
    ),
    OperationDescriptor(
        "brpop", "Blocking pop from the tail of a list", _blocking_pop(tail=True),
        (LIST, TIMEOUT, PROPERTY_NAME),
    ),
    OperationDescriptor("delete", "Delete a key", _delete, (KEY,)),
    OperationDescriptor(
        "eval", "Execute a Lua script", _eval,
        (
            Parameter("script"),
            Parameter("keys", default="", description="Space-delimited keys"),
            Parameter("args", default="", description="Space-delimited arguments"),
        ),
    ),
    OperationDescriptor(
        "exists", "Count how many of the given keys exist", _exists,
        (Parameter("keys", description="Space-delimited keys"),),
    ),
    OperationDescriptor(
        "expireat", "Expire a key at a Unix timestamp", _expireat,
        (KEY, Parameter("timestamp", kind="integer", default=0)),
    ),
    OperationDescriptor(
        "get", "Read a key, inferring its type when requested", _get,
        (
            PROPERTY_NAME,
            KEY,
            Parameter("keyType", default=AUTOMATIC, description="automatic|string|hash|list|sets"),
            DOT_OPTIONS,
        ),
    ),
    OperationDescriptor(
        "getset", "Set a string key and return its old value", _getset,
        (KEY, Parameter("value"), PROPERTY_NAME),
    ),
    OperationDescriptor("hexists", "Check whether a hash field exists", _hexists, (HASH, Parameter("field"))),
    OperationDescriptor("hkeys", "List the fields of a hash", _hkeys, (HASH,)),
    OperationDescriptor("hlen", "Count the fields of a hash", _hlen, (HASH,)),
    OperationDescriptor("hvals", "List the values of a hash", _hvals, (HASH,)),
    OperationDescriptor("incr", "Atomically increment a key", _incr, (KEY, EXPIRE, TTL)),
    OperationDescriptor("info", "Return parsed server information", _info, per_item=False),
    OperationDescriptor(
        "jsonget", "Read a JSON document or path", _jsonget,
        (KEY, Parameter("path", default="$"), Parameter("options", kind="options", default=None)),
    ),
    OperationDescriptor(
        "jsonset", "Write a JSON document or path", _jsonset,
        (
            KEY,
            Parameter("path", default="$"),
            Parameter("value", kind="value"),
            Parameter("setMode", default="default", description="default|NX|XX"),
        ),
    ),
    OperationDescriptor(
        "keys", "Find keys by pattern, optionally with their values", _keys,
        (Parameter("keyPattern"), Parameter("getValues", kind="boolean", default=True)),
    ),
    OperationDescriptor("llen", "Length of a list", _llen, (LIST,)),
    OperationDescriptor(
        "mget", "Read several string keys", _mget,
        (Parameter("keys", description="Space-delimited keys"),),
    ),
    OperationDescriptor(
        "mset", "Write several string keys", _mset,
        (Parameter("keyValuePairs", description="Space-delimited key value pairs"),),
    ),
    OperationDescriptor("persist", "Remove the expiration of a key", _persist, (KEY,)),
    OperationDescriptor("pop", "Pop from a list", _pop, (LIST, TAIL, PROPERTY_NAME, DOT_OPTIONS)),
    OperationDescriptor(
        "publish", "Publish a message to a channel", _publish,
        (Parameter("channel"), MESSAGE),
    ),
    OperationDescriptor("push", "Push to a list", _push, (LIST, MESSAGE, TAIL)),
    OperationDescriptor(
        "sadd", "Add members to a set", _sadd, (SET, MEMBERS),
    ),
    OperationDescriptor(
        "scan", "Iterate keys with a cursor", _scan,
        (
            Parameter("cursor", kind="cursor", default=0, description="Opaque cursor from the previous scan"),
            Parameter("pattern", default="*"),
            Parameter("count", kind="integer", default=10),
        ),
    ),
    OperationDescriptor("scard", "Count the members of a set", _scard, (SET,)),
    OperationDescriptor(
        "set", "Write a key, inferring its type when requested", _set,
        (
            KEY,
            Parameter("value", kind="value"),
            Parameter("keyType", default=AUTOMATIC, description="automatic|string|hash|list|sets"),
            Parameter("valueIsJSON", kind="boolean", default=True),
            EXPIRE,
            TTL,
            Parameter("setMode", default="always", description="always|nx|xx"),
        ),
    ),
    OperationDescriptor("sismember", "Check set membership", _sismember, (SET, Parameter("member"))),
    OperationDescriptor("srem", "Remove members from a set", _srem, (SET, MEMBERS)),
    OperationDescriptor("strlen", "Length of a string value", _strlen, (KEY,)),
    OperationDescriptor("ttl", "Remaining time to live of a key", _ttl, (KEY,)),
    OperationDescriptor(
        "zadd", "Add scored members to a sorted set", _zadd,
        (SORTED_SET, Parameter("scoreMembers", description="Space-delimited score member pairs")),
    ),
    OperationDescriptor("zcard", "Count the members of a sorted set", _zcard, (SORTED_SET,)),
    OperationDescriptor(
        "zrange", "Read a range of a sorted set", _zrange,
        (
            SORTED_SET,
            Parameter("start", kind="integer", default=0),
            Parameter("stop", kind="integer", default=-1),
            Parameter("withScores", kind="boolean", default=False),
        ),
    ),
    OperationDescriptor("zrem", "Remove members from a sorted set", _zrem, (SORTED_SET, MEMBERS)),
)

OPERATIONS: Dict[str, OperationDescriptor] = {descriptor.id: descriptor for descriptor in _DESCRIPTORS}


def get_operation(operation_id: str) -> OperationDescriptor:
    descriptor: Optional[OperationDescriptor] = OPERATIONS.get(operation_id)
    if descriptor is None:
        raise UnknownOperationError(actionable_error("unknown_operation", operation=operation_id))
    return descriptor

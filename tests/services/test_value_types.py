import logging

import pytest

from redisops.errors import ParameterValidationError
from redisops.models import ResolvedType
from redisops.services.value_types import ValueTypeService, require_pairs, split_tokens


@pytest.fixture
def service():
    return ValueTypeService(logger=logging.getLogger("redisops.tests"))


def test_get_value_with_explicit_type_skips_introspection(service, fake_store):
    fake_store.strings["greeting"] = "hello"

    assert service.get_value(fake_store, "greeting", "string") == "hello"
    assert "type" not in fake_store.store_calls()


@pytest.mark.parametrize(
    "container, value, expected",
    [
        ("strings", "plain", "plain"),
        ("hashes", {"a": "1"}, {"a": "1"}),
        ("lists", ["x", "y"], ["x", "y"]),
        ("sets", {"b", "a"}, ["a", "b"]),
    ],
)
def test_get_value_automatic_introspects_type(service, fake_store, container, value, expected):
    getattr(fake_store, container)["key"] = value

    assert service.get_value(fake_store, "key", "automatic") == expected
    assert fake_store.store_calls()[0] == "type"


def test_get_value_returns_none_for_missing_or_unsupported_keys(service, fake_store):
    fake_store.zsets["ranking"] = {"a": 1.0}

    assert service.get_value(fake_store, "missing") is None
    assert service.get_value(fake_store, "ranking") is None


def test_set_then_get_round_trips_strings(service, fake_store):
    result = service.set_value(fake_store, "greeting", "hello", type_tag="string")

    assert result.success is True
    assert result.operation == "SET"
    assert service.get_value(fake_store, "greeting") == "hello"


def test_resolve_write_type_infers_from_value_shape(service):
    assert service.resolve_write_type("k", "text", "automatic") is ResolvedType.STRING
    assert service.resolve_write_type("k", ["a"], "automatic") is ResolvedType.LIST
    assert service.resolve_write_type("k", {"a": 1}, "automatic") is ResolvedType.HASH
    assert service.resolve_write_type("k", "a b", "sets") is ResolvedType.SETS


@pytest.mark.parametrize("value", [42, 1.5, None, True])
def test_resolve_write_type_rejects_unresolvable_values(service, value):
    with pytest.raises(ParameterValidationError, match="Could not identify the type"):
        service.resolve_write_type("k", value, "automatic")


def test_set_nx_on_existing_key_returns_condition_result(service, fake_store):
    fake_store.strings["lock"] = "owner-1"

    result = service.set_value(fake_store, "lock", "owner-2", set_mode="nx")

    assert result.to_dict() == {
        "success": False,
        "operation": "SET NX",
        "key": "lock",
        "reason": "key_already_exists",
        "message": 'SET NX condition not met: key "lock" already exists',
    }
    assert fake_store.strings["lock"] == "owner-1"


def test_set_xx_on_missing_key_reports_key_does_not_exist(service, fake_store):
    result = service.set_value(fake_store, "absent", "v", set_mode="xx")

    assert result.success is False
    assert result.reason == "key_does_not_exist"


def test_string_ttl_is_passed_with_the_write(service, fake_store):
    service.set_value(fake_store, "session", "abc", expire=True, ttl=30)

    assert fake_store.calls[-1] == ("set", ("session", "abc", 30, False, False))
    assert "expire" not in fake_store.store_calls()


def test_hash_write_parses_json_and_sets_expiration_afterwards(service, fake_store):
    service.set_value(fake_store, "user:1", '{"name": "Ada", "age": 36}', expire=True, ttl=60, type_tag="hash")

    assert fake_store.hashes["user:1"] == {"name": "Ada", "age": "36"}
    assert fake_store.store_calls() == ["hset", "expire"]
    assert fake_store.expirations["user:1"] == 60


def test_empty_hash_write_skips_hset_but_still_expires(service, fake_store):
    result = service.set_value(fake_store, "h", "{}", expire=True, ttl=60, type_tag="hash")

    assert result.success is True
    assert fake_store.store_calls() == ["expire"]
    assert "h" not in fake_store.hashes


def test_empty_sets_write_issues_no_sadd(service, fake_store):
    result = service.set_value(fake_store, "tags", "  ", type_tag="sets")

    assert result.success is True
    assert fake_store.store_calls() == []


def test_hash_write_falls_back_to_opaque_value_when_json_is_invalid(service, fake_store):
    service.set_value(fake_store, "blob", "not json", type_tag="hash")

    assert fake_store.hashes["blob"] == {"value": "not json"}


def test_hash_write_accepts_flat_field_value_tokens(service, fake_store):
    service.set_value(fake_store, "h", "a 1 b 2", type_tag="hash", value_is_json=False)

    assert fake_store.hashes["h"] == {"a": "1", "b": "2"}


def test_hash_write_rejects_odd_tokens_before_any_store_call(service, fake_store):
    with pytest.raises(ParameterValidationError, match="even number"):
        service.set_value(fake_store, "h", "a 1 b", type_tag="hash", value_is_json=False)

    assert fake_store.calls == []


def test_list_write_replaces_contents(service, fake_store):
    fake_store.lists["queue"] = ["old"]

    service.set_value(fake_store, "queue", ["a", {"b": 1}])

    assert fake_store.lists["queue"] == ["a", '{"b": 1}']


def test_sets_write_requires_explicit_type(service, fake_store):
    service.set_value(fake_store, "tags", "red green", type_tag="sets")

    assert fake_store.sets["tags"] == {"red", "green"}


def test_split_tokens_drops_empty_tokens():
    assert split_tokens("  a   b\tc \n") == ["a", "b", "c"]
    assert split_tokens("") == []
    assert split_tokens(None) == []


def test_require_pairs_groups_tokens():
    assert require_pairs(["k1", "v1", "k2", "v2"], "pairs") == [("k1", "v1"), ("k2", "v2")]

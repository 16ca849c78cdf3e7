import fnmatch

import pytest
import redis

SAMPLE_INFO = (
    "# Server\r\n"
    "redis_version:6.2.14\r\n"
    "redis_mode:standalone\r\n"
    "\r\n"
    "# Clients\r\n"
    "connected_clients:1\r\n"
    "\r\n"
    "# Replication\r\n"
    "role:master\r\n"
    "\r\n"
    "# Keyspace\r\n"
    "db0:keys=2,expires=0,avg_ttl=0\r\n"
)


class FakeStore:
    """In-memory stand-in for a decoded redis-py client."""

    def __init__(self):
        self.strings = {}
        self.hashes = {}
        self.lists = {}
        self.sets = {}
        self.zsets = {}
        self.expirations = {}
        self.published = []
        self.calls = []
        self.fail_on = {}
        self.close_count = 0
        self.callbacks = {}
        self.info_text = SAMPLE_INFO
        self.eval_result = None

    def _call(self, name, *args):
        self.calls.append((name, args))
        if name in self.fail_on:
            raise self.fail_on[name]

    def _containers(self):
        return (self.strings, self.hashes, self.lists, self.sets, self.zsets)

    def _has(self, key):
        return any(key in container for container in self._containers())

    def set_response_callback(self, command, callback):
        self.callbacks[command] = callback

    def ping(self):
        self._call("ping")
        return True

    def close(self):
        self.close_count += 1

    def type(self, key):
        self._call("type", key)
        for name, container in zip(("string", "hash", "list", "set", "zset"), self._containers()):
            if key in container:
                return name
        return "none"

    def get(self, key):
        self._call("get", key)
        return self.strings.get(key)

    def set(self, key, value, ex=None, nx=False, xx=False):
        self._call("set", key, value, ex, nx, xx)
        exists = self._has(key)
        if (nx and exists) or (xx and not exists):
            return None
        self.strings[key] = value
        if ex:
            self.expirations[key] = ex
        return True

    def getset(self, key, value):
        self._call("getset", key, value)
        old = self.strings.get(key)
        self.strings[key] = value
        return old

    def append(self, key, value):
        self._call("append", key, value)
        self.strings[key] = self.strings.get(key, "") + value
        return len(self.strings[key])

    def strlen(self, key):
        self._call("strlen", key)
        return len(self.strings.get(key, ""))

    def incr(self, key):
        self._call("incr", key)
        self.strings[key] = str(int(self.strings.get(key, "0")) + 1)
        return int(self.strings[key])

    def delete(self, *keys):
        self._call("delete", *keys)
        removed = 0
        for key in keys:
            for container in self._containers():
                if container.pop(key, None) is not None:
                    removed += 1
        return removed

    def exists(self, *keys):
        self._call("exists", *keys)
        return sum(1 for key in keys if self._has(key))

    def mget(self, keys):
        self._call("mget", *keys)
        return [self.strings.get(key) for key in keys]

    def mset(self, mapping):
        self._call("mset", mapping)
        self.strings.update(mapping)
        return True

    def keys(self, pattern="*"):
        self._call("keys", pattern)
        found = set()
        for container in self._containers():
            found.update(key for key in container if fnmatch.fnmatchcase(key, pattern))
        return list(found)

    def scan(self, cursor=0, match=None, count=None):
        self._call("scan", cursor, match, count)
        return 17, self.keys(match or "*")

    def expire(self, key, seconds):
        self._call("expire", key, seconds)
        self.expirations[key] = seconds
        return True

    def expireat(self, key, when):
        self._call("expireat", key, when)
        if not self._has(key):
            return False
        self.expirations[key] = when
        return True

    def ttl(self, key):
        self._call("ttl", key)
        if not self._has(key):
            return -2
        return self.expirations.get(key, -1)

    def persist(self, key):
        self._call("persist", key)
        return self.expirations.pop(key, None) is not None

    def hgetall(self, key):
        self._call("hgetall", key)
        return dict(self.hashes.get(key, {}))

    def hset(self, key, mapping=None):
        self._call("hset", key, mapping)
        if not mapping:
            raise redis.DataError("'hset' with no key value pairs")
        target = self.hashes.setdefault(key, {})
        added = sum(1 for field in mapping if field not in target)
        target.update(mapping)
        return added

    def hlen(self, key):
        self._call("hlen", key)
        return len(self.hashes.get(key, {}))

    def hkeys(self, key):
        self._call("hkeys", key)
        return list(self.hashes.get(key, {}))

    def hvals(self, key):
        self._call("hvals", key)
        return list(self.hashes.get(key, {}).values())

    def hexists(self, key, field):
        self._call("hexists", key, field)
        return field in self.hashes.get(key, {})

    def lrange(self, key, start, end):
        self._call("lrange", key, start, end)
        values = self.lists.get(key, [])
        return list(values[start:] if end == -1 else values[start : end + 1])

    def lpush(self, key, *values):
        self._call("lpush", key, *values)
        target = self.lists.setdefault(key, [])
        for value in values:
            target.insert(0, value)
        return len(target)

    def rpush(self, key, *values):
        self._call("rpush", key, *values)
        target = self.lists.setdefault(key, [])
        target.extend(values)
        return len(target)

    def lpop(self, key):
        self._call("lpop", key)
        values = self.lists.get(key)
        return values.pop(0) if values else None

    def rpop(self, key):
        self._call("rpop", key)
        values = self.lists.get(key)
        return values.pop() if values else None

    def blpop(self, keys, timeout=0):
        self._call("blpop", keys, timeout)
        for key in keys:
            if self.lists.get(key):
                return (key, self.lists[key].pop(0))
        return None

    def brpop(self, keys, timeout=0):
        self._call("brpop", keys, timeout)
        for key in keys:
            if self.lists.get(key):
                return (key, self.lists[key].pop())
        return None

    def llen(self, key):
        self._call("llen", key)
        return len(self.lists.get(key, []))

    def smembers(self, key):
        self._call("smembers", key)
        return set(self.sets.get(key, set()))

    def sadd(self, key, *members):
        self._call("sadd", key, *members)
        if not members:
            raise redis.ResponseError("wrong number of arguments for 'sadd' command")
        target = self.sets.setdefault(key, set())
        added = len(set(members) - target)
        target.update(members)
        return added

    def srem(self, key, *members):
        self._call("srem", key, *members)
        target = self.sets.get(key, set())
        removed = len(set(members) & target)
        target.difference_update(members)
        return removed

    def sismember(self, key, member):
        self._call("sismember", key, member)
        return 1 if member in self.sets.get(key, set()) else 0

    def scard(self, key):
        self._call("scard", key)
        return len(self.sets.get(key, set()))

    def zadd(self, key, mapping):
        self._call("zadd", key, mapping)
        target = self.zsets.setdefault(key, {})
        added = sum(1 for member in mapping if member not in target)
        target.update(mapping)
        return added

    def zrange(self, key, start, end, withscores=False):
        self._call("zrange", key, start, end, withscores)
        ordered = sorted(self.zsets.get(key, {}).items(), key=lambda pair: (pair[1], pair[0]))
        ordered = ordered[start:] if end == -1 else ordered[start : end + 1]
        if withscores:
            return ordered
        return [member for member, _score in ordered]

    def zrem(self, key, *members):
        self._call("zrem", key, *members)
        target = self.zsets.get(key, {})
        return sum(1 for member in members if target.pop(member, None) is not None)

    def zcard(self, key):
        self._call("zcard", key)
        return len(self.zsets.get(key, {}))

    def publish(self, channel, message):
        self._call("publish", channel, message)
        self.published.append((channel, message))
        return 1

    def eval(self, script, numkeys, *keys_and_args):
        self._call("eval", script, numkeys, *keys_and_args)
        return self.eval_result

    def info(self):
        self._call("info")
        return self.info_text

    def execute_command(self, *args):
        self._call("execute_command", *args)
        command = args[0]
        if command == "JSON.SET":
            key, _path, value = args[1:4]
            mode = args[4] if len(args) > 4 else None
            exists = key in self.strings
            if (mode == "NX" and exists) or (mode == "XX" and not exists):
                return None
            self.strings[key] = value
            return "OK"
        if command == "JSON.GET":
            return self.strings.get(args[1])
        raise redis.ResponseError(f"unknown command '{command}'")

    def store_calls(self):
        return [name for name, _args in self.calls if name not in ("ping",)]


@pytest.fixture
def fake_store():
    return FakeStore()

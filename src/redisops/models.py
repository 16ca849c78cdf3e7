"""Shared domain models for redisops."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union

ParsedReport = Dict[str, Union[str, float, Dict[str, Union[str, float]]]]


@dataclass(frozen=True)
class Credential:
    """Connection settings read once per execution."""

    host: str = "localhost"
    port: int = 6379
    database: int = 0
    user: Optional[str] = None
    password: Optional[str] = None
    ssl: bool = False


class ResolvedType(str, Enum):
    """Store primitive targeted by a get/set request."""

    STRING = "string"
    HASH = "hash"
    LIST = "list"
    SETS = "sets"

    @classmethod
    def from_tag(cls, tag: Optional[str]) -> Optional["ResolvedType"]:
        # TYPE reports "set" while the parameter surface calls it "sets"
        if tag == "set":
            return cls.SETS
        try:
            return cls(tag)
        except ValueError:
            return None


AUTOMATIC = "automatic"


@dataclass(frozen=True)
class SetResult:
    """Outcome of a (possibly conditional) write."""

    success: bool
    operation: str
    key: str
    reason: Optional[str] = None
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "success": self.success,
            "operation": self.operation,
            "key": self.key,
        }
        if not self.success:
            data["reason"] = self.reason
            data["message"] = self.message
        return data


@dataclass(frozen=True)
class Item:
    """One input row and its position in the batch."""

    index: int
    json: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ItemResult:
    """One output record tagged with the index of the item it came from."""

    json: Dict[str, Any]
    paired_item: int
    is_error: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"json": self.json, "pairedItem": {"item": self.paired_item}}


@dataclass(frozen=True)
class ConnectionTestResult:
    status: str
    message: str

    @property
    def ok(self) -> bool:
        return self.status == "OK"

"""MemoryValue - tagged union of everything the storage layer can hold."""

import base64
import copy
from dataclasses import dataclass
from enum import Enum
from typing import Any

from strata.core.errors import SerializationError, ValidationError

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


class ValueKind(Enum):
    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    JSON = "json"
    BYTES = "bytes"
    LIST = "list"
    MAP = "map"


@dataclass(frozen=True)
class MemoryValue:
    """A typed value stored under a memory key.

    Accessors (as_string, as_integer, ...) return None when the kind does not
    match instead of raising, so callers can probe values safely.
    """

    kind: ValueKind
    data: Any

    # Constructors

    @classmethod
    def string(cls, value: str) -> "MemoryValue":
        return cls(ValueKind.STRING, str(value))

    @classmethod
    def integer(cls, value: int) -> "MemoryValue":
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError("integer", "must be an int", type(value).__name__)
        if not INT64_MIN <= value <= INT64_MAX:
            raise ValidationError("integer", "must fit in a signed 64-bit integer", value)
        return cls(ValueKind.INTEGER, value)

    @classmethod
    def float_(cls, value: float) -> "MemoryValue":
        return cls(ValueKind.FLOAT, float(value))

    @classmethod
    def boolean(cls, value: bool) -> "MemoryValue":
        return cls(ValueKind.BOOLEAN, bool(value))

    @classmethod
    def json(cls, value: Any) -> "MemoryValue":
        return cls(ValueKind.JSON, value)

    @classmethod
    def bytes_(cls, value: bytes) -> "MemoryValue":
        return cls(ValueKind.BYTES, bytes(value))

    @classmethod
    def list_(cls, items: list[Any]) -> "MemoryValue":
        return cls(ValueKind.LIST, tuple(cls.of(item) for item in items))

    @classmethod
    def map_(cls, entries: dict[str, Any]) -> "MemoryValue":
        return cls(ValueKind.MAP, {str(k): cls.of(v) for k, v in entries.items()})

    @classmethod
    def of(cls, value: Any) -> "MemoryValue":
        """Wrap a plain Python value, inferring its kind.

        Dicts become structured (JSON) documents; use map_() for a mapping
        of typed values.
        """
        if isinstance(value, MemoryValue):
            return value
        if isinstance(value, bool):
            return cls.boolean(value)
        if isinstance(value, int):
            return cls.integer(value)
        if isinstance(value, float):
            return cls.float_(value)
        if isinstance(value, str):
            return cls.string(value)
        if isinstance(value, (bytes, bytearray, memoryview)):
            return cls.bytes_(bytes(value))
        if isinstance(value, (list, tuple)):
            return cls.list_(list(value))
        if isinstance(value, dict) or value is None:
            return cls.json(value)
        raise ValidationError("value", "unsupported type for MemoryValue", type(value).__name__)

    # Accessors

    def as_string(self) -> str | None:
        return self.data if self.kind == ValueKind.STRING else None

    def as_integer(self) -> int | None:
        return self.data if self.kind == ValueKind.INTEGER else None

    def as_float(self) -> float | None:
        if self.kind == ValueKind.FLOAT:
            return self.data
        if self.kind == ValueKind.INTEGER:
            return float(self.data)
        return None

    def as_boolean(self) -> bool | None:
        return self.data if self.kind == ValueKind.BOOLEAN else None

    def as_json(self) -> Any | None:
        return self.data if self.kind == ValueKind.JSON else None

    def as_bytes(self) -> bytes | None:
        return self.data if self.kind == ValueKind.BYTES else None

    def as_list(self) -> list["MemoryValue"] | None:
        return list(self.data) if self.kind == ValueKind.LIST else None

    def as_map(self) -> dict[str, "MemoryValue"] | None:
        return dict(self.data) if self.kind == ValueKind.MAP else None

    def to_python(self) -> Any:
        """Unwrap to a plain Python value (recursively for list/map)."""
        if self.kind == ValueKind.LIST:
            return [item.to_python() for item in self.data]
        if self.kind == ValueKind.MAP:
            return {k: v.to_python() for k, v in self.data.items()}
        if self.kind == ValueKind.JSON:
            return copy.deepcopy(self.data)
        return self.data

    # Wire format

    def to_dict(self) -> dict[str, Any]:
        """Serialize to {"type": kind, "value": payload}."""
        if self.kind == ValueKind.BYTES:
            payload: Any = base64.b64encode(self.data).decode("ascii")
        elif self.kind == ValueKind.LIST:
            payload = [item.to_dict() for item in self.data]
        elif self.kind == ValueKind.MAP:
            payload = {k: v.to_dict() for k, v in self.data.items()}
        else:
            payload = self.data
        return {"type": self.kind.value, "value": payload}

    @classmethod
    def from_dict(cls, data: Any) -> "MemoryValue":
        """Deserialize from the wire format produced by to_dict()."""
        try:
            kind = ValueKind(data["type"])
            payload = data["value"]
            if kind == ValueKind.BYTES:
                return cls.bytes_(base64.b64decode(payload, validate=True))
            if kind == ValueKind.LIST:
                return cls(ValueKind.LIST, tuple(cls.from_dict(item) for item in payload))
            if kind == ValueKind.MAP:
                return cls(ValueKind.MAP, {k: cls.from_dict(v) for k, v in payload.items()})
            if kind == ValueKind.INTEGER:
                return cls.integer(payload)
            if kind == ValueKind.FLOAT:
                return cls.float_(payload)
            if kind == ValueKind.BOOLEAN:
                if not isinstance(payload, bool):
                    raise TypeError("boolean payload must be a bool")
                return cls.boolean(payload)
            if kind == ValueKind.STRING:
                if not isinstance(payload, str):
                    raise TypeError("string payload must be a str")
                return cls.string(payload)
            return cls.json(payload)
        except SerializationError:
            raise
        except (KeyError, TypeError, ValueError, AttributeError, ValidationError) as e:
            raise SerializationError("deserialize_value", str(e)) from e

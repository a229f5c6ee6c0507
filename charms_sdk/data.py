"""
Charms SDK - Data

Typed value model for on-ledger application state.

Data is a closed tagged union:
  empty | bool | u64 | i64 | bytes | string | list<Data> | map<string, Data>

Values are immutable once constructed. Accessors (as_u64, as_bytes, ...)
return None when the variant does not match instead of raising.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

U64_MAX = (1 << 64) - 1
I64_MIN = -(1 << 63)
I64_MAX = (1 << 63) - 1


class WireFormatError(ValueError):
    """Malformed JSON wire data."""


class DataKind(Enum):
    """Data variant tag (also the wire "type" field)"""
    EMPTY = "empty"
    BOOL = "bool"
    U64 = "u64"
    I64 = "i64"
    BYTES = "bytes"
    STRING = "string"
    LIST = "list"
    MAP = "map"


def _require_int(value: Any, kind: str) -> int:
    # bool is an int subclass; it is its own variant here
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{kind} value must be int, got {type(value).__name__}")
    return value


@dataclass(frozen=True)
class Data:
    """
    Immutable typed value.

    Build instances with the classmethod constructors, never directly:

        Data.u64(1000)
        Data.bytes_(b"\\x01\\x02")
        Data.map_({"owner": Data.string("alice")})

    Lists are stored as tuples and maps as tuples of (key, value) pairs so
    every Data is hashable and compares structurally.
    """
    kind: DataKind
    value: Any = None

    # ───────────────────────────────────────────────────────────────────────
    # Constructors
    # ───────────────────────────────────────────────────────────────────────

    @classmethod
    def empty(cls) -> "Data":
        return cls(DataKind.EMPTY)

    @classmethod
    def bool_(cls, value: bool) -> "Data":
        if not isinstance(value, bool):
            raise TypeError(f"bool value must be bool, got {type(value).__name__}")
        return cls(DataKind.BOOL, value)

    @classmethod
    def u64(cls, value: int) -> "Data":
        value = _require_int(value, "u64")
        if not 0 <= value <= U64_MAX:
            raise ValueError(f"u64 out of range: {value}")
        return cls(DataKind.U64, value)

    @classmethod
    def i64(cls, value: int) -> "Data":
        value = _require_int(value, "i64")
        if not I64_MIN <= value <= I64_MAX:
            raise ValueError(f"i64 out of range: {value}")
        return cls(DataKind.I64, value)

    @classmethod
    def bytes_(cls, value: Union[bytes, bytearray, memoryview]) -> "Data":
        return cls(DataKind.BYTES, bytes(value))

    @classmethod
    def string(cls, value: str) -> "Data":
        if not isinstance(value, str):
            raise TypeError(f"string value must be str, got {type(value).__name__}")
        return cls(DataKind.STRING, value)

    @classmethod
    def list_(cls, items: Iterable["Data"]) -> "Data":
        items = tuple(items)
        for item in items:
            if not isinstance(item, Data):
                raise TypeError(f"list items must be Data, got {type(item).__name__}")
        return cls(DataKind.LIST, items)

    @classmethod
    def map_(cls, entries: Union[Mapping[str, "Data"], Iterable[Tuple[str, "Data"]]]) -> "Data":
        """
        Build a map from a mapping or from (key, value) pairs.

        Raises:
            ValueError: a key appears twice in the pairs
        """
        pairs = entries.items() if isinstance(entries, Mapping) else entries
        seen = set()
        out: List[Tuple[str, Data]] = []
        for key, item in pairs:
            if not isinstance(key, str):
                raise TypeError(f"map keys must be str, got {type(key).__name__}")
            if not isinstance(item, Data):
                raise TypeError(f"map values must be Data, got {type(item).__name__}")
            if key in seen:
                raise ValueError(f"Duplicate map key: {key}")
            seen.add(key)
            out.append((key, item))
        return cls(DataKind.MAP, tuple(out))

    # ───────────────────────────────────────────────────────────────────────
    # Accessors
    # ───────────────────────────────────────────────────────────────────────

    def is_empty(self) -> bool:
        return self.kind is DataKind.EMPTY

    def as_bool(self) -> Optional[bool]:
        return self.value if self.kind is DataKind.BOOL else None

    def as_u64(self) -> Optional[int]:
        return self.value if self.kind is DataKind.U64 else None

    def as_i64(self) -> Optional[int]:
        return self.value if self.kind is DataKind.I64 else None

    def as_bytes(self) -> Optional[bytes]:
        return self.value if self.kind is DataKind.BYTES else None

    def as_string(self) -> Optional[str]:
        return self.value if self.kind is DataKind.STRING else None

    def as_list(self) -> Optional[List["Data"]]:
        return list(self.value) if self.kind is DataKind.LIST else None

    def as_map(self) -> Optional[Dict[str, "Data"]]:
        return dict(self.value) if self.kind is DataKind.MAP else None

    # ───────────────────────────────────────────────────────────────────────
    # Wire format
    # ───────────────────────────────────────────────────────────────────────

    def to_dict(self) -> dict:
        """Convert to {"type": ..., "value": ...} for JSON serialization."""
        if self.kind is DataKind.EMPTY:
            return {"type": "empty"}
        if self.kind is DataKind.BYTES:
            value = self.value.hex()
        elif self.kind is DataKind.LIST:
            value = [item.to_dict() for item in self.value]
        elif self.kind is DataKind.MAP:
            value = {key: item.to_dict() for key, item in self.value}
        else:
            value = self.value
        return {"type": self.kind.value, "value": value}

    @classmethod
    def from_dict(cls, data: dict) -> "Data":
        """
        Create Data from its wire dictionary.

        Raises:
            WireFormatError: unknown type, missing value or bad payload
        """
        if not isinstance(data, dict) or "type" not in data:
            raise WireFormatError(f"Data must be an object with a 'type' field: {data!r}")
        try:
            kind = DataKind(data["type"])
        except ValueError:
            raise WireFormatError(f"Unknown Data type: {data['type']!r}")

        if kind is DataKind.EMPTY:
            return cls.empty()
        if "value" not in data:
            raise WireFormatError(f"Data of type {kind.value} requires a 'value'")
        value = data["value"]

        try:
            if kind is DataKind.BOOL:
                return cls.bool_(value)
            if kind is DataKind.U64:
                return cls.u64(value)
            if kind is DataKind.I64:
                return cls.i64(value)
            if kind is DataKind.BYTES:
                return cls.bytes_(bytes.fromhex(value))
            if kind is DataKind.STRING:
                return cls.string(value)
            if kind is DataKind.LIST:
                return cls.list_(cls.from_dict(item) for item in value)
            return cls.map_((key, cls.from_dict(item)) for key, item in value.items())
        except WireFormatError:
            raise
        except (TypeError, ValueError, AttributeError) as e:
            raise WireFormatError(f"Invalid {kind.value} value: {e}")

    def __repr__(self) -> str:
        if self.kind is DataKind.EMPTY:
            return "Data.empty()"
        return f"Data.{self.kind.value}({self.value!r})"

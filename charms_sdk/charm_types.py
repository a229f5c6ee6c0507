"""
Charms SDK - Charm Types

Ledger transaction model the spell checkers operate over.

An input or output may carry a CharmState: a mapping from app tag to Data.
A tag present in the state means the UTXO carries that app's state; an
absent tag means the UTXO is agnostic to that app.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple
import json

from .data import U64_MAX, Data, WireFormatError

TXID_LENGTH = 32
VK_HASH_LENGTH = 32


def _decode_hex(value, what: str, length: Optional[int] = None) -> bytes:
    try:
        raw = bytes.fromhex(value)
    except (TypeError, ValueError):
        raise WireFormatError(f"{what} must be a hex string, got {value!r}")
    if length is not None and len(raw) != length:
        raise WireFormatError(f"{what} must be {length} bytes, got {len(raw)}")
    return raw


def _require(data: dict, key: str, what: str):
    if not isinstance(data, dict):
        raise WireFormatError(f"{what} must be an object, got {type(data).__name__}")
    if key not in data:
        raise WireFormatError(f"{what} is missing '{key}'")
    return data[key]


def _require_int_field(data: dict, key: str, what: str) -> int:
    value = _require(data, key, what)
    if isinstance(value, bool) or not isinstance(value, int):
        raise WireFormatError(f"{what}.{key} must be an integer, got {value!r}")
    return value


def _require_u64_field(data: dict, key: str, what: str) -> int:
    value = _require_int_field(data, key, what)
    if not 0 <= value <= U64_MAX:
        raise WireFormatError(f"{what}.{key} out of u64 range: {value}")
    return value


def _require_str_field(data: dict, key: str, what: str) -> str:
    value = _require(data, key, what)
    if not isinstance(value, str):
        raise WireFormatError(f"{what}.{key} must be a string, got {value!r}")
    return value


@dataclass(frozen=True)
class App:
    """
    App (spell application) descriptor.

    Structure:
      - tag: Namespaced identifier (e.g., "token:USD", "escrow:<id>")
      - vk_hash: 32-byte verification key identifier (opaque handle,
        not checked cryptographically)
      - params: App-specific parameters
    """
    tag: str
    vk_hash: bytes = bytes(VK_HASH_LENGTH)
    params: Data = field(default_factory=Data.empty)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "tag": self.tag,
            "vk_hash": self.vk_hash.hex(),
            "params": self.params.to_dict()
        }

    @classmethod
    def from_dict(cls, data: dict) -> "App":
        """Create App from dictionary."""
        params = data.get("params") if isinstance(data, dict) else None
        return cls(
            tag=_require_str_field(data, "tag", "App"),
            vk_hash=_decode_hex(_require(data, "vk_hash", "App"), "vk_hash", VK_HASH_LENGTH),
            params=Data.from_dict(params) if params else Data.empty()
        )


@dataclass(frozen=True)
class UtxoRef:
    """Reference to a UTXO (txid:vout)"""
    txid: bytes
    vout: int

    def __str__(self) -> str:
        return f"{self.txid.hex()}:{self.vout}"

    def to_dict(self) -> dict:
        return {"txid": self.txid.hex(), "vout": self.vout}

    @classmethod
    def from_dict(cls, data: dict) -> "UtxoRef":
        return cls(
            txid=_decode_hex(_require(data, "txid", "UtxoRef"), "utxo txid", TXID_LENGTH),
            vout=_require_u64_field(data, "vout", "UtxoRef")
        )


class CharmState:
    """
    Charm state attached to a UTXO: app tag -> Data.

    Treated as immutable; with_app() returns a new state.
    """

    def __init__(self, apps: Optional[Dict[str, Data]] = None):
        self._apps: Dict[str, Data] = dict(apps or {})

    @property
    def apps(self) -> Dict[str, Data]:
        return dict(self._apps)

    def get(self, tag: str) -> Optional[Data]:
        """Get state for an app (None if this UTXO does not carry it)."""
        return self._apps.get(tag)

    def has(self, tag: str) -> bool:
        return tag in self._apps

    def with_app(self, tag: str, state: Data) -> "CharmState":
        apps = dict(self._apps)
        apps[tag] = state
        return CharmState(apps)

    def __eq__(self, other) -> bool:
        return isinstance(other, CharmState) and self._apps == other._apps

    def __repr__(self) -> str:
        return f"CharmState({self._apps!r})"

    def to_dict(self) -> dict:
        return {"apps": {tag: data.to_dict() for tag, data in self._apps.items()}}

    @classmethod
    def from_dict(cls, data: dict) -> "CharmState":
        apps = _require(data, "apps", "CharmState")
        if not isinstance(apps, dict):
            raise WireFormatError("CharmState.apps must be an object")
        return cls({tag: Data.from_dict(item) for tag, item in apps.items()})


def _state_from(value) -> Optional[CharmState]:
    return CharmState.from_dict(value) if value is not None else None


def _state_to(state: Optional[CharmState]) -> Optional[dict]:
    return state.to_dict() if state is not None else None


@dataclass
class TxInput:
    """Transaction input with optional charm state"""
    utxo_ref: UtxoRef
    charm_state: Optional[CharmState] = None

    def to_dict(self) -> dict:
        return {
            "utxo_ref": self.utxo_ref.to_dict(),
            "charm_state": _state_to(self.charm_state)
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TxInput":
        return cls(
            utxo_ref=UtxoRef.from_dict(_require(data, "utxo_ref", "TxInput")),
            charm_state=_state_from(data.get("charm_state"))
        )


@dataclass
class TxOutput:
    """Transaction output with optional charm state"""
    index: int
    value: int                  # Satoshis
    script_pubkey: bytes = b""
    charm_state: Optional[CharmState] = None

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "value": self.value,
            "script_pubkey": self.script_pubkey.hex(),
            "charm_state": _state_to(self.charm_state)
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TxOutput":
        return cls(
            index=_require_u64_field(data, "index", "TxOutput"),
            value=_require_u64_field(data, "value", "TxOutput"),
            script_pubkey=_decode_hex(data.get("script_pubkey", ""), "script_pubkey"),
            charm_state=_state_from(data.get("charm_state"))
        )


@dataclass
class SpellInput:
    """Spell input reference"""
    utxo_ref: UtxoRef
    charms: Optional[CharmState] = None

    def to_dict(self) -> dict:
        return {"utxo_ref": self.utxo_ref.to_dict(), "charms": _state_to(self.charms)}

    @classmethod
    def from_dict(cls, data: dict) -> "SpellInput":
        return cls(
            utxo_ref=UtxoRef.from_dict(_require(data, "utxo_ref", "SpellInput")),
            charms=_state_from(data.get("charms"))
        )


@dataclass
class SpellOutput:
    """Spell output definition"""
    index: int
    charms: Optional[CharmState] = None

    def to_dict(self) -> dict:
        return {"index": self.index, "charms": _state_to(self.charms)}

    @classmethod
    def from_dict(cls, data: dict) -> "SpellOutput":
        return cls(
            index=_require_u64_field(data, "index", "SpellOutput"),
            charms=_state_from(data.get("charms"))
        )


@dataclass
class NormalizedSpell:
    """Normalized spell (version + spell inputs/outputs)"""
    version: int
    ins: List[SpellInput] = field(default_factory=list)
    outs: List[SpellOutput] = field(default_factory=list)

    def verify(self) -> bool:
        """Well-formed: positive version and at least one input and output."""
        return self.version > 0 and len(self.ins) > 0 and len(self.outs) > 0

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "ins": [i.to_dict() for i in self.ins],
            "outs": [o.to_dict() for o in self.outs]
        }

    @classmethod
    def from_dict(cls, data: dict) -> "NormalizedSpell":
        return cls(
            version=_require_int_field(data, "version", "NormalizedSpell"),
            ins=[SpellInput.from_dict(i) for i in data.get("ins", [])],
            outs=[SpellOutput.from_dict(o) for o in data.get("outs", [])]
        )


@dataclass
class Transaction:
    """
    Bitcoin transaction in the Charms context.

    Structure:
      - txid: 32-byte transaction id
      - inputs: Spent UTXOs with their charm states
      - outputs: Created UTXOs with their charm states
      - spell: Optional normalized spell being executed
    """
    txid: bytes
    inputs: List[TxInput] = field(default_factory=list)
    outputs: List[TxOutput] = field(default_factory=list)
    spell: Optional[NormalizedSpell] = None

    def add_input(self, tx_input: TxInput):
        self.inputs.append(tx_input)

    def add_output(self, tx_output: TxOutput):
        self.outputs.append(tx_output)

    def verify_spell(self) -> bool:
        """No spell means no charm constraints."""
        if self.spell is None:
            return True
        return self.spell.verify()

    def input_states(self, tag: str) -> Iterator[Data]:
        """Data under tag for every input that carries it, in input order."""
        for tx_input in self.inputs:
            if tx_input.charm_state is not None and tx_input.charm_state.has(tag):
                yield tx_input.charm_state.get(tag)

    def output_states(self, tag: str) -> Iterator[Data]:
        """Data under tag for every output that carries it, in output order."""
        for tx_output in self.outputs:
            if tx_output.charm_state is not None and tx_output.charm_state.has(tag):
                yield tx_output.charm_state.get(tag)

    def summary(self) -> Tuple[str, int, int]:
        return self.txid.hex(), len(self.inputs), len(self.outputs)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "txid": self.txid.hex(),
            "inputs": [i.to_dict() for i in self.inputs],
            "outputs": [o.to_dict() for o in self.outputs]
        }
        if self.spell is not None:
            result["spell"] = self.spell.to_dict()
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "Transaction":
        """Create Transaction from dictionary."""
        spell = data.get("spell") if isinstance(data, dict) else None
        return cls(
            txid=_decode_hex(_require(data, "txid", "Transaction"), "txid", TXID_LENGTH),
            inputs=[TxInput.from_dict(i) for i in data.get("inputs", [])],
            outputs=[TxOutput.from_dict(o) for o in data.get("outputs", [])],
            spell=NormalizedSpell.from_dict(spell) if spell else None
        )

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_json(cls, json_str: str) -> "Transaction":
        """Create Transaction from JSON string."""
        return cls.from_dict(json.loads(json_str))

"""
Charms SDK - Unified Spell Checker

Routes an app to the token, NFT or escrow checker by tag prefix:

  token:   -> token    bollar: -> token (type "bollar")
  nft:     -> nft
  escrow:  -> escrow   bounty: -> escrow (type "bounty")
  other    -> token

The proof hash is a display fingerprint of the transaction shape, not a
soundness proof.
"""

import json
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Union

from .charm import charm_hash
from .charm_types import App, NormalizedSpell, Transaction
from .data import Data
from .escrow_checker import EscrowCheckResult, escrow_check
from .nft_checker import NftCheckResult, nft_check
from .token_checker import TokenCheckResult, token_check

CheckDetails = Union[TokenCheckResult, NftCheckResult, EscrowCheckResult]


class SpellType(Enum):
    """Spell type reported by check_spell"""
    TOKEN = "token"
    NFT = "nft"
    ESCROW = "escrow"
    BOUNTY = "bounty"
    BOLLAR = "bollar"


# prefix -> (type, checker); first match wins
_ROUTES = [
    ("token:", SpellType.TOKEN, token_check),
    ("bollar:", SpellType.BOLLAR, token_check),
    ("nft:", SpellType.NFT, nft_check),
    ("escrow:", SpellType.ESCROW, escrow_check),
    ("bounty:", SpellType.BOUNTY, escrow_check),
]

SUPPORTED_TYPES = [spell_type.value for spell_type in SpellType]


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class SpellCheckResult:
    """Unified check verdict"""
    type: SpellType
    valid: bool
    details: CheckDetails
    proof_hash: str
    timestamp: int

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "valid": self.valid,
            "details": self.details.to_dict(),
            "proof_hash": self.proof_hash,
            "timestamp": self.timestamp
        }


def _route(tag: str):
    tag = tag.lower()
    for prefix, spell_type, checker in _ROUTES:
        if tag.startswith(prefix):
            return spell_type, checker
    return SpellType.TOKEN, token_check


def spell_type_for(tag: str) -> SpellType:
    """Spell type an app tag routes to."""
    return _route(tag)[0]


def proof_hash(tx: Transaction) -> str:
    """Sponge hash of the canonical {txid, inputCount, outputCount} summary."""
    txid, input_count, output_count = tx.summary()
    summary = json.dumps(
        {"txid": txid, "inputCount": input_count, "outputCount": output_count},
        separators=(",", ":")
    )
    return charm_hash(summary.encode("utf-8")).hex()


def check_spell(app: App, tx: Transaction,
                x: Optional[Data] = None, w: Optional[Data] = None,
                clock: Callable[[], int] = _now_ms) -> SpellCheckResult:
    """
    Check a spell with the checker its tag routes to.

    Args:
        app: App descriptor
        tx: Transaction
        x: Public auth input (default Data.empty())
        w: Witness (default Data.empty())
        clock: Millisecond clock for the timestamp

    Returns:
        SpellCheckResult
    """
    x = x if x is not None else Data.empty()
    w = w if w is not None else Data.empty()

    spell_type, checker = _route(app.tag)
    details = checker(app, tx, x, w)

    return SpellCheckResult(
        type=spell_type,
        valid=details.valid,
        details=details,
        proof_hash=proof_hash(tx),
        timestamp=clock()
    )


def verify_spell(spell: NormalizedSpell) -> dict:
    """
    Structural spell check.

    Returns:
        {"valid", "version", "input_count", "output_count", "errors"}
    """
    valid = spell.verify()
    return {
        "valid": valid,
        "version": spell.version,
        "input_count": len(spell.ins),
        "output_count": len(spell.outs),
        "errors": [] if valid else ["Invalid spell structure"]
    }

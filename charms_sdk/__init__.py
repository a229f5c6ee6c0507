"""
Charms SDK

Charm cipher/hash primitive and spell checkers for Charms apps on Bitcoin.

Architecture:
  - Charm primitive: permutation-based stream cipher + sponge hash
  - Charm types: transactions whose UTXOs carry typed app state (Data)
  - Spell checkers: token conservation, NFT uniqueness, escrow lifecycle
  - Service/client: the checkers over HTTP (Flask service, requests client)

Everything in the core is pure and synchronous: it consumes plain
transactions and returns verdicts.

Usage:
    from charms_sdk import Data, EscrowState, build_escrow_transaction, check_spell

    app, tx = build_escrow_transaction(
        "escrow:demo",
        current_state=EscrowState.CREATED,
        next_state=EscrowState.FUNDED,
        amount=50000,
    )
    result = check_spell(app, tx)
    print(result.valid, result.details.errors)
"""

__version__ = "0.1.0"

from .charm import (
    Charm,
    CharmError,
    InvalidKeyLength,
    InvalidNonceLength,
    AuthenticationFailure,
    permute,
    charm_hash,
    bytes_to_hex,
    hex_to_bytes,
    generate_key,
    generate_nonce,
    encrypt_message,
    decrypt_message,
    hash_message,
    run_charm_demo,
)
from .data import Data, DataKind, WireFormatError
from .charm_types import (
    App,
    UtxoRef,
    CharmState,
    TxInput,
    TxOutput,
    Transaction,
    NormalizedSpell,
    SpellInput,
    SpellOutput,
)
from .token_checker import TokenCheckResult, token_check, is_token_mint, is_token_burn
from .nft_checker import NftCheckResult, nft_check
from .escrow_checker import (
    EscrowPhase,
    EscrowState,
    EscrowCheckResult,
    escrow_check,
    escrow_state_name,
    parse_escrow_state,
    is_valid_transition,
)
from .spell_checker import SpellType, SpellCheckResult, check_spell, verify_spell
from .builders import build_token_transaction, build_escrow_transaction
from .ids import IdGenerator, RandomIdGenerator, SequentialIdGenerator
from .keystore import KeyStore, MemoryKeyStore, JSONFileKeyStore
from .records import EncryptedRecord, seal_record, open_record, record_proof
from .client import SpellClient, SpellClientError

__all__ = [
    # Charm primitive
    "Charm", "CharmError", "InvalidKeyLength", "InvalidNonceLength",
    "AuthenticationFailure", "permute", "charm_hash", "bytes_to_hex",
    "hex_to_bytes", "generate_key", "generate_nonce", "encrypt_message",
    "decrypt_message", "hash_message", "run_charm_demo",
    # Types
    "Data", "DataKind", "WireFormatError", "App", "UtxoRef", "CharmState",
    "TxInput", "TxOutput", "Transaction", "NormalizedSpell", "SpellInput",
    "SpellOutput",
    # Checkers
    "TokenCheckResult", "token_check", "is_token_mint", "is_token_burn",
    "NftCheckResult", "nft_check",
    "EscrowPhase", "EscrowState", "EscrowCheckResult", "escrow_check",
    "escrow_state_name", "parse_escrow_state", "is_valid_transition",
    "SpellType", "SpellCheckResult", "check_spell", "verify_spell",
    # Builders
    "build_token_transaction", "build_escrow_transaction",
    "IdGenerator", "RandomIdGenerator", "SequentialIdGenerator",
    # Keys and records
    "KeyStore", "MemoryKeyStore", "JSONFileKeyStore",
    "EncryptedRecord", "seal_record", "open_record", "record_proof",
    # Service client
    "SpellClient", "SpellClientError",
]

"""
Charms SDK - Sealed Records

Encrypt JSON records (escrow terms, bounty descriptions, ...) with the
Charm cipher. The key goes to an injected KeyStore; the record carries the
ciphertext, tag, nonce and a hash of the plaintext.
"""

import json
import logging
from dataclasses import dataclass
from typing import Optional

from .charm import (
    NONCE_MAX_LENGTH,
    NONCE_MIN_LENGTH,
    TAG_LENGTH,
    AuthenticationFailure,
    Charm,
    charm_hash,
    generate_key,
    generate_nonce,
    mask_secret,
)
from .data import WireFormatError
from .keystore import KeyStore

log = logging.getLogger(__name__)


@dataclass
class EncryptedRecord:
    """Sealed record"""
    record_id: str
    ciphertext: bytes
    tag: bytes
    nonce: bytes
    proof_hash: str         # Hex hash of the plaintext JSON

    def to_dict(self) -> dict:
        return {
            "record_id": self.record_id,
            "ciphertext": self.ciphertext.hex(),
            "tag": self.tag.hex(),
            "nonce": self.nonce.hex(),
            "proof_hash": self.proof_hash
        }

    @classmethod
    def from_dict(cls, data: dict) -> "EncryptedRecord":
        """
        Create EncryptedRecord from dictionary.

        Raises:
            KeyError: a required field is missing
            WireFormatError: bad hex, nonce outside 8..16 bytes or tag not 16 bytes
        """
        try:
            ciphertext = bytes.fromhex(data["ciphertext"])
            tag = bytes.fromhex(data["tag"])
            nonce = bytes.fromhex(data["nonce"])
        except (TypeError, ValueError) as e:
            raise WireFormatError(f"Record fields must be hex strings: {e}")
        if len(tag) != TAG_LENGTH:
            raise WireFormatError(f"Record tag must be {TAG_LENGTH} bytes, got {len(tag)}")
        if not NONCE_MIN_LENGTH <= len(nonce) <= NONCE_MAX_LENGTH:
            raise WireFormatError(
                f"Record nonce must be {NONCE_MIN_LENGTH}-{NONCE_MAX_LENGTH} bytes, got {len(nonce)}"
            )
        return cls(
            record_id=data["record_id"],
            ciphertext=ciphertext,
            tag=tag,
            nonce=nonce,
            proof_hash=data.get("proof_hash", "")
        )


def _canonical_json(payload: dict) -> bytes:
    return json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")


def seal_record(record_id: str, payload: dict, keystore: KeyStore,
                key: Optional[bytes] = None,
                nonce: Optional[bytes] = None) -> EncryptedRecord:
    """
    Encrypt a JSON payload and remember its key.

    Sealing again under an existing record_id replaces the stored key;
    records sealed earlier under that id can no longer be opened. A
    warning is logged when that happens.

    Args:
        record_id: Record identifier (keystore key)
        payload: JSON-serializable dict
        keystore: Where the key is stored
        key: 32-byte key (random if omitted)
        nonce: 8-16 byte nonce (random 16 bytes if omitted)

    Returns:
        EncryptedRecord
    """
    key = key if key is not None else generate_key()
    nonce = nonce if nonce is not None else generate_nonce()

    plaintext = _canonical_json(payload)
    buf = bytearray(plaintext)
    tag = Charm(key, nonce).encrypt(buf)

    if record_id in keystore:
        log.warning(f"Replacing key for record {record_id}; earlier seals become unreadable")
    keystore.put(record_id, key)
    record = EncryptedRecord(
        record_id=record_id,
        ciphertext=bytes(buf),
        tag=tag,
        nonce=bytes(nonce),
        proof_hash=charm_hash(plaintext).hex()
    )
    log.info(f"Record sealed: {record_id} proof={mask_secret(record.proof_hash)}")
    return record


def open_record(record: EncryptedRecord, keystore: KeyStore) -> dict:
    """
    Decrypt a sealed record.

    Raises:
        KeyError: no key stored for the record
        AuthenticationFailure: tag does not verify
    """
    key = keystore.get(record.record_id)
    if key is None:
        raise KeyError(f"No key stored for record {record.record_id}")

    buf = bytearray(record.ciphertext)
    if not Charm(key, record.nonce).decrypt(buf, record.tag):
        log.warning(f"Record {record.record_id} failed authentication")
        raise AuthenticationFailure(f"Record {record.record_id} failed authentication")
    return json.loads(buf.decode("utf-8"))


def record_proof(record_id: str, keystore: KeyStore) -> Optional[str]:
    """Verification fingerprint for a record whose key is known."""
    if keystore.get(record_id) is None:
        return None
    return charm_hash(f"{record_id}:verified".encode("utf-8")).hex()

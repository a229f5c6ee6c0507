"""
Charms SDK - Charm Primitive

Permutation-based authenticated stream cipher and sponge hash.

State layout (64 bytes):
  - bytes  0..31: key
  - bytes 32..47: nonce (8-16 bytes, zero padded)
  - bytes 48..63: block counter (little-endian)

This is a simplified teaching construction (ChaCha-like keystream plus an
XOR-accumulated tag). It is NOT a vetted AEAD and offers no side-channel
resistance. Use a standard AEAD for anything that matters; the call
contract (construct / encrypt / decrypt / hash) stays the same.

Usage:
    key = bytes([1]) * 32
    nonce = bytes([2]) * 16

    message = bytearray(b"Hello from Charm!")
    tag = Charm(key, nonce).encrypt(message)      # message is now ciphertext

    ok = Charm(key, nonce).decrypt(message, tag)  # message is plaintext again
    digest = charm_hash(b"Hello from Charm!")
"""

import logging
import secrets
from typing import Tuple, Union

log = logging.getLogger(__name__)

KEY_LENGTH = 32
NONCE_MIN_LENGTH = 8
NONCE_MAX_LENGTH = 16
STATE_SIZE = 64
TAG_LENGTH = 16
DIGEST_LENGTH = 32
HASH_RATE = 32          # Bytes absorbed per permutation call
ROUNDS = 20

_NONCE_OFFSET = 32
_COUNTER_OFFSET = 48
_HASH_OFFSET = 4        # Bytes 0..3 hold the message length

Buffer = Union[bytearray, memoryview]


# ═══════════════════════════════════════════════════════════════════════════════
# ERRORS
# ═══════════════════════════════════════════════════════════════════════════════

class CharmError(ValueError):
    """Base class for Charm primitive errors."""


class InvalidKeyLength(CharmError):
    """Key is not exactly 32 bytes."""
    def __init__(self, length: int):
        self.length = length
        super().__init__(f"Key must be {KEY_LENGTH} bytes, got {length}")


class InvalidNonceLength(CharmError):
    """Nonce is outside the 8..16 byte range."""
    def __init__(self, length: int):
        self.length = length
        super().__init__(
            f"Nonce must be {NONCE_MIN_LENGTH}-{NONCE_MAX_LENGTH} bytes, got {length}"
        )


class AuthenticationFailure(CharmError):
    """Tag did not verify (tampered ciphertext, wrong key or wrong nonce)."""
    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message)


# ═══════════════════════════════════════════════════════════════════════════════
# PERMUTATION
# ═══════════════════════════════════════════════════════════════════════════════

def _rotl8(value: int, shift: int) -> int:
    return ((value << shift) | (value >> (8 - shift))) & 0xff


def permute(state: Buffer) -> None:
    """
    Run the 20-round byte-oriented ARX permutation in place.

    Each round walks the 16 mixing positions with a four-point butterfly
    over (i, i+4, i+8, i+12) mod 16. Only the first 16 bytes are mixed.

    Args:
        state: 64-byte mutable buffer (caller guarantees the length)
    """
    for _ in range(ROUNDS):
        for i in range(16):
            a = i
            b = (i + 4) % 16
            c = (i + 8) % 16
            d = (i + 12) % 16

            state[a] = (state[a] + state[b]) & 0xff
            state[d] = _rotl8(state[d] ^ state[a], 4)

            state[c] = (state[c] + state[d]) & 0xff
            state[b] = _rotl8(state[b] ^ state[c], 5)


# ═══════════════════════════════════════════════════════════════════════════════
# CIPHER
# ═══════════════════════════════════════════════════════════════════════════════

def _require_mutable(buf) -> None:
    if isinstance(buf, memoryview):
        if buf.readonly:
            raise TypeError("Buffer must be writable")
        return
    if not isinstance(buf, bytearray):
        raise TypeError(f"Buffer must be a bytearray, got {type(buf).__name__}")


class Charm:
    """
    Charm cipher session.

    One instance encrypts OR decrypts exactly one message: the block
    counter keeps advancing, and a (key, nonce) pair must never be used
    for two different plaintexts.
    """

    def __init__(self, key: bytes, nonce: bytes):
        """
        Initialize cipher state from key and nonce.

        Args:
            key: 32-byte key
            nonce: 8-16 byte nonce

        Raises:
            InvalidKeyLength: key is not 32 bytes
            InvalidNonceLength: nonce is outside 8..16 bytes
        """
        if len(key) != KEY_LENGTH:
            raise InvalidKeyLength(len(key))
        if not NONCE_MIN_LENGTH <= len(nonce) <= NONCE_MAX_LENGTH:
            raise InvalidNonceLength(len(nonce))

        self.key = bytes(key)
        self.nonce = bytes(nonce)
        self.state = self._init_state()

    def _init_state(self) -> bytearray:
        state = bytearray(STATE_SIZE)
        state[0:KEY_LENGTH] = self.key
        state[_NONCE_OFFSET:_NONCE_OFFSET + len(self.nonce)] = self.nonce
        permute(state)
        return state

    def _next_block(self) -> bytearray:
        """Permute a copy of the state, then bump the counter."""
        block = bytearray(self.state)
        permute(block)
        for i in range(_COUNTER_OFFSET, STATE_SIZE):
            self.state[i] = (self.state[i] + 1) & 0xff
            if self.state[i] != 0:
                break
        return block

    def _apply_keystream(self, buf: Buffer) -> None:
        block = self._next_block()
        offset = 0
        for i in range(len(buf)):
            if offset >= len(block):
                block = self._next_block()
                offset = 0
            buf[i] ^= block[offset]
            offset += 1

    def _finalize_tag(self, acc: bytearray) -> bytes:
        for i in range(TAG_LENGTH):
            acc[i] ^= self.state[i]
        return bytes(acc)

    def encrypt(self, message: Buffer) -> bytes:
        """
        Encrypt message in place and return the authentication tag.

        Args:
            message: Plaintext buffer, overwritten with ciphertext

        Returns:
            16-byte tag
        """
        _require_mutable(message)
        self._apply_keystream(message)

        acc = bytearray(TAG_LENGTH)
        for i in range(len(message)):
            acc[i % TAG_LENGTH] ^= message[i]
        return self._finalize_tag(acc)

    def decrypt(self, ciphertext: Buffer, tag: bytes) -> bool:
        """
        Verify the tag, then decrypt in place.

        The buffer is left untouched when verification fails. All tag bytes
        are compared before branching; this is not a constant-time check.

        Args:
            ciphertext: Ciphertext buffer, overwritten with plaintext on success
            tag: 16-byte tag from encrypt()

        Returns:
            True if the tag verified and the buffer now holds plaintext
        """
        _require_mutable(ciphertext)

        acc = bytearray(TAG_LENGTH)
        for i in range(len(ciphertext)):
            acc[i % TAG_LENGTH] ^= ciphertext[i]
        expected = self._finalize_tag(acc)

        diff = len(tag) ^ TAG_LENGTH
        for i in range(TAG_LENGTH):
            diff |= expected[i] ^ (tag[i] if i < len(tag) else 0)
        if diff != 0:
            return False

        self._apply_keystream(ciphertext)
        return True

    @staticmethod
    def hash(message: bytes) -> bytes:
        """Sponge hash (see charm_hash). Independent of key and nonce."""
        return charm_hash(message)


# ═══════════════════════════════════════════════════════════════════════════════
# SPONGE HASH
# ═══════════════════════════════════════════════════════════════════════════════

def charm_hash(message: bytes) -> bytes:
    """
    Hash a message with the sponge construction.

    The state starts as zeros with len(message) (little-endian u32) in
    bytes 0..3. Each 32-byte chunk is XORed into bytes 4..35 and followed
    by one permutation. The digest is the first 32 bytes of the state.

    Args:
        message: Any byte sequence (may be empty)

    Returns:
        32-byte digest
    """
    state = bytearray(STATE_SIZE)
    state[0:4] = (len(message) & 0xffffffff).to_bytes(4, "little")

    for offset in range(0, len(message), HASH_RATE):
        chunk = message[offset:offset + HASH_RATE]
        for i, byte in enumerate(chunk):
            state[_HASH_OFFSET + i] ^= byte
        permute(state)

    return bytes(state[:DIGEST_LENGTH])


# ═══════════════════════════════════════════════════════════════════════════════
# HELPERS
# ═══════════════════════════════════════════════════════════════════════════════

def bytes_to_hex(data: bytes) -> str:
    """Lowercase hex, two chars per byte, no separators."""
    return bytes(data).hex()


def hex_to_bytes(hex_str: str) -> bytes:
    """
    Decode a hex string produced by bytes_to_hex.

    Raises:
        ValueError: odd length or non-hex characters
    """
    if len(hex_str) % 2 != 0:
        raise ValueError(f"Hex string has odd length: {len(hex_str)}")
    return bytes.fromhex(hex_str)


def generate_key() -> bytes:
    """Random 32-byte key."""
    return secrets.token_bytes(KEY_LENGTH)


def generate_nonce(length: int = NONCE_MAX_LENGTH) -> bytes:
    """Random nonce (8-16 bytes)."""
    if not NONCE_MIN_LENGTH <= length <= NONCE_MAX_LENGTH:
        raise InvalidNonceLength(length)
    return secrets.token_bytes(length)


def mask_secret(secret: str, visible_prefix: int = 8, visible_suffix: int = 4) -> str:
    """Mask a secret for safe logging. NEVER log full keys or plaintexts."""
    if not secret or len(secret) <= visible_prefix + visible_suffix:
        return "***"
    return f"{secret[:visible_prefix]}...{secret[-visible_suffix:]}"


# ═══════════════════════════════════════════════════════════════════════════════
# HIGH-LEVEL API
# ═══════════════════════════════════════════════════════════════════════════════

def encrypt_message(message: str, key: bytes, nonce: bytes) -> Tuple[bytes, bytes]:
    """
    Encrypt a UTF-8 string.

    Returns:
        (ciphertext, tag)
    """
    buf = bytearray(message.encode("utf-8"))
    tag = Charm(key, nonce).encrypt(buf)
    return bytes(buf), tag


def decrypt_message(ciphertext: bytes, tag: bytes, key: bytes, nonce: bytes) -> str:
    """
    Decrypt ciphertext produced by encrypt_message.

    Raises:
        AuthenticationFailure: tag does not verify
    """
    buf = bytearray(ciphertext)
    if not Charm(key, nonce).decrypt(buf, tag):
        log.debug(f"Tag mismatch for ciphertext {mask_secret(bytes_to_hex(ciphertext))}")
        raise AuthenticationFailure()
    return buf.decode("utf-8")


def hash_message(message: str) -> str:
    """Hex digest of a UTF-8 string."""
    return bytes_to_hex(charm_hash(message.encode("utf-8")))


def run_charm_demo() -> dict:
    """
    Encrypt, decrypt and hash the canonical demo message.

    Returns:
        {
            "original_message": ...,
            "encrypted_hex": ...,
            "tag_hex": ...,
            "decrypted_message": ...,
            "hash_hex": ...
        }
    """
    key = bytes([1]) * KEY_LENGTH
    nonce = bytes([2]) * NONCE_MAX_LENGTH
    original = "Hello from Charm!"

    buf = bytearray(original.encode("utf-8"))
    tag = Charm(key, nonce).encrypt(buf)
    encrypted_hex = bytes_to_hex(buf)

    Charm(key, nonce).decrypt(buf, tag)

    return {
        "original_message": original,
        "encrypted_hex": encrypted_hex,
        "tag_hex": bytes_to_hex(tag),
        "decrypted_message": buf.decode("utf-8"),
        "hash_hex": hash_message(original),
    }

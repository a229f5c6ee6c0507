"""
Charms SDK - Keystore

Record id -> encryption key storage, injected into whatever layer seals
records. The core never holds keys globally.

Usage:
    keys = JSONFileKeyStore("/path/to/keys.json")
    keys.put("bounty-1", key)
    key = keys.get("bounty-1")
"""

import json
import logging
import os
import threading
import time
from abc import ABC, abstractmethod
from typing import Dict, Optional

from .charm import KEY_LENGTH, InvalidKeyLength

log = logging.getLogger(__name__)


class KeyStore(ABC):
    """Keystore capability: get/put by record id."""

    @abstractmethod
    def get(self, record_id: str) -> Optional[bytes]:
        """Key for record_id, or None."""

    @abstractmethod
    def put(self, record_id: str, key: bytes):
        """Store (or replace) the key for record_id."""

    def __contains__(self, record_id: str) -> bool:
        return self.get(record_id) is not None


def _check_key(key: bytes) -> bytes:
    if len(key) != KEY_LENGTH:
        raise InvalidKeyLength(len(key))
    return bytes(key)


class MemoryKeyStore(KeyStore):
    """In-process keystore."""

    def __init__(self):
        self._keys: Dict[str, bytes] = {}

    def get(self, record_id: str) -> Optional[bytes]:
        return self._keys.get(record_id)

    def put(self, record_id: str, key: bytes):
        self._keys[record_id] = _check_key(key)


class JSONFileKeyStore(KeyStore):
    """
    Keystore persisted as JSON.

    File format:
        {"version": "1.0", "updated_ts": ..., "keys": {record_id: hex_key}}

    The file is rewritten on every put().
    """

    def __init__(self, storage_path: str = "charm_keys.json"):
        """
        Initialize keystore.

        Args:
            storage_path: Path to store keys locally
        """
        self.storage_path = storage_path
        self._keys: Dict[str, bytes] = {}
        self._lock = threading.Lock()
        self._load_keys()

    def _load_keys(self):
        """Load keys from storage."""
        if not os.path.exists(self.storage_path):
            return
        try:
            with open(self.storage_path, "r") as f:
                data = json.load(f)
            for record_id, key_hex in data.get("keys", {}).items():
                self._keys[record_id] = _check_key(bytes.fromhex(key_hex))
            log.debug(f"Loaded {len(self._keys)} key(s) from {self.storage_path}")
        except (OSError, ValueError, AttributeError) as e:
            log.warning(f"Failed to load keys from {self.storage_path}: {e}")

    def _save_keys(self):
        """Save keys to storage."""
        data = {
            "version": "1.0",
            "updated_ts": int(time.time()),
            "keys": {record_id: key.hex() for record_id, key in self._keys.items()}
        }
        with open(self.storage_path, "w") as f:
            json.dump(data, f, indent=2)

    def get(self, record_id: str) -> Optional[bytes]:
        with self._lock:
            return self._keys.get(record_id)

    def put(self, record_id: str, key: bytes):
        key = _check_key(key)
        with self._lock:
            self._keys[record_id] = key
            self._save_keys()

"""
Charms SDK - Id Generators

Source of fabricated identifiers (txids, vk hashes). Builders take an
IdGenerator so tests can supply deterministic ids.
"""

import secrets
from abc import ABC, abstractmethod

from .charm import charm_hash


class IdGenerator(ABC):
    """Produces n-byte identifiers."""

    @abstractmethod
    def new_id(self, n: int = 32) -> bytes:
        ...


class RandomIdGenerator(IdGenerator):
    """Cryptographically random ids (default)."""

    def new_id(self, n: int = 32) -> bytes:
        return secrets.token_bytes(n)


class SequentialIdGenerator(IdGenerator):
    """
    Deterministic ids: charm_hash(seed || counter), extended as needed.

    Two generators with the same seed yield the same sequence.
    """

    def __init__(self, seed: bytes = b"charms"):
        self.seed = bytes(seed)
        self.counter = 0

    def new_id(self, n: int = 32) -> bytes:
        self.counter += 1
        out = b""
        block = 0
        while len(out) < n:
            material = self.seed + self.counter.to_bytes(8, "little") + block.to_bytes(4, "little")
            out += charm_hash(material)
            block += 1
        return out[:n]

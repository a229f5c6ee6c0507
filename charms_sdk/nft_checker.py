"""
Charms SDK - NFT Spell Checker

NFT rules:
  - Each NFT id (bytes under app.tag) appears at most once in the outputs
  - An output NFT not present in the inputs is a mint and needs a
    non-empty auth input x (contents are not inspected)
"""

from dataclasses import dataclass, field
from typing import List

from .charm_types import App, Transaction
from .data import Data


@dataclass
class NftCheckResult:
    """NFT check verdict"""
    valid: bool
    input_nfts: List[str] = field(default_factory=list)
    output_nfts: List[str] = field(default_factory=list)
    duplicates: List[str] = field(default_factory=list)
    unauthorized_mints: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "input_nfts": list(self.input_nfts),
            "output_nfts": list(self.output_nfts),
            "duplicates": list(self.duplicates),
            "unauthorized_mints": list(self.unauthorized_mints),
            "errors": list(self.errors)
        }


def nft_check(app: App, tx: Transaction, x: Data, w: Data) -> NftCheckResult:
    """
    Validate an NFT transfer or mint.

    Args:
        app: NFT app (tag e.g. "nft:collection")
        tx: Transaction to check
        x: Public auth input; Data.empty() means mints are unauthorized
        w: Witness (unused)

    Returns:
        NftCheckResult with hex NFT ids in transaction order
    """
    errors: List[str] = []

    input_nfts = [
        nft_id.hex()
        for nft_id in (data.as_bytes() for data in tx.input_states(app.tag))
        if nft_id is not None
    ]

    output_nfts: List[str] = []
    duplicates: List[str] = []
    seen = set()
    for data in tx.output_states(app.tag):
        nft_id = data.as_bytes()
        if nft_id is None:
            continue
        nft_hex = nft_id.hex()
        if nft_hex in seen:
            duplicates.append(nft_hex)
        seen.add(nft_hex)
        output_nfts.append(nft_hex)

    if duplicates:
        errors.append(f"Duplicate NFTs in outputs: {', '.join(duplicates)}")

    known = set(input_nfts)
    unauthorized_mints = [
        nft for nft in output_nfts
        if nft not in known and x.is_empty()
    ]
    if unauthorized_mints:
        errors.append(f"Unauthorized mints: {len(unauthorized_mints)}")

    return NftCheckResult(
        valid=not duplicates and not unauthorized_mints,
        input_nfts=input_nfts,
        output_nfts=output_nfts,
        duplicates=duplicates,
        unauthorized_mints=unauthorized_mints,
        errors=errors
    )

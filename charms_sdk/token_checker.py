"""
Charms SDK - Token Spell Checker

Fungible token rules:
  - Conservation: sum(input amounts) == sum(output amounts) under app.tag
  - Authorization: x must be non-empty bytes, OR Data.empty() (unconditional
    transfer, vacuously authorized)

Mint and burn are reported by separate predicates and never waive the
conservation rule inside token_check(); callers decide which to trust.
"""

from dataclasses import dataclass, field
from typing import Iterable, List

from .charm_types import App, Transaction
from .data import Data


@dataclass
class TokenCheckResult:
    """Token check verdict"""
    valid: bool
    input_sum: int
    output_sum: int
    conserved: bool
    authorized: bool
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "input_sum": self.input_sum,
            "output_sum": self.output_sum,
            "conserved": self.conserved,
            "authorized": self.authorized,
            "errors": list(self.errors)
        }


def _sum_amounts(states: Iterable[Data]) -> int:
    # Non-u64 state counts as zero
    return sum(data.as_u64() or 0 for data in states)


def token_sums(app: App, tx: Transaction):
    """Return (input_sum, output_sum) of u64 amounts under app.tag."""
    return (
        _sum_amounts(tx.input_states(app.tag)),
        _sum_amounts(tx.output_states(app.tag)),
    )


def token_check(app: App, tx: Transaction, x: Data, w: Data) -> TokenCheckResult:
    """
    Validate a token transfer spell.

    Args:
        app: Token app (tag e.g. "token:USD")
        tx: Transaction to check
        x: Public auth input (non-empty bytes, or empty)
        w: Witness (unused)

    Returns:
        TokenCheckResult with sums and diagnostics
    """
    errors: List[str] = []

    input_sum, output_sum = token_sums(app, tx)

    conserved = input_sum == output_sum
    if not conserved:
        errors.append(f"Token conservation failed: input {input_sum} ≠ output {output_sum}")

    auth_bytes = x.as_bytes()
    authorized = auth_bytes is not None and len(auth_bytes) > 0
    if not authorized and not x.is_empty():
        errors.append("Missing authorization signature")

    return TokenCheckResult(
        valid=conserved and (authorized or x.is_empty()),
        input_sum=input_sum,
        output_sum=output_sum,
        conserved=conserved,
        authorized=authorized,
        errors=errors
    )


def is_token_mint(app: App, tx: Transaction) -> bool:
    """No input carries the tag but at least one output does."""
    has_inputs = any(True for _ in tx.input_states(app.tag))
    has_outputs = any(True for _ in tx.output_states(app.tag))
    return not has_inputs and has_outputs


def is_token_burn(app: App, tx: Transaction) -> bool:
    """Input amount strictly exceeds output amount."""
    input_sum, output_sum = token_sums(app, tx)
    return input_sum > output_sum

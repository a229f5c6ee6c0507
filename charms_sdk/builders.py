"""
Charms SDK - Transaction Builders

Synthesize minimal App/Transaction pairs for tests and for
"simulate a transition" flows.
"""

import logging
from typing import Iterable, Optional, Tuple

from .charm_types import App, CharmState, Transaction, TxInput, TxOutput, UtxoRef, VK_HASH_LENGTH
from .data import Data
from .escrow_checker import EscrowState
from .ids import IdGenerator, RandomIdGenerator

log = logging.getLogger(__name__)

DUST_VALUE = 546                    # Satoshis per token output
P2WPKH_PREFIX = b"\x00\x14"
ZERO_TXID = bytes(32)


def _parse_vk_hash(vk_hash: str) -> bytes:
    try:
        raw = bytes.fromhex(vk_hash)
    except (TypeError, ValueError):
        raw = b""
    if len(raw) != VK_HASH_LENGTH:
        log.debug(f"vk_hash {vk_hash!r} is not 32 bytes of hex, using zero hash")
        return bytes(VK_HASH_LENGTH)
    return raw


def build_token_transaction(app_tag: str, vk_hash: str,
                            input_amounts: Iterable[int],
                            output_amounts: Iterable[int],
                            ids: Optional[IdGenerator] = None) -> Tuple[App, Transaction]:
    """
    Build a token transfer with one UTXO per amount.

    Args:
        app_tag: Token tag (e.g., "token:USD")
        vk_hash: Verification key hash as hex (zero hash if invalid)
        input_amounts: Token amount per input
        output_amounts: Token amount per output
        ids: Id generator for the txid (random by default)

    Returns:
        (app, tx)
    """
    ids = ids or RandomIdGenerator()
    app = App(tag=app_tag, vk_hash=_parse_vk_hash(vk_hash))

    tx = Transaction(txid=ids.new_id(32))
    for i, amount in enumerate(input_amounts):
        tx.add_input(TxInput(
            utxo_ref=UtxoRef(ZERO_TXID, i),
            charm_state=CharmState().with_app(app_tag, Data.u64(amount))
        ))
    for i, amount in enumerate(output_amounts):
        tx.add_output(TxOutput(
            index=i,
            value=DUST_VALUE,
            script_pubkey=P2WPKH_PREFIX,
            charm_state=CharmState().with_app(app_tag, Data.u64(amount))
        ))

    return app, tx


def build_escrow_transaction(app_tag: str, next_state: EscrowState, amount: int,
                             current_state: Optional[EscrowState] = None,
                             ids: Optional[IdGenerator] = None) -> Tuple[App, Transaction]:
    """
    Build a single-input, single-output escrow transition.

    Args:
        app_tag: Escrow or bounty tag
        next_state: State carried by the output
        amount: Output value in satoshis
        current_state: State carried by the input (None: input has no
            charm state, i.e. the escrow is being created)
        ids: Id generator for vk_hash and txid (random by default)

    Returns:
        (app, tx)
    """
    ids = ids or RandomIdGenerator()
    app = App(tag=app_tag, vk_hash=ids.new_id(VK_HASH_LENGTH))

    tx = Transaction(txid=ids.new_id(32))
    input_state = None
    if current_state is not None:
        input_state = CharmState().with_app(app_tag, current_state.to_data())
    tx.add_input(TxInput(utxo_ref=UtxoRef(ZERO_TXID, 0), charm_state=input_state))
    tx.add_output(TxOutput(
        index=0,
        value=amount,
        script_pubkey=P2WPKH_PREFIX,
        charm_state=CharmState().with_app(app_tag, next_state.to_data())
    ))

    return app, tx

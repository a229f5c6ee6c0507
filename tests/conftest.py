import pytest

from charms_sdk import (
    App,
    CharmState,
    Data,
    MemoryKeyStore,
    SequentialIdGenerator,
    Transaction,
    TxInput,
    TxOutput,
    UtxoRef,
)


@pytest.fixture
def key():
    return bytes([1]) * 32


@pytest.fixture
def nonce():
    return bytes([2]) * 16


@pytest.fixture
def ids():
    return SequentialIdGenerator(b"tests")


@pytest.fixture
def keystore():
    return MemoryKeyStore()


@pytest.fixture
def make_tx():
    """
    Build a transaction from per-UTXO state.

    Each entry is a Data (carried under `tag`), None (no charm state) or a
    dict {tag: Data} for UTXOs carrying several apps.
    """
    def _make(tag, inputs=(), outputs=(), txid=bytes(32)):
        def state(entry):
            if entry is None:
                return None
            if isinstance(entry, dict):
                return CharmState(entry)
            return CharmState().with_app(tag, entry)

        tx = Transaction(txid=txid)
        for i, entry in enumerate(inputs):
            tx.add_input(TxInput(UtxoRef(bytes(32), i), state(entry)))
        for i, entry in enumerate(outputs):
            tx.add_output(TxOutput(i, 546, b"\x00\x14", state(entry)))
        return tx

    return _make


@pytest.fixture
def token_app():
    return App(tag="token:USD")

import pytest

from charms_sdk.data import Data
from charms_sdk.token_checker import is_token_burn, is_token_mint, token_check

SIG = Data.bytes_(b"\xde\xad\xbe\xef")


def amounts(*values):
    return [Data.u64(v) for v in values]


def test_balanced_signed_transfer(make_tx, token_app):
    tx = make_tx(token_app.tag, inputs=amounts(1000), outputs=amounts(600, 400))
    result = token_check(token_app, tx, SIG, Data.empty())

    assert result.valid
    assert result.conserved
    assert result.authorized
    assert result.input_sum == 1000
    assert result.output_sum == 1000
    assert result.errors == []


def test_unbalanced_transfer(make_tx, token_app):
    tx = make_tx(token_app.tag, inputs=amounts(1000), outputs=amounts(600, 500))
    result = token_check(token_app, tx, SIG, Data.empty())

    assert not result.valid
    assert not result.conserved
    assert result.errors == ["Token conservation failed: input 1000 ≠ output 1100"]


def test_empty_auth_is_vacuously_authorized(make_tx, token_app):
    tx = make_tx(token_app.tag, inputs=amounts(5), outputs=amounts(5))
    result = token_check(token_app, tx, Data.empty(), Data.empty())

    assert result.valid
    assert not result.authorized
    assert result.errors == []


@pytest.mark.parametrize("x", [Data.bytes_(b""), Data.u64(1), Data.string("sig")])
def test_non_bytes_or_empty_bytes_auth_is_rejected(make_tx, token_app, x):
    tx = make_tx(token_app.tag, inputs=amounts(5), outputs=amounts(5))
    result = token_check(token_app, tx, x, Data.empty())

    assert not result.valid
    assert result.conserved
    assert result.errors == ["Missing authorization signature"]


def test_both_failures_reported(make_tx, token_app):
    tx = make_tx(token_app.tag, inputs=amounts(1), outputs=amounts(2))
    result = token_check(token_app, tx, Data.u64(0), Data.empty())
    assert len(result.errors) == 2


def test_other_apps_and_agnostic_utxos_ignored(make_tx, token_app):
    tx = make_tx(
        token_app.tag,
        inputs=[Data.u64(10), None, {"token:EUR": Data.u64(99)}],
        outputs=[Data.u64(10), {"token:EUR": Data.u64(1)}],
    )
    assert token_check(token_app, tx, SIG, Data.empty()).valid


def test_non_u64_state_counts_as_zero(make_tx, token_app):
    tx = make_tx(token_app.tag, inputs=[Data.u64(10), Data.string("x")], outputs=amounts(10))
    result = token_check(token_app, tx, SIG, Data.empty())
    assert result.valid
    assert result.input_sum == 10


def test_sums_exceed_u64(make_tx, token_app):
    big = (1 << 64) - 1
    tx = make_tx(token_app.tag, inputs=amounts(big, big), outputs=amounts(big, big))
    result = token_check(token_app, tx, SIG, Data.empty())
    assert result.valid
    assert result.input_sum == 2 * big


def test_mint_without_inputs_fails_conservation(make_tx, token_app):
    tx = make_tx(token_app.tag, inputs=[None], outputs=amounts(1000))

    assert is_token_mint(token_app, tx)
    assert not is_token_burn(token_app, tx)

    result = token_check(token_app, tx, Data.empty(), Data.empty())
    assert not result.valid
    assert not result.conserved
    assert result.input_sum == 0
    assert result.output_sum == 1000
    assert result.errors == ["Token conservation failed: input 0 ≠ output 1000"]


def test_burn(make_tx, token_app):
    tx = make_tx(token_app.tag, inputs=amounts(100), outputs=amounts(40))
    assert is_token_burn(token_app, tx)
    assert not is_token_mint(token_app, tx)


def test_empty_transaction_is_neither(make_tx, token_app):
    tx = make_tx(token_app.tag)
    assert not is_token_mint(token_app, tx)
    assert not is_token_burn(token_app, tx)
    assert token_check(token_app, tx, Data.empty(), Data.empty()).valid


def test_result_to_dict(make_tx, token_app):
    tx = make_tx(token_app.tag, inputs=amounts(1), outputs=amounts(1))
    assert token_check(token_app, tx, SIG, Data.empty()).to_dict() == {
        "valid": True,
        "input_sum": 1,
        "output_sum": 1,
        "conserved": True,
        "authorized": True,
        "errors": [],
    }

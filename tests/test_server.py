import pytest

from charms_sdk import __version__
from charms_sdk.builders import build_token_transaction
from charms_sdk.charm import charm_hash
from charms_sdk.charm_types import NormalizedSpell, SpellInput, SpellOutput, UtxoRef
from charms_sdk.data import Data
from charms_sdk.keystore import JSONFileKeyStore, MemoryKeyStore
from charms_sdk.server import ServerConfig, create_app


@pytest.fixture
def server_keystore():
    return MemoryKeyStore()


@pytest.fixture
def client(server_keystore):
    app = create_app(ServerConfig(), server_keystore)
    app.config["TESTING"] = True
    return app.test_client()


# ─── config ──────────────────────────────────────────────────────────────────

def test_config_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("CHARMS_HOST", "127.0.0.1")
    monkeypatch.setenv("CHARMS_PORT", "9000")
    monkeypatch.setenv("CHARMS_KEYSTORE", str(tmp_path / "keys.json"))
    monkeypatch.setenv("CHARMS_LOG_LEVEL", "debug")

    config = ServerConfig.from_env()
    assert config.host == "127.0.0.1"
    assert config.port == 9000
    assert config.log_level == "DEBUG"
    assert isinstance(config.make_keystore(), JSONFileKeyStore)


def test_config_defaults(monkeypatch):
    for name in ("CHARMS_HOST", "CHARMS_PORT", "CHARMS_KEYSTORE", "CHARMS_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)

    config = ServerConfig.from_env()
    assert (config.host, config.port, config.keystore_path) == ("0.0.0.0", 8090, None)
    assert isinstance(config.make_keystore(), MemoryKeyStore)


# ─── health / hash ───────────────────────────────────────────────────────────

def test_health(client):
    resp = client.get("/health")
    data = resp.get_json()

    assert resp.status_code == 200
    assert data["ok"] is True
    assert data["version"] == __version__
    assert data["supported_types"] == ["token", "nft", "escrow", "bounty", "bollar"]


def test_hash(client):
    resp = client.post("/api/hash", json={"message": "abc"})
    assert resp.get_json() == {"hash": charm_hash(b"abc").hex()}


def test_hash_requires_string(client):
    assert client.post("/api/hash", json={"message": 5}).status_code == 400


def test_non_json_body(client):
    resp = client.post("/api/hash", data="nope", content_type="text/plain")
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "No JSON object provided"


def test_unknown_route_is_404_json(client):
    resp = client.get("/api/nope")
    assert resp.status_code == 404
    assert "error" in resp.get_json()


# ─── /api/check ──────────────────────────────────────────────────────────────

def test_check_token_spell(client, ids):
    app, tx = build_token_transaction("token:USD", "", [1000], [600, 400], ids=ids)
    resp = client.post("/api/check", json={
        "app": app.to_dict(),
        "tx": tx.to_dict(),
        "x": Data.bytes_(b"\x01").to_dict(),
    })
    data = resp.get_json()

    assert resp.status_code == 200
    assert data["type"] == "token"
    assert data["valid"] is True
    assert data["details"]["input_sum"] == 1000


def test_check_missing_fields(client):
    resp = client.post("/api/check", json={"app": {"tag": "t"}})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Missing app or tx in request"


def test_check_malformed_tx(client, ids):
    app, _ = build_token_transaction("token:USD", "", [1], [1], ids=ids)
    resp = client.post("/api/check", json={"app": app.to_dict(), "tx": {"txid": "00"}})
    assert resp.status_code == 400


# ─── builders ────────────────────────────────────────────────────────────────

def test_build_token(client):
    resp = client.post("/api/build/token", json={
        "app_tag": "token:USD",
        "input_amounts": [1000],
        "output_amounts": [600, 400],
    })
    data = resp.get_json()

    assert resp.status_code == 200
    assert data["app"]["tag"] == "token:USD"
    assert len(data["tx"]["outputs"]) == 2
    assert data["check_result"]["valid"] is True
    assert data["check_result"]["details"]["authorized"] is True


@pytest.mark.parametrize("body", [
    {"input_amounts": [1], "output_amounts": [1]},
    {"app_tag": "token:USD", "input_amounts": [-1]},
    {"app_tag": "token:USD", "input_amounts": "1000"},
    {"app_tag": "token:USD", "input_amounts": [True]},
])
def test_build_token_rejects_bad_input(client, body):
    assert client.post("/api/build/token", json=body).status_code == 400


def test_build_escrow(client):
    resp = client.post("/api/build/escrow", json={
        "app_tag": "escrow:1",
        "current_state": 1,
        "next_state": 102,
        "amount": 5000,
    })
    data = resp.get_json()

    assert resp.status_code == 200
    assert data["tx"]["outputs"][0]["value"] == 5000
    assert data["check_result"]["valid"] is True
    assert data["check_result"]["details"]["next_state_name"] == "MilestoneCompleted(2)"


@pytest.mark.parametrize("body", [
    {"app_tag": "escrow:1"},
    {"app_tag": "escrow:1", "next_state": 7},
    {"app_tag": "escrow:1", "next_state": 1, "current_state": "0"},
    {"app_tag": "escrow:1", "next_state": 1, "amount": -5},
])
def test_build_escrow_rejects_bad_input(client, body):
    assert client.post("/api/build/escrow", json=body).status_code == 400


# ─── validators ──────────────────────────────────────────────────────────────

def test_validate_escrow(client):
    resp = client.post("/api/validate/escrow", json={
        "escrow_id": "abc", "current_state": 0, "next_state": 1,
    })
    data = resp.get_json()
    assert data["valid"] is True
    assert data["escrow_id"] == "abc"

    resp = client.post("/api/validate/escrow", json={
        "escrow_id": "abc", "current_state": 2, "next_state": 1,
    })
    data = resp.get_json()
    assert data["valid"] is False
    assert data["details"]["errors"] == ["Invalid state transition: Released → Funded"]


def test_validate_escrow_requires_id(client):
    assert client.post("/api/validate/escrow", json={"next_state": 0}).status_code == 400


def test_validate_token(client):
    resp = client.post("/api/validate/token", json={
        "token_tag": "token:USD",
        "input_amounts": [10],
        "output_amounts": [10],
        "signature": True,
    })
    data = resp.get_json()
    assert data["valid"] is True
    assert data["details"]["authorized"] is True
    assert data["token_tag"] == "token:USD"


def test_validate_token_unbalanced(client):
    resp = client.post("/api/validate/token", json={
        "token_tag": "token:USD", "input_amounts": [10], "output_amounts": [11],
    })
    data = resp.get_json()
    assert data["valid"] is False
    assert data["details"]["authorized"] is False


def test_verify_spell(client):
    ref = UtxoRef(bytes(32), 0)
    spell = NormalizedSpell(1, [SpellInput(ref)], [SpellOutput(0)])
    resp = client.post("/api/verify-spell", json={"spell": spell.to_dict()})
    assert resp.get_json()["valid"] is True

    assert client.post("/api/verify-spell", json={}).status_code == 400


# ─── sealed records ──────────────────────────────────────────────────────────

def test_seal_open_and_proof(client, server_keystore):
    payload = {"title": "Fix bug", "reward": 100}
    resp = client.post("/api/records/seal", json={"record_id": "b1", "payload": payload})
    record = resp.get_json()["record"]

    assert resp.status_code == 200
    assert "b1" in server_keystore

    resp = client.post("/api/records/open", json={"record": record})
    assert resp.get_json() == {"success": True, "payload": payload}

    resp = client.get("/api/records/b1/proof")
    assert resp.get_json()["proof"] == charm_hash(b"b1:verified").hex()


def test_open_tampered_record(client):
    record = client.post("/api/records/seal", json={
        "record_id": "b1", "payload": {"a": 1}
    }).get_json()["record"]
    record["tag"] = "00" * 16

    resp = client.post("/api/records/open", json={"record": record})
    assert resp.status_code == 403


def test_open_unknown_record(client):
    record = {"record_id": "nope", "ciphertext": "00", "tag": "00" * 16, "nonce": "00" * 16}
    assert client.post("/api/records/open", json={"record": record}).status_code == 404


def test_open_malformed_record(client):
    resp = client.post("/api/records/open", json={"record": {"record_id": "x"}})
    assert resp.status_code == 400


def test_proof_of_unknown_record(client):
    assert client.get("/api/records/nope/proof").status_code == 404


def test_seal_requires_payload(client):
    resp = client.post("/api/records/seal", json={"record_id": "b1", "payload": [1]})
    assert resp.status_code == 400


# ─── malformed but well-formed JSON ──────────────────────────────────────────

def test_check_rejects_non_string_tag(client, ids):
    app, tx = build_token_transaction("token:USD", "", [1], [1], ids=ids)
    wire_app = app.to_dict()
    wire_app["tag"] = 5

    resp = client.post("/api/check", json={"app": wire_app, "tx": tx.to_dict()})
    assert resp.status_code == 400
    assert "tag" in resp.get_json()["error"]


def test_check_rejects_negative_output_value(client, ids):
    app, tx = build_token_transaction("token:USD", "", [1], [1], ids=ids)
    wire_tx = tx.to_dict()
    wire_tx["outputs"][0]["value"] = -7

    resp = client.post("/api/check", json={"app": app.to_dict(), "tx": wire_tx})
    assert resp.status_code == 400


@pytest.mark.parametrize("field,value", [("nonce", "0102"), ("tag", "00" * 15), ("nonce", 7)])
def test_open_record_with_bad_lengths(client, field, value):
    record = client.post("/api/records/seal", json={
        "record_id": "b1", "payload": {"a": 1}
    }).get_json()["record"]
    record[field] = value

    resp = client.post("/api/records/open", json={"record": record})
    assert resp.status_code == 400
    assert resp.get_json()["error"].startswith("Malformed record")


@pytest.mark.parametrize("route,body", [
    ("/api/build/escrow", {"app_tag": "escrow:1", "next_state": 2 ** 64}),
    ("/api/build/escrow", {"app_tag": "escrow:1", "next_state": 1, "current_state": 2 ** 64}),
    ("/api/validate/escrow", {"escrow_id": "e", "next_state": 2 ** 64 + 100}),
])
def test_escrow_codes_beyond_u64(client, route, body):
    assert client.post(route, json=body).status_code == 400

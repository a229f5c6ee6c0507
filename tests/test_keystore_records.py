import json
import logging

import pytest

from charms_sdk.charm import AuthenticationFailure, InvalidKeyLength, charm_hash
from charms_sdk.data import WireFormatError
from charms_sdk.keystore import JSONFileKeyStore, MemoryKeyStore
from charms_sdk.records import EncryptedRecord, open_record, record_proof, seal_record

TERMS = {"title": "Fix bug", "reward": 50000, "milestones": ["design", "ship"]}


# ─── keystores ───────────────────────────────────────────────────────────────

def test_memory_keystore(key):
    store = MemoryKeyStore()
    assert store.get("a") is None
    assert "a" not in store

    store.put("a", key)
    assert store.get("a") == key
    assert "a" in store


def test_keystore_rejects_bad_key():
    with pytest.raises(InvalidKeyLength):
        MemoryKeyStore().put("a", b"short")


def test_json_keystore_persists(tmp_path, key):
    path = str(tmp_path / "keys.json")
    JSONFileKeyStore(path).put("bounty-1", key)

    with open(path) as f:
        data = json.load(f)
    assert data["version"] == "1.0"
    assert data["keys"] == {"bounty-1": key.hex()}

    assert JSONFileKeyStore(path).get("bounty-1") == key


def test_json_keystore_missing_file_is_empty(tmp_path):
    store = JSONFileKeyStore(str(tmp_path / "absent.json"))
    assert store.get("x") is None
    assert not (tmp_path / "absent.json").exists()


def test_json_keystore_corrupt_file_logs_warning(tmp_path, caplog):
    path = tmp_path / "keys.json"
    path.write_text("{not json")

    with caplog.at_level(logging.WARNING, logger="charms_sdk.keystore"):
        store = JSONFileKeyStore(str(path))

    assert store.get("x") is None
    assert "Failed to load keys" in caplog.text


# ─── sealed records ──────────────────────────────────────────────────────────

def test_seal_and_open(keystore, key, nonce):
    record = seal_record("bounty-1", TERMS, keystore, key=key, nonce=nonce)

    assert keystore.get("bounty-1") == key
    assert record.nonce == nonce
    assert len(record.tag) == 16
    assert record.ciphertext != json.dumps(TERMS).encode()
    assert open_record(record, keystore) == TERMS


def test_proof_hash_is_hash_of_canonical_plaintext(keystore):
    record = seal_record("r", {"b": 1, "a": 2}, keystore)
    assert record.proof_hash == charm_hash(b'{"a":2,"b":1}').hex()


def test_seal_generates_key_and_nonce(keystore):
    record = seal_record("r", TERMS, keystore)
    assert len(keystore.get("r")) == 32
    assert len(record.nonce) == 16
    assert open_record(record, keystore) == TERMS


def test_open_without_key(keystore):
    record = seal_record("r", TERMS, keystore)
    with pytest.raises(KeyError):
        open_record(record, MemoryKeyStore())


def test_open_tampered_record(keystore):
    record = seal_record("r", TERMS, keystore)
    tampered = bytearray(record.ciphertext)
    tampered[0] ^= 0x80
    record.ciphertext = bytes(tampered)

    with pytest.raises(AuthenticationFailure):
        open_record(record, keystore)


def test_record_wire_round_trip(keystore):
    record = seal_record("r", TERMS, keystore)
    restored = EncryptedRecord.from_dict(json.loads(json.dumps(record.to_dict())))
    assert restored == record
    assert open_record(restored, keystore) == TERMS


def test_record_proof(keystore):
    assert record_proof("r", keystore) is None
    seal_record("r", TERMS, keystore)
    assert record_proof("r", keystore) == charm_hash(b"r:verified").hex()


@pytest.mark.parametrize("field,value", [
    ("nonce", "0102"),
    ("nonce", "00" * 17),
    ("tag", "00" * 15),
    ("ciphertext", "zz"),
])
def test_record_from_dict_rejects_bad_fields(keystore, field, value):
    wire = seal_record("r", TERMS, keystore).to_dict()
    wire[field] = value
    with pytest.raises(WireFormatError):
        EncryptedRecord.from_dict(wire)


def test_reseal_replaces_key_and_warns(keystore, caplog):
    first = seal_record("r", {"v": 1}, keystore)

    with caplog.at_level(logging.WARNING, logger="charms_sdk.records"):
        second = seal_record("r", {"v": 2}, keystore)

    assert "Replacing key for record r" in caplog.text
    assert open_record(second, keystore) == {"v": 2}
    with pytest.raises(AuthenticationFailure):
        open_record(first, keystore)

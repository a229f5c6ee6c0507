import json
from unittest.mock import patch

from charms_sdk.builders import build_token_transaction
from charms_sdk.charm import charm_hash
from charms_sdk.cli import build_parser, main


def write_spell(tmp_path, app, tx, **extra):
    path = tmp_path / "spell.json"
    body = {"app": app.to_dict(), "tx": tx.to_dict()}
    body.update(extra)
    path.write_text(json.dumps(body))
    return str(path)


def test_no_command_prints_help(capsys):
    assert main([]) == 2
    assert "usage" in capsys.readouterr().out


def test_hash(capsys):
    assert main(["hash", "abc"]) == 0
    assert capsys.readouterr().out.strip() == charm_hash(b"abc").hex()


def test_demo(capsys):
    assert main(["demo"]) == 0
    demo = json.loads(capsys.readouterr().out)
    assert demo["decrypted_message"] == "Hello from Charm!"


def test_check_valid_file(tmp_path, capsys, ids):
    app, tx = build_token_transaction("token:USD", "", [1000], [600, 400], ids=ids)
    path = write_spell(tmp_path, app, tx, x={"type": "bytes", "value": "01"})

    assert main(["check", path]) == 0
    result = json.loads(capsys.readouterr().out)
    assert result["valid"] is True
    assert result["type"] == "token"


def test_check_invalid_spell_exits_1(tmp_path, capsys, ids):
    app, tx = build_token_transaction("token:USD", "", [1000], [600, 500], ids=ids)
    path = write_spell(tmp_path, app, tx)

    assert main(["check", path]) == 1
    assert json.loads(capsys.readouterr().out)["valid"] is False


def test_check_missing_file(tmp_path, capsys):
    assert main(["check", str(tmp_path / "absent.json")]) == 2
    assert "Error" in capsys.readouterr().err


def test_check_malformed_file(tmp_path, capsys):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"app": {"tag": "t"}}))
    assert main(["check", str(path)]) == 2


def test_check_remote(tmp_path, capsys, ids):
    app, tx = build_token_transaction("token:USD", "", [1], [1], ids=ids)
    path = write_spell(tmp_path, app, tx)

    with patch("charms_sdk.cli.SpellClient") as client_cls:
        client_cls.return_value.check_spell.return_value = {"valid": True, "type": "token"}
        assert main(["check", path, "--remote", "http://spells.local"]) == 0

    client_cls.assert_called_once_with("http://spells.local")
    assert json.loads(capsys.readouterr().out)["valid"] is True


def test_escrow_valid(capsys):
    assert main(["escrow", "--current", "1", "--next", "3"]) == 0
    assert capsys.readouterr().out.strip() == "Funded -> Disputed: VALID"


def test_escrow_creation(capsys):
    assert main(["escrow", "--next", "0"]) == 0
    assert "None -> Created: VALID" in capsys.readouterr().out


def test_escrow_invalid(capsys):
    assert main(["escrow", "--current", "0", "--next", "2"]) == 1
    out = capsys.readouterr().out
    assert "Created -> Released: INVALID" in out
    assert "Invalid state transition" in out


def test_escrow_unknown_code(capsys):
    assert main(["escrow", "--next", "50"]) == 2


def test_serve_flags():
    args = build_parser().parse_args(["serve", "--port", "9999", "--keystore", "k.json"])
    assert args.port == 9999
    assert args.keystore == "k.json"

    with patch("charms_sdk.server.serve") as serve:
        assert main(["serve", "--port", "9999", "--keystore", "k.json"]) == 0
    config = serve.call_args[0][0]
    assert config.port == 9999
    assert config.keystore_path == "k.json"


def test_check_non_string_tag_exits_2(tmp_path, capsys, ids):
    app, tx = build_token_transaction("token:USD", "", [1], [1], ids=ids)
    wire_app = app.to_dict()
    wire_app["tag"] = 5
    path = tmp_path / "spell.json"
    path.write_text(json.dumps({"app": wire_app, "tx": tx.to_dict()}))

    assert main(["check", str(path)]) == 2
    assert "tag" in capsys.readouterr().err


def test_escrow_code_beyond_u64(capsys):
    assert main(["escrow", "--next", str(1 << 64)]) == 2
    assert main(["escrow", "--current", str(1 << 64), "--next", "1"]) == 2

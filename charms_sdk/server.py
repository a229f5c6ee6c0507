#!/usr/bin/env python3
# Copyright (c) 2025 The Charms SDK developers
# Distributed under the MIT software license

"""
Charms Spell Checker Service - REST API for the spell checkers

Endpoints:
  GET  /health                    - Service status and supported spell types
  POST /api/check                 - Check a spell {app, tx, x?, w?}
  POST /api/build/token           - Build + check a token transfer
  POST /api/build/escrow          - Build + check an escrow transition
  POST /api/verify-spell          - Structural check of a normalized spell
  POST /api/validate/escrow       - Validate an escrow transition by state codes
  POST /api/validate/token        - Validate token conservation by amounts
  POST /api/hash                  - Charm hash of a message
  POST /api/records/seal          - Encrypt a JSON record (key kept in keystore)
  POST /api/records/open          - Decrypt a sealed record
  GET  /api/records/<id>/proof    - Verification fingerprint of a sealed record

Run:
  charms serve --port 8090
"""

import logging
import os
import time
from dataclasses import dataclass, field
from typing import List, Optional

from flask import Flask, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from . import __version__
from .builders import build_escrow_transaction, build_token_transaction
from .charm import AuthenticationFailure, charm_hash
from .charm_types import App, NormalizedSpell, Transaction
from .data import U64_MAX, Data, WireFormatError
from .escrow_checker import EscrowState
from .keystore import JSONFileKeyStore, KeyStore, MemoryKeyStore
from .records import EncryptedRecord, open_record, record_proof, seal_record
from .spell_checker import SUPPORTED_TYPES, check_spell, verify_spell

log = logging.getLogger(__name__)

# =============================================================================
# CONFIGURATION
# =============================================================================

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8090

# Auth input used when building token spells server-side
MOCK_SIGNATURE = bytes.fromhex("deadbeef")


@dataclass
class ServerConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT

    # None = in-memory keystore (keys lost on restart)
    keystore_path: Optional[str] = None

    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """Defaults overridden by CHARMS_* environment variables."""
        return cls(
            host=os.environ.get("CHARMS_HOST", DEFAULT_HOST),
            port=int(os.environ.get("CHARMS_PORT", DEFAULT_PORT)),
            keystore_path=os.environ.get("CHARMS_KEYSTORE") or None,
            log_level=os.environ.get("CHARMS_LOG_LEVEL", "INFO").upper()
        )

    def make_keystore(self) -> KeyStore:
        if self.keystore_path:
            return JSONFileKeyStore(self.keystore_path)
        return MemoryKeyStore()


class RequestError(ValueError):
    """Request body is missing fields or malformed."""


def _body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise RequestError("No JSON object provided")
    return data


def _data_field(body: dict, key: str) -> Data:
    value = body.get(key)
    return Data.from_dict(value) if value else Data.empty()


def _escrow_state(code, what: str) -> Optional[EscrowState]:
    if code is None:
        return None
    if isinstance(code, bool) or not isinstance(code, int) or code < 0:
        raise RequestError(f"{what} must be a non-negative integer state code")
    state = EscrowState.from_code(code)
    if state is None:
        raise RequestError(f"Unknown escrow state code for {what}: {code}")
    return state


def _is_amount(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= U64_MAX


def _amount(body: dict) -> int:
    amount = body.get("amount")
    if amount is None:
        return 0
    if not _is_amount(amount):
        raise RequestError("amount must be a non-negative integer")
    return amount


def _amounts(body: dict, key: str) -> List[int]:
    amounts = body.get(key) or []
    if not isinstance(amounts, list) or not all(_is_amount(a) for a in amounts):
        raise RequestError(f"{key} must be a list of non-negative integers")
    return amounts


# =============================================================================
# FLASK APP
# =============================================================================

def create_app(config: Optional[ServerConfig] = None,
               keystore: Optional[KeyStore] = None) -> Flask:
    """
    Build the Flask app.

    Args:
        config: Server configuration (defaults if omitted)
        keystore: Keystore for sealed records (from config if omitted)
    """
    config = config or ServerConfig()
    keystore = keystore or config.make_keystore()

    app = Flask(__name__)
    CORS(app, origins=config.cors_origins)
    app.config["CHARMS"] = config

    @app.errorhandler(RequestError)
    @app.errorhandler(WireFormatError)
    def handle_bad_request(e):
        return jsonify({"error": str(e)}), 400

    @app.errorhandler(Exception)
    def handle_error(e):
        if isinstance(e, HTTPException):
            return jsonify({"error": e.description}), e.code
        log.exception(f"Unhandled error on {request.path}: {e}")
        return jsonify({"error": str(e)}), 500

    # =========================================================================
    # HEALTH
    # =========================================================================

    @app.route("/health")
    def health():
        """Service status"""
        return jsonify({
            "ok": True,
            "status": "ok",
            "version": __version__,
            "supported_types": SUPPORTED_TYPES,
            "timestamp": int(time.time())
        })

    # =========================================================================
    # SPELL CHECKING
    # =========================================================================

    @app.route("/api/check", methods=["POST"])
    def api_check():
        """
        Check a spell.

        Request:
        {
            "app": {"tag": "token:USD", "vk_hash": "00..", "params": {...}},
            "tx": {"txid": "..", "inputs": [...], "outputs": [...]},
            "x": {"type": "bytes", "value": "deadbeef"},    # optional
            "w": {"type": "empty"}                          # optional
        }
        """
        body = _body()
        if "app" not in body or "tx" not in body:
            raise RequestError("Missing app or tx in request")

        spell_app = App.from_dict(body["app"])
        tx = Transaction.from_dict(body["tx"])
        result = check_spell(spell_app, tx, _data_field(body, "x"), _data_field(body, "w"))

        log.info(f"Spell checked: {spell_app.tag} type={result.type.value} valid={result.valid}")
        return jsonify(result.to_dict())

    @app.route("/api/build/token", methods=["POST"])
    def api_build_token():
        """Build a token transfer from amounts and check it with a mock signature"""
        body = _body()
        app_tag = body.get("app_tag")
        if not app_tag:
            raise RequestError("Missing app_tag for build_token")

        spell_app, tx = build_token_transaction(
            app_tag=app_tag,
            vk_hash=body.get("vk_hash", ""),
            input_amounts=_amounts(body, "input_amounts"),
            output_amounts=_amounts(body, "output_amounts")
        )
        result = check_spell(spell_app, tx, Data.bytes_(MOCK_SIGNATURE))

        return jsonify({
            "app": spell_app.to_dict(),
            "tx": tx.to_dict(),
            "check_result": result.to_dict()
        })

    @app.route("/api/build/escrow", methods=["POST"])
    def api_build_escrow():
        """Build an escrow transition from state codes and check it"""
        body = _body()
        app_tag = body.get("app_tag")
        if not app_tag:
            raise RequestError("Missing app_tag for build_escrow")
        next_state = _escrow_state(body.get("next_state"), "next_state")
        if next_state is None:
            raise RequestError("Missing next_state for build_escrow")

        spell_app, tx = build_escrow_transaction(
            app_tag=app_tag,
            next_state=next_state,
            amount=_amount(body),
            current_state=_escrow_state(body.get("current_state"), "current_state")
        )
        result = check_spell(spell_app, tx)

        return jsonify({
            "app": spell_app.to_dict(),
            "tx": tx.to_dict(),
            "check_result": result.to_dict()
        })

    @app.route("/api/verify-spell", methods=["POST"])
    def api_verify_spell():
        """Structural check of a normalized spell"""
        body = _body()
        if not body.get("spell"):
            raise RequestError("Missing spell in request")
        return jsonify(verify_spell(NormalizedSpell.from_dict(body["spell"])))

    @app.route("/api/validate/escrow", methods=["POST"])
    def api_validate_escrow():
        """Validate an escrow transition for an escrow id"""
        body = _body()
        escrow_id = body.get("escrow_id")
        if not escrow_id:
            raise RequestError("Missing escrow_id")
        next_state = _escrow_state(body.get("next_state"), "next_state")
        if next_state is None:
            raise RequestError("Missing next_state")

        spell_app, tx = build_escrow_transaction(
            app_tag=f"escrow:{escrow_id}",
            next_state=next_state,
            amount=_amount(body),
            current_state=_escrow_state(body.get("current_state"), "current_state")
        )
        result = check_spell(spell_app, tx)

        return jsonify({
            "valid": result.valid,
            "details": result.details.to_dict(),
            "escrow_id": escrow_id
        })

    @app.route("/api/validate/token", methods=["POST"])
    def api_validate_token():
        """Validate token conservation for a token tag"""
        body = _body()
        token_tag = body.get("token_tag")
        if not token_tag:
            raise RequestError("Missing token_tag")

        spell_app, tx = build_token_transaction(
            app_tag=token_tag,
            vk_hash="",
            input_amounts=_amounts(body, "input_amounts"),
            output_amounts=_amounts(body, "output_amounts")
        )
        x = Data.bytes_(MOCK_SIGNATURE) if body.get("signature") else Data.empty()
        result = check_spell(spell_app, tx, x)

        return jsonify({
            "valid": result.valid,
            "details": result.details.to_dict(),
            "token_tag": token_tag
        })

    @app.route("/api/hash", methods=["POST"])
    def api_hash():
        """Charm hash of a UTF-8 message"""
        body = _body()
        message = body.get("message")
        if not isinstance(message, str):
            raise RequestError("message must be a string")
        return jsonify({"hash": charm_hash(message.encode("utf-8")).hex()})

    # =========================================================================
    # SEALED RECORDS
    # =========================================================================

    @app.route("/api/records/seal", methods=["POST"])
    def api_seal_record():
        """Encrypt a JSON record; the key stays server-side"""
        body = _body()
        record_id = body.get("record_id")
        payload = body.get("payload")
        if not record_id or not isinstance(payload, dict):
            raise RequestError("Missing record_id or payload object")

        record = seal_record(record_id, payload, keystore)
        return jsonify({"success": True, "record": record.to_dict()})

    @app.route("/api/records/open", methods=["POST"])
    def api_open_record():
        """Decrypt a sealed record"""
        body = _body()
        if not isinstance(body.get("record"), dict):
            raise RequestError("Missing record")
        try:
            record = EncryptedRecord.from_dict(body["record"])
        except (KeyError, TypeError, ValueError) as e:
            raise RequestError(f"Malformed record: {e}")

        try:
            payload = open_record(record, keystore)
        except KeyError:
            return jsonify({"error": "Record not found"}), 404
        except AuthenticationFailure:
            return jsonify({"error": "Authentication failed"}), 403
        return jsonify({"success": True, "payload": payload})

    @app.route("/api/records/<record_id>/proof")
    def api_record_proof(record_id):
        """Verification fingerprint of a sealed record"""
        proof = record_proof(record_id, keystore)
        if proof is None:
            return jsonify({"error": "Record not found"}), 404
        return jsonify({"record_id": record_id, "proof": proof})

    return app


# =============================================================================
# MAIN
# =============================================================================

def serve(config: ServerConfig):
    """Run the service with Flask's built-in server."""
    app = create_app(config)
    log.info(f"Starting spell checker service on {config.host}:{config.port}")
    log.info(f"Keystore: {config.keystore_path or 'in-memory'}")
    app.run(host=config.host, port=config.port, debug=False)


if __name__ == "__main__":
    cfg = ServerConfig.from_env()
    logging.basicConfig(
        level=getattr(logging, cfg.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s"
    )
    serve(cfg)

"""
Charms SDK - Spell Client

HTTP client for the spell-checker service (charms_sdk.server).
"""

import requests
from typing import Any, Iterable, List, Optional

from .charm_types import App, NormalizedSpell, Transaction
from .data import Data


class SpellClientError(Exception):
    """Spell service call failed."""
    def __init__(self, status: int, message: str):
        self.status = status
        self.message = message
        super().__init__(f"Spell service error {status}: {message}")


class SpellClient:
    """
    Client for the spell-checker service.

    Usage:
        client = SpellClient("http://localhost:8090")
        health = client.health()
        result = client.check_spell(app, tx, x=Data.bytes_(b"sig"))
        print(result["valid"], result["details"]["errors"])
    """

    def __init__(self, base_url: str = "http://localhost:8090", timeout: int = 30,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, payload: Optional[dict] = None) -> Any:
        """Make HTTP call and decode the JSON reply."""
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, json=payload, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise SpellClientError(-1, f"Connection failed: {e}")

        try:
            result = response.json()
        except ValueError:
            raise SpellClientError(response.status_code, f"Invalid JSON reply: {response.text[:200]}")

        if response.status_code >= 400:
            message = result.get("error") if isinstance(result, dict) else None
            raise SpellClientError(response.status_code, message or response.reason or "HTTP error")

        return result

    def _get(self, path: str) -> Any:
        return self._request("GET", path)

    def _post(self, path: str, payload: dict) -> Any:
        return self._request("POST", path, payload)

    # ═══════════════════════════════════════════════════════════════════════
    # SERVICE METHODS
    # ═══════════════════════════════════════════════════════════════════════

    def health(self) -> dict:
        """Service health and supported spell types."""
        return self._get("/health")

    def check_spell(self, app: App, tx: Transaction,
                    x: Optional[Data] = None, w: Optional[Data] = None) -> dict:
        """
        Check a spell remotely.

        Returns:
            {
                "type": "token" | "nft" | "escrow" | "bounty" | "bollar",
                "valid": ...,
                "details": {...},
                "proof_hash": "...",
                "timestamp": ...
            }
        """
        payload = {"app": app.to_dict(), "tx": tx.to_dict()}
        if x is not None:
            payload["x"] = x.to_dict()
        if w is not None:
            payload["w"] = w.to_dict()
        return self._post("/api/check", payload)

    def build_token(self, app_tag: str, input_amounts: Iterable[int],
                    output_amounts: Iterable[int], vk_hash: str = "") -> dict:
        """Build and check a token transfer server-side."""
        return self._post("/api/build/token", {
            "app_tag": app_tag,
            "vk_hash": vk_hash,
            "input_amounts": list(input_amounts),
            "output_amounts": list(output_amounts)
        })

    def build_escrow(self, app_tag: str, next_state: int, amount: int,
                     current_state: Optional[int] = None) -> dict:
        """Build and check an escrow transition server-side (state codes)."""
        return self._post("/api/build/escrow", {
            "app_tag": app_tag,
            "current_state": current_state,
            "next_state": next_state,
            "amount": amount
        })

    def verify_spell(self, spell: NormalizedSpell) -> dict:
        """Structural spell check."""
        return self._post("/api/verify-spell", {"spell": spell.to_dict()})

    def validate_escrow(self, escrow_id: str, next_state: int,
                        current_state: Optional[int] = None, amount: int = 0) -> dict:
        """Validate an escrow state transition by state codes."""
        return self._post("/api/validate/escrow", {
            "escrow_id": escrow_id,
            "current_state": current_state,
            "next_state": next_state,
            "amount": amount
        })

    def validate_token(self, token_tag: str, input_amounts: List[int],
                       output_amounts: List[int], signature: bool = False) -> dict:
        """Validate token conservation (optionally with a mock signature)."""
        return self._post("/api/validate/token", {
            "token_tag": token_tag,
            "input_amounts": list(input_amounts),
            "output_amounts": list(output_amounts),
            "signature": signature
        })

    def hash(self, message: str) -> str:
        """Hex Charm hash of a UTF-8 message."""
        return self._post("/api/hash", {"message": message})["hash"]

    def test_connection(self) -> bool:
        """Test if the service is reachable."""
        try:
            self.health()
            return True
        except SpellClientError:
            return False

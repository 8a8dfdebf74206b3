"""
Password hashing and signed session tokens.

Passwords are stored as ``pbkdf2_sha256$iterations$salt$digest``.
Session tokens are ``base64url(json) + "." + base64url(hmac_sha256(json))``
where the JSON payload carries the account id and an absolute expiry.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import secrets
import time
from typing import Callable, Optional

from travelbook.errors import Unauthenticated

PBKDF2_ITERATIONS = 310_000
PASSWORD_ALGORITHM = "pbkdf2_sha256"


def hash_password(password: str, *, iterations: Optional[int] = None) -> str:
    iterations = iterations or PBKDF2_ITERATIONS
    salt = secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
    return f"{PASSWORD_ALGORITHM}${iterations}${salt.hex()}${digest.hex()}"


def verify_password(password: str, password_hash: str) -> bool:
    try:
        algorithm, iterations, salt_hex, digest_hex = password_hash.split("$", maxsplit=3)
        salt = bytes.fromhex(salt_hex)
        rounds = int(iterations)
    except ValueError:
        return False
    if algorithm != PASSWORD_ALGORITHM:
        return False
    recomputed = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, rounds)
    return hmac.compare_digest(recomputed.hex(), digest_hex)


def random_password() -> str:
    """Placeholder secret for accounts that only sign in through OAuth."""
    return secrets.token_urlsafe(32)


def _b64url_encode(b: bytes) -> str:
    return base64.urlsafe_b64encode(b).decode("utf-8").rstrip("=")


def _b64url_decode(s: str) -> bytes:
    pad = "=" * ((4 - len(s) % 4) % 4)
    return base64.urlsafe_b64decode((s + pad).encode("utf-8"))


class SessionIssuer:
    """Mints and verifies bearer tokens. The secret is fixed for the process."""

    def __init__(
        self,
        secret: str,
        ttl_hours: int = 72,
        clock: Optional[Callable[[], float]] = None,
    ):
        if not secret:
            raise ValueError("A signing secret is required")
        self._secret = secret.encode("utf-8")
        self.ttl_seconds = ttl_hours * 3600
        self._clock = clock or time.time

    def _sign(self, data: bytes) -> bytes:
        return hmac.new(self._secret, data, hashlib.sha256).digest()

    def issue(self, account_id: str) -> str:
        payload = {"userId": account_id, "exp": int(self._clock()) + self.ttl_seconds}
        data = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8")
        return f"{_b64url_encode(data)}.{_b64url_encode(self._sign(data))}"

    def verify(self, token: str) -> str:
        """Return the account id embedded in ``token`` or raise ``Unauthenticated``."""
        try:
            data_b64, sig_b64 = token.split(".", 1)
            data = _b64url_decode(data_b64)
            sig = _b64url_decode(sig_b64)
        except (ValueError, AttributeError) as exc:
            raise Unauthenticated("Malformed access token") from exc

        if not hmac.compare_digest(sig, self._sign(data)):
            raise Unauthenticated("Invalid access token")

        try:
            payload = json.loads(data.decode("utf-8"))
        except ValueError as exc:
            raise Unauthenticated("Malformed access token") from exc
        if not isinstance(payload, dict):
            raise Unauthenticated("Malformed access token")

        account_id = payload.get("userId")
        expires_at = payload.get("exp")
        if not isinstance(account_id, str) or not isinstance(expires_at, int):
            raise Unauthenticated("Malformed access token")
        if expires_at <= self._clock():
            raise Unauthenticated("Access token has expired")
        return account_id

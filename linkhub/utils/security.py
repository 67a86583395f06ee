# linkhub/utils/security.py
import base64
import hashlib
import secrets
from typing import Any, Dict, Optional, Tuple

import structlog
from cryptography.fernet import Fernet, InvalidToken
from jose import jwt, JWTError

logger = structlog.get_logger(__name__)


# --- OAuth token encryption ---
class TokenCipher:
    """Fernet wrapper for tokens at rest."""

    def __init__(self, key: str):
        self.fernet = Fernet(key.encode())

    def encrypt(self, plaintext: Optional[str]) -> Optional[str]:
        if plaintext is None:
            return None
        return self.fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, ciphertext: Optional[str]) -> Optional[str]:
        if not ciphertext:
            return None
        try:
            return self.fernet.decrypt(ciphertext.encode()).decode()
        except InvalidToken:
            logger.warning("token_decrypt_failed")
            return None


# --- PKCE & state ---
PKCE_VERIFIER_BYTES = 32


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


def generate_pkce_pair() -> Tuple[str, str]:
    """Return (verifier, S256 challenge)."""
    verifier = _b64url(secrets.token_bytes(PKCE_VERIFIER_BYTES))
    return verifier, pkce_challenge(verifier)


def pkce_challenge(verifier: str) -> str:
    return _b64url(hashlib.sha256(verifier.encode()).digest())


def generate_state_token() -> str:
    return secrets.token_urlsafe(32)


def generate_session_reference() -> str:
    return secrets.token_urlsafe(32)


def constant_time_equals(a: Optional[str], b: Optional[str]) -> bool:
    if a is None or b is None:
        return False
    return secrets.compare_digest(a.encode(), b.encode())


# --- JWT issued by the identity service ---
def decode_token(token: str, secret_key: str, algorithm: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, secret_key, algorithms=[algorithm])
    except JWTError as e:
        logger.warning("token_decode_failed", error=str(e))
        raise

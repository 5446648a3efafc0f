"""Bearer tokens, OAuth state tokens and at-rest encryption of third-party tokens."""

import base64
import hashlib
import logging
import os
from datetime import datetime, timedelta
from typing import Optional, Dict, Any

import jwt
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from src.core.config import get_settings

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
STATE_EXPIRATION_MINUTES = 10


# ===========================================
# Bearer Tokens
# ===========================================

def create_access_token(
    user_id: str,
    username: str,
    expires_delta: Optional[timedelta] = None
) -> str:
    """Create a signed bearer token for an API user."""
    settings = get_settings()
    expire = datetime.utcnow() + (expires_delta or timedelta(hours=settings.JWT_EXPIRATION_HOURS))

    payload = {
        "user_id": user_id,
        "username": username,
        "exp": expire,
        "iat": datetime.utcnow(),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Verify a bearer token. Returns None if invalid or expired."""
    try:
        payload = jwt.decode(token, get_settings().JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.info("Bearer token expired")
        return None
    except jwt.InvalidTokenError as e:
        logger.info(f"Invalid bearer token: {e}")
        return None

    if not payload.get("user_id"):
        return None
    return payload


# ===========================================
# OAuth State
# ===========================================

def create_state_token(user_id: str, return_to: Optional[str] = None) -> str:
    """Sign the OAuth state carried through the Canva authorize redirect."""
    payload = {
        "user_id": user_id,
        "return_to": return_to,
        "exp": datetime.utcnow() + timedelta(minutes=STATE_EXPIRATION_MINUTES),
    }
    return jwt.encode(payload, get_settings().JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_state_token(state: str) -> Optional[Dict[str, Any]]:
    """Verify an OAuth state token."""
    try:
        return jwt.decode(state, get_settings().JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.InvalidTokenError as e:
        logger.warning(f"Rejected OAuth state: {e}")
        return None


# ===========================================
# Token Encryption (AES-256-GCM)
# ===========================================

def _encryption_key() -> bytes:
    settings = get_settings()
    raw = settings.CANVA_TOKEN_ENC_KEY or settings.JWT_SECRET
    return hashlib.sha256(raw.encode("utf-8")).digest()


def encrypt_secret(plain_text: Optional[str]) -> Optional[str]:
    """Encrypt a secret as 'v1:<iv>:<tag>:<ciphertext>' (base64 parts)."""
    if plain_text is None:
        return None

    iv = os.urandom(12)
    sealed = AESGCM(_encryption_key()).encrypt(iv, str(plain_text).encode("utf-8"), None)
    # AESGCM appends the 16-byte tag to the ciphertext
    ciphertext, tag = sealed[:-16], sealed[-16:]

    return ":".join([
        "v1",
        base64.b64encode(iv).decode("ascii"),
        base64.b64encode(tag).decode("ascii"),
        base64.b64encode(ciphertext).decode("ascii"),
    ])


def decrypt_secret(cipher_text: Optional[str]) -> Optional[str]:
    """Decrypt a value produced by encrypt_secret. Returns None if unreadable."""
    if not cipher_text:
        return None

    parts = str(cipher_text).split(":")
    if len(parts) != 4 or parts[0] != "v1":
        return None

    try:
        iv = base64.b64decode(parts[1])
        tag = base64.b64decode(parts[2])
        ciphertext = base64.b64decode(parts[3])
        plain = AESGCM(_encryption_key()).decrypt(iv, ciphertext + tag, None)
        return plain.decode("utf-8")
    except Exception as e:
        logger.error(f"Failed to decrypt stored token: {e}")
        return None

"""
Security utilities - Authentication, Encryption, Signing
"""

import base64
import hashlib
import hmac
import time
from datetime import datetime, timedelta
from typing import Optional

from cryptography.fernet import Fernet
from jose import JWTError, jwt

from outreach.config import get_settings

# Encryption for API keys and SMTP passwords
_fernet: Optional[Fernet] = None


def get_fernet() -> Fernet:
    """Get Fernet instance for encryption"""
    global _fernet
    if _fernet is None:
        key = get_settings().ENCRYPTION_KEY.encode()
        # Ensure key is valid Fernet key (32 url-safe base64 encoded bytes)
        if len(key) != 44:
            # If not valid, derive a key from the provided secret
            derived_key = hashlib.sha256(key).digest()
            key = base64.urlsafe_b64encode(derived_key)
        _fernet = Fernet(key)
    return _fernet


# JWT utilities
def create_access_token(
    user_id: str,
    expires_delta: Optional[timedelta] = None
) -> str:
    """Create a JWT access token"""
    settings = get_settings()
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)

    expire = datetime.utcnow() + expires_delta
    to_encode = {
        "sub": str(user_id),
        "type": "access",
        "exp": expire,
        "iat": datetime.utcnow(),
    }
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Decode and validate a JWT token"""
    settings = get_settings()
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM]
        )
    except JWTError:
        return None


def verify_access_token(token: str) -> Optional[str]:
    """Verify an access token and return the user ID"""
    payload = decode_token(token)
    if payload is None:
        return None
    if payload.get("type") != "access":
        return None
    user_id = payload.get("sub")
    if not user_id:
        return None
    return str(user_id)


# Secret encryption
def encrypt_api_key(api_key: str) -> str:
    """Encrypt an API key (or SMTP password) for storage"""
    fernet = get_fernet()
    return fernet.encrypt(api_key.encode()).decode()


def decrypt_api_key(encrypted_key: str) -> str:
    """Decrypt an API key (or SMTP password) from storage"""
    fernet = get_fernet()
    return fernet.decrypt(encrypted_key.encode()).decode()


def mask_api_key(api_key: str) -> str:
    """Mask an API key for display (e.g., sk-...abc123)"""
    if len(api_key) <= 8:
        return "***"
    return f"{api_key[:3]}...{api_key[-6:]}"


# Download URL signing
def sign_storage_key(storage_key: str, expires_at: int) -> str:
    """HMAC signature binding an object key to its expiry (unix seconds)"""
    message = f"{storage_key}|{expires_at}".encode()
    secret = get_settings().SECRET_KEY.encode()
    return hmac.new(secret, message, hashlib.sha256).hexdigest()


def verify_storage_signature(storage_key: str, expires_at: int, signature: str, now: Optional[int] = None) -> bool:
    """Check a download signature and that it has not expired"""
    if now is None:
        now = int(time.time())
    if expires_at < now:
        return False
    expected = sign_storage_key(storage_key, expires_at)
    return hmac.compare_digest(expected, signature)

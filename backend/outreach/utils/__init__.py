"""
Utility modules for the outreach backend
"""

from .database import (
    get_db,
    get_db_context,
    init_db,
    close_db,
)
from .security import (
    create_access_token,
    verify_access_token,
    encrypt_api_key,
    decrypt_api_key,
    mask_api_key,
    sign_storage_key,
    verify_storage_signature,
)
from .cache import (
    CacheService,
    key_cache,
)

__all__ = [
    # Database
    "get_db",
    "get_db_context",
    "init_db",
    "close_db",
    # Security
    "create_access_token",
    "verify_access_token",
    "encrypt_api_key",
    "decrypt_api_key",
    "mask_api_key",
    "sign_storage_key",
    "verify_storage_signature",
    # Cache
    "CacheService",
    "key_cache",
]

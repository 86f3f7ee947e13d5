# Vault Module - Secure Password Manager
#
# Encrypted password storage in SQLite + AES-256-GCM per field
# Master password with Argon2id key derivation

from .crypto import EncryptionService, KdfParams
from .entries import Entry, EntryListItem, generate_password
from .errors import (
    AlreadyInitialized,
    BadMasterPassword,
    CryptoError,
    Locked,
    NotFound,
    NotInitialized,
    StorageError,
    VaultError,
    VaultIoError,
)
from .vault_manager import VaultManager

__all__ = [
    "VaultManager",
    "EncryptionService",
    "KdfParams",
    "Entry",
    "EntryListItem",
    "generate_password",
    "VaultError",
    "NotInitialized",
    "AlreadyInitialized",
    "Locked",
    "BadMasterPassword",
    "CryptoError",
    "NotFound",
    "StorageError",
    "VaultIoError",
]

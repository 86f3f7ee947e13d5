"""
Vault Exception Classes

Every failure in the vault engine surfaces as one of these. The command
layer maps them to user messages and HTTP statuses; Locked,
BadMasterPassword and NotInitialized each call for a different user action.
"""


class VaultError(Exception):
    """Base exception for vault operations"""
    user_message = "Vault operation failed"

    def __init__(self, message=None):
        super().__init__(message or self.user_message)


class NotInitialized(VaultError):
    """Raised when no vault configuration exists yet"""
    user_message = "Vault is not initialized"


class AlreadyInitialized(VaultError):
    """Raised when initializing a vault that already has a configuration"""
    user_message = "Vault is already initialized"


class Locked(VaultError):
    """Raised when an operation needs the key but the vault is locked"""
    user_message = "Vault is locked - unlock it with the master password"


class BadMasterPassword(VaultError):
    """Raised when key-check or backup seal verification fails"""
    user_message = "Wrong master password or foreign backup"


class CryptoError(VaultError):
    """Raised for malformed ciphertext or failed authentication"""
    user_message = "Encrypted data is corrupt or was sealed with another key"


class NotFound(VaultError):
    """Raised when a referenced entry id does not exist"""
    user_message = "Entry not found"


class StorageError(VaultError):
    """Raised when the underlying database fails"""
    user_message = "Vault storage error"


class VaultIoError(VaultError):
    """Raised when reading or writing a backup file fails"""
    user_message = "Backup file could not be read or written"

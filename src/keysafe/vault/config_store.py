# Vault - Configuration Store
#
# The single vault_config row: KDF salt, KDF parameters and the key-check
# ciphertext. Created once by initialize(), read by every unlock().
# The master password and the raw key are never stored; a password is
# verified by decrypting the key-check constant with the candidate key.

import hmac
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .crypto import EncryptionService, KdfParams, zero_buffer
from .errors import (
    AlreadyInitialized,
    BadMasterPassword,
    CryptoError,
    NotInitialized,
)
from .session import KeySession
from .storage import VaultStorage

logger = logging.getLogger(__name__)

KEY_CHECK_PLAINTEXT = b"KEYSAFE_VAULT_OK"


@dataclass(frozen=True)
class VaultConfig:
    kdf_salt: bytes
    kdf_params: KdfParams
    key_check: bytes
    created_at: int


class VaultConfigStore:
    """Creates and verifies the vault configuration record."""

    def __init__(
        self,
        storage: VaultStorage,
        session: KeySession,
        default_params: Optional[KdfParams] = None,
        clock: Callable[[], int] = lambda: int(time.time()),
    ):
        self.storage = storage
        self.session = session
        self.default_params = default_params or KdfParams.default()
        self._clock = clock

    def is_initialized(self) -> bool:
        return self.storage.get_config() is not None

    def load(self) -> VaultConfig:
        """
        Read the configuration record.

        Raises:
            NotInitialized: No vault has been created yet.
        """
        row = self.storage.get_config()
        if row is None:
            raise NotInitialized()
        return VaultConfig(
            kdf_salt=bytes(row["kdf_salt"]),
            kdf_params=KdfParams.from_json(row["kdf_params"]),
            key_check=bytes(row["key_check"]),
            created_at=int(row["created_at"]),
        )

    def initialize(self, master_password: str) -> None:
        """
        Create the vault and leave it unlocked.

        Raises:
            AlreadyInitialized: A configuration record already exists.
        """
        if self.is_initialized():
            raise AlreadyInitialized()

        params = self.default_params
        salt = EncryptionService.generate_salt()
        key = EncryptionService.derive_key_buffer(master_password, salt, params)
        try:
            key_check = EncryptionService.encrypt(key, KEY_CHECK_PLAINTEXT)
            # A concurrent initializer may have won the race since the check above
            if not self.storage.insert_config(salt, params.to_json(), key_check, self._clock()):
                raise AlreadyInitialized()
            self.session.install(key)
        finally:
            zero_buffer(key)

        logger.info("Vault initialized (argon2id m=%d t=%d p=%d)",
                    params.memory_cost, params.time_cost, params.parallelism)

    def unlock(self, master_password: str) -> None:
        """
        Derive the key from master_password and install it if it is correct.

        A wrong password locks the session, even one that was unlocked.

        Raises:
            NotInitialized: No vault has been created yet.
            BadMasterPassword: Key-check verification failed.
        """
        config = self.load()
        key = EncryptionService.derive_key_buffer(
            master_password, config.kdf_salt, config.kdf_params
        )
        try:
            try:
                plaintext = EncryptionService.decrypt(key, config.key_check)
            except CryptoError:
                plaintext = None
            if plaintext is None or not hmac.compare_digest(plaintext, KEY_CHECK_PLAINTEXT):
                self.session.lock()
                raise BadMasterPassword()
            self.session.install(key)
        finally:
            zero_buffer(key)

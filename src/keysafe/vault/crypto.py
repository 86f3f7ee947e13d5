# Vault - Encryption Service
#
# Master password → Encryption key (Argon2id)
# Field and backup encryption (AES-256-GCM)
# Blob layout: nonce(12) || ciphertext || tag(16)

import ctypes
import json
import os
from dataclasses import asdict, dataclass
from typing import Union

from argon2.low_level import ARGON2_VERSION, Type, hash_secret_raw
from argon2.exceptions import HashingError
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..core.config import (
    DEFAULT_KDF_MEMORY_COST,
    DEFAULT_KDF_PARALLELISM,
    DEFAULT_KDF_TIME_COST,
)
from .errors import CryptoError

KDF_ALGORITHM = "argon2id"


@dataclass(frozen=True)
class KdfParams:
    """
    Argon2id cost parameters.

    Stored with the vault configuration so later unlocks reproduce the same
    key even if the defaults change.
    """
    memory_cost: int = DEFAULT_KDF_MEMORY_COST  # KiB
    time_cost: int = DEFAULT_KDF_TIME_COST
    parallelism: int = DEFAULT_KDF_PARALLELISM
    hash_len: int = 32
    algorithm: str = KDF_ALGORITHM
    version: int = ARGON2_VERSION

    @classmethod
    def default(cls) -> "KdfParams":
        return cls()

    def to_json(self) -> str:
        return json.dumps(asdict(self), sort_keys=True)

    @classmethod
    def from_json(cls, raw: str) -> "KdfParams":
        """Parse stored parameters; corrupt documents raise CryptoError."""
        try:
            data = json.loads(raw)
            return cls(
                memory_cost=int(data["memory_cost"]),
                time_cost=int(data["time_cost"]),
                parallelism=int(data["parallelism"]),
                hash_len=int(data.get("hash_len", 32)),
                algorithm=str(data.get("algorithm", KDF_ALGORITHM)),
                version=int(data.get("version", ARGON2_VERSION)),
            )
        except (ValueError, TypeError, KeyError) as e:
            raise CryptoError(f"Invalid KDF parameters: {e}") from e


class EncryptionService:
    """
    Handles key derivation and encryption for the vault.

    Flow:
    1. User enters master password
    2. Argon2id derives a 256-bit key from password + salt
    3. AES-256-GCM encrypts/decrypts each secret field
    4. Each encryption uses a fresh random nonce
    """

    KEY_LENGTH = 32  # 256 bits for AES-256
    SALT_LENGTH = 16  # 128-bit salt
    NONCE_LENGTH = 12  # 96-bit nonce for GCM (recommended)
    TAG_LENGTH = 16

    @staticmethod
    def derive_key(master_password: str, salt: bytes, params: KdfParams) -> bytes:
        """
        Derive encryption key from master password using Argon2id.

        Args:
            master_password: User's master password
            salt: Random salt (stored with vault)
            params: Cost parameters recorded in the vault configuration

        Returns:
            256-bit encryption key

        Raises:
            CryptoError: Unsupported algorithm or invalid parameters
        """
        if params.algorithm != KDF_ALGORITHM:
            raise CryptoError(f"Unsupported KDF algorithm: {params.algorithm}")
        if params.hash_len != EncryptionService.KEY_LENGTH:
            raise CryptoError(f"Unsupported key length: {params.hash_len}")

        try:
            return hash_secret_raw(
                secret=master_password.encode("utf-8"),
                salt=salt,
                time_cost=params.time_cost,
                memory_cost=params.memory_cost,
                parallelism=params.parallelism,
                hash_len=params.hash_len,
                type=Type.ID,
                version=params.version,
            )
        except HashingError as e:
            raise CryptoError(f"Key derivation failed: {e}") from e

    @staticmethod
    def derive_key_buffer(master_password: str, salt: bytes, params: KdfParams) -> bytearray:
        """
        derive_key() into a bytearray that zero_buffer() can wipe.

        Wiping is best-effort: the immutable bytes argon2 hands back, and the
        encoded password, are released to the allocator without being zeroed.
        """
        return bytearray(EncryptionService.derive_key(master_password, salt, params))

    @staticmethod
    def generate_salt() -> bytes:
        """Generate cryptographically random salt."""
        return os.urandom(EncryptionService.SALT_LENGTH)

    @staticmethod
    def encrypt(key: Union[bytes, bytearray], plaintext: bytes) -> bytes:
        """
        Encrypt bytes using AES-256-GCM.

        Args:
            key: 256-bit encryption key (from derive_key)
            plaintext: Data to seal

        Returns:
            nonce || ciphertext_with_tag
        """
        # Generate random nonce (must be unique per encryption)
        nonce = os.urandom(EncryptionService.NONCE_LENGTH)
        ciphertext = AESGCM(key).encrypt(nonce, plaintext, None)
        return nonce + ciphertext

    @staticmethod
    def decrypt(key: Union[bytes, bytearray], blob: bytes) -> bytes:
        """
        Decrypt a blob produced by encrypt().

        Raises:
            CryptoError: Blob too short, wrong key, or tampered data.
        """
        n = EncryptionService.NONCE_LENGTH
        if len(blob) < n + EncryptionService.TAG_LENGTH:
            raise CryptoError("Ciphertext too short")

        try:
            return AESGCM(key).decrypt(bytes(blob[:n]), bytes(blob[n:]), None)
        except InvalidTag as e:
            # GCM cannot tell a wrong key from tampered data
            raise CryptoError("Authentication tag mismatch") from e

    @staticmethod
    def encrypt_text(key: bytes, plaintext: str) -> bytes:
        return EncryptionService.encrypt(key, plaintext.encode("utf-8"))

    @staticmethod
    def decrypt_text(key: bytes, blob: bytes) -> str:
        data = EncryptionService.decrypt(key, blob)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CryptoError("Decrypted data is not valid UTF-8") from e


def zero_buffer(buf: bytearray) -> None:
    """Overwrite a mutable buffer with zeros in place."""
    if not buf:
        return
    addr = ctypes.addressof((ctypes.c_char * len(buf)).from_buffer(buf))
    ctypes.memset(addr, 0, len(buf))

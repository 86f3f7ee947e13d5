# Vault Manager - Encrypted Password Database
#
# Top-level vault engine: wires storage, key session, configuration store,
# entry store and backup codec together, and audit-logs every action.
# This is the boundary the command layer (API routes, CLI) calls into.

import logging
import time
from pathlib import Path
from typing import Callable, List, Optional, Union

from ..core import AuditLogger, EventSeverity, EventType, get_audit_logger
from ..core.config import Settings, load_settings
from .backup import BackupCodec
from .config_store import VaultConfigStore
from .crypto import KdfParams
from .entries import Entry, EntryListItem, EntryStore, generate_password
from .errors import BadMasterPassword, CryptoError, StorageError, VaultError
from .session import KeySession
from .storage import VaultStorage

logger = logging.getLogger(__name__)


class VaultManager:
    """
    Manages one encrypted password vault.

    Security:
    - Master password never stored (only salt, KDF params and key-check)
    - Password and notes encrypted per entry with AES-256-GCM
    - Key held only in memory, wiped on lock()
    - Audit logging for all vault access

    Each instance owns its own KeySession, so several vaults can be open in
    one process. An instance is safe to share between threads.
    """

    def __init__(
        self,
        vault_path: Optional[Union[str, Path]] = None,
        kdf_params: Optional[KdfParams] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        """
        Initialize vault manager.

        Args:
            vault_path: Path to vault database file.
                        If None, uses settings.db_path (default: data/vault.db)
            kdf_params: Argon2id parameters for a newly initialized vault.
                        If None, built from settings.
            audit_logger: Audit logger; defaults to the global one.
            settings: Runtime settings; loaded from the environment if None.
            clock: Returns the current time in epoch seconds.
        """
        if settings is None and (vault_path is None or kdf_params is None):
            settings = load_settings()

        if vault_path is None:
            vault_path = settings.db_path
        if kdf_params is None:
            kdf_params = KdfParams(
                memory_cost=settings.kdf_memory_cost,
                time_cost=settings.kdf_time_cost,
                parallelism=settings.kdf_parallelism,
            )
        clock = clock or (lambda: int(time.time()))

        self.vault_path = Path(vault_path)
        self.session = KeySession()
        self.storage = VaultStorage(self.vault_path)
        self.config = VaultConfigStore(self.storage, self.session, kdf_params, clock)
        self.entries = EntryStore(self.storage, self.session, clock)
        self.backup = BackupCodec(self.storage, self.session, self.entries)

        self._audit = audit_logger

    @property
    def logger(self) -> AuditLogger:
        if self._audit is None:
            self._audit = get_audit_logger()
        return self._audit

    def _log_failure(self, action: str, error: VaultError):
        if isinstance(error, (StorageError, CryptoError)):
            severity = EventSeverity.CRITICAL
        else:
            severity = EventSeverity.INVESTIGATE
        self.logger.log_event(
            event_type=EventType.VAULT_ERROR,
            severity=severity,
            message=f"Failed to {action}: {type(error).__name__}",
        )

    # ── Lifecycle ──────────────────────────────────────────────────

    def is_initialized(self) -> bool:
        return self.config.is_initialized()

    def initialize(self, master_password: str) -> None:
        """Create the vault with master_password. The vault is unlocked afterwards."""
        try:
            self.config.initialize(master_password)
        except VaultError as e:
            self._log_failure("initialize vault", e)
            raise

        self.logger.log_event(
            event_type=EventType.VAULT_CREATED,
            severity=EventSeverity.INFO,
            message="Vault initialized with master password"
        )

    def unlock(self, master_password: str) -> None:
        """Unlock the vault. Raises BadMasterPassword on a wrong password."""
        try:
            self.config.unlock(master_password)
        except BadMasterPassword:
            self.logger.log_event(
                event_type=EventType.VAULT_UNLOCK_FAILED,
                severity=EventSeverity.ALERT,
                message="Vault unlock failed: incorrect password, vault locked"
            )
            raise
        except VaultError as e:
            self._log_failure("unlock vault", e)
            raise

        self.logger.log_event(
            event_type=EventType.VAULT_UNLOCKED,
            severity=EventSeverity.INFO,
            message="Vault unlocked successfully"
        )

    def lock(self) -> None:
        """Lock vault (wipe the key)."""
        was_unlocked = self.session.is_unlocked()
        self.session.lock()
        if was_unlocked:
            self.logger.log_event(
                event_type=EventType.VAULT_LOCKED,
                severity=EventSeverity.INFO,
                message="Vault locked"
            )

    def is_unlocked(self) -> bool:
        return self.session.is_unlocked()

    # ── Entries ────────────────────────────────────────────────────

    def add_entry(
        self,
        site: str,
        username: str,
        password: str,
        notes: Optional[str] = None,
    ) -> int:
        entry_id = self.entries.add(site, username, password, notes)
        self.logger.log_vault_event(
            EventType.ENTRY_ADDED,
            f"Entry added: {site}",
            details={"entry_id": entry_id},
        )
        return entry_id

    def get_entry(self, entry_id: int) -> Entry:
        try:
            entry = self.entries.get(entry_id)
        except CryptoError as e:
            self._log_failure("decrypt entry", e)
            raise
        self.logger.log_vault_event(
            EventType.ENTRY_ACCESSED,
            f"Entry accessed: {entry.site}",
            details={"entry_id": entry_id},
        )
        return entry

    def get_password(self, entry_id: int) -> str:
        password = self.entries.get_password(entry_id)
        self.logger.log_vault_event(
            EventType.ENTRY_ACCESSED,
            "Password accessed",
            details={"entry_id": entry_id},
        )
        return password

    def list_entries(self, search: Optional[str] = None) -> List[EntryListItem]:
        return self.entries.list(search)

    def update_entry(
        self,
        entry_id: int,
        site: str,
        username: str,
        password: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> None:
        self.entries.update(entry_id, site, username, password, notes)
        self.logger.log_vault_event(
            EventType.ENTRY_UPDATED,
            f"Entry updated: {site}",
            details={
                "entry_id": entry_id,
                "password_changed": password is not None,
                "notes_changed": notes is not None,
            },
        )

    def delete_entry(self, entry_id: int) -> None:
        self.entries.delete(entry_id)
        self.logger.log_vault_event(
            EventType.ENTRY_DELETED,
            "Entry deleted",
            details={"entry_id": entry_id},
        )

    @staticmethod
    def generate_password(
        length: int = 20,
        use_digits: bool = True,
        use_upper: bool = True,
        use_symbols: bool = True,
    ) -> str:
        return generate_password(length, use_digits, use_upper, use_symbols)

    # ── Backup ─────────────────────────────────────────────────────

    def export_backup(self, path: Optional[Union[str, Path]] = None) -> Optional[bytes]:
        """
        Export every entry as one encrypted blob.

        Args:
            path: If given, write the blob there and return None.

        Returns:
            The blob when no path is given.
        """
        if path is None:
            blob = self.backup.export_bytes()
            size = len(blob)
        else:
            blob = None
            size = self.backup.export_file(path)

        self.logger.log_vault_event(
            EventType.BACKUP_EXPORTED,
            "Backup exported",
            details={"size_bytes": size, "to_file": path is not None},
        )
        return blob

    def import_backup(self, source: Union[str, Path, bytes, bytearray]) -> int:
        """
        Import a backup from a file path or from raw bytes.

        Returns:
            Number of entries added.
        """
        try:
            if isinstance(source, (bytes, bytearray)):
                count = self.backup.import_bytes(bytes(source))
            else:
                count = self.backup.import_file(source)
        except (BadMasterPassword, CryptoError, StorageError) as e:
            self._log_failure("import backup", e)
            raise

        self.logger.log_vault_event(
            EventType.BACKUP_IMPORTED,
            f"Backup imported: {count} entries",
            details={"count": count},
        )
        return count

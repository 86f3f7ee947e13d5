"""Whole-vault encrypted backup and restore.

The backup is a single AES-256-GCM blob sealed with the session key:

    nonce(12) || ciphertext || tag(16)

The plaintext is a UTF-8 JSON document::

    {"format": "keysafe-backup", "version": 1, "entries": [...]}

Older, unversioned backups hold a bare JSON list of entries; both forms are
accepted on import. Imported entries get fresh ids and timestamps, and the
whole import runs in one transaction: either every entry lands or none does.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Union

from .crypto import EncryptionService
from .entries import EntryStore
from .errors import BadMasterPassword, CryptoError, VaultIoError
from .session import KeySession
from .storage import VaultStorage

logger = logging.getLogger(__name__)

BACKUP_FORMAT = "keysafe-backup"
BACKUP_VERSION = 1


class BackupCodec:
    """Exports and imports every entry as one sealed blob."""

    def __init__(self, storage: VaultStorage, session: KeySession, entries: EntryStore):
        self.storage = storage
        self.session = session
        self.entries = entries

    # ── Export ──────────────────────────────────────────────────────

    def export_bytes(self) -> bytes:
        """Decrypt all entries and reseal them as a single backup blob."""
        key = self.session.current_key()

        items = []
        for row in self.storage.all_entries():
            notes_ct = row["notes_ct"]
            items.append({
                "id": row["id"],
                "site": row["site"],
                "username": row["username"],
                "password": EncryptionService.decrypt_text(key, row["password_ct"]),
                "notes": (
                    EncryptionService.decrypt_text(key, notes_ct)
                    if notes_ct is not None else None
                ),
                "created_at": row["created_at"],
                "updated_at": row["updated_at"],
            })

        document = {"format": BACKUP_FORMAT, "version": BACKUP_VERSION, "entries": items}
        payload = json.dumps(document, ensure_ascii=False).encode("utf-8")
        logger.info("Exporting %d entries", len(items))
        return EncryptionService.encrypt(key, payload)

    def export_file(self, path: Union[str, Path]) -> int:
        """
        Write the backup blob to path. Returns the number of bytes written.

        The blob goes to a sibling temp file first and is renamed over path,
        so a failed write never leaves a truncated backup behind.
        """
        blob = self.export_bytes()
        path = Path(path)
        tmp_path = path.with_name(path.name + ".tmp")
        try:
            tmp_path.write_bytes(blob)
            os.replace(tmp_path, path)
        except OSError as e:
            if tmp_path.exists():
                tmp_path.unlink()
            raise VaultIoError(f"Cannot write backup to {path}: {e}") from e
        return len(blob)

    # ── Import ──────────────────────────────────────────────────────

    def import_bytes(self, blob: bytes) -> int:
        """
        Decrypt a backup blob and add every entry it contains.

        Returns:
            Number of entries inserted.

        Raises:
            Locked: Vault is locked.
            CryptoError: Blob too short or payload is not a valid backup.
            BadMasterPassword: Blob was sealed with a different key or altered.
        """
        key = self.session.current_key()

        if len(blob) < EncryptionService.NONCE_LENGTH + EncryptionService.TAG_LENGTH:
            raise CryptoError("Backup is too short to be valid")
        try:
            payload = EncryptionService.decrypt(key, blob)
        except CryptoError as e:
            raise BadMasterPassword() from e

        items = self._parse(payload)

        with self.storage.transaction() as conn:
            for item in items:
                self.entries.add(
                    item["site"],
                    item["username"],
                    item["password"],
                    item.get("notes"),
                    conn=conn,
                )

        logger.info("Imported %d entries", len(items))
        return len(items)

    def import_file(self, path: Union[str, Path]) -> int:
        """Read a backup blob from path and import it."""
        try:
            blob = Path(path).read_bytes()
        except OSError as e:
            raise VaultIoError(f"Cannot read backup from {path}: {e}") from e
        return self.import_bytes(blob)

    @staticmethod
    def _parse(payload: bytes) -> List[Dict[str, Any]]:
        try:
            document = json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise CryptoError(f"Backup payload is not valid JSON: {e}") from e

        if isinstance(document, list):
            items = document
        elif isinstance(document, dict) and document.get("format") == BACKUP_FORMAT:
            version = document.get("version")
            if version != BACKUP_VERSION:
                raise CryptoError(f"Unsupported backup version: {version}")
            items = document.get("entries")
        else:
            raise CryptoError("Unrecognized backup document")

        if not isinstance(items, list):
            raise CryptoError("Backup entries must be a list")
        for item in items:
            if not isinstance(item, dict):
                raise CryptoError("Backup entry must be an object")
            for field in ("site", "username", "password"):
                if not isinstance(item.get(field), str):
                    raise CryptoError(f"Backup entry missing '{field}'")
            notes = item.get("notes")
            if notes is not None and not isinstance(notes, str):
                raise CryptoError("Backup entry 'notes' must be a string")
        return items

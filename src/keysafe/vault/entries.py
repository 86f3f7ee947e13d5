# Vault - Entry Store
#
# CRUD over stored credentials. site/username are plaintext (searchable);
# password and notes are sealed with AES-256-GCM under the session key
# before they reach storage and opened only for the request that needs them.

import logging
import secrets
import string
import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Optional

from .crypto import EncryptionService
from .errors import NotFound
from .session import KeySession
from .storage import KEEP, VaultStorage

logger = logging.getLogger(__name__)

SYMBOLS = "!@#$%^&*()-_=+[]{};:,.<>?"


@dataclass
class Entry:
    id: int
    site: str
    username: str
    password: str
    notes: Optional[str]
    created_at: int
    updated_at: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class EntryListItem:
    """Entry metadata without any secret field."""
    id: int
    site: str
    username: str
    created_at: int
    updated_at: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def generate_password(
    length: int,
    use_digits: bool,
    use_upper: bool,
    use_symbols: bool,
) -> str:
    """
    Generate a random password from the secrets CSPRNG.

    The alphabet always contains lowercase letters, then optionally
    uppercase letters, digits and SYMBOLS.
    """
    charset = string.ascii_lowercase
    if use_upper:
        charset += string.ascii_uppercase
    if use_digits:
        charset += string.digits
    if use_symbols:
        charset += SYMBOLS

    if not charset or length <= 0:
        return ""
    return "".join(charset[secrets.randbits(32) % len(charset)] for _ in range(length))


class EntryStore:
    """
    Encrypted entry CRUD.

    Every method that touches a secret asks the KeySession for the key
    first, so a locked vault fails with Locked before any database access.
    """

    def __init__(
        self,
        storage: VaultStorage,
        session: KeySession,
        clock: Callable[[], int] = lambda: int(time.time()),
    ):
        self.storage = storage
        self.session = session
        self._clock = clock

    @staticmethod
    def _seal_notes(key: bytes, notes: Optional[str]) -> Optional[bytes]:
        # Empty and absent notes share one representation: NULL
        if not notes:
            return None
        return EncryptionService.encrypt_text(key, notes)

    def add(
        self,
        site: str,
        username: str,
        password: str,
        notes: Optional[str] = None,
        conn=None,
    ) -> int:
        """Encrypt and insert a new entry. Returns the assigned id."""
        key = self.session.current_key()
        password_ct = EncryptionService.encrypt_text(key, password)
        notes_ct = self._seal_notes(key, notes)
        return self.storage.insert_entry(
            site, username, password_ct, notes_ct, self._clock(), conn=conn
        )

    def get(self, entry_id: int) -> Entry:
        """
        Fetch and decrypt one entry.

        Raises:
            Locked: Vault is locked.
            NotFound: No entry with that id.
            CryptoError: Row was sealed with another key or is corrupt.
        """
        key = self.session.current_key()
        row = self.storage.get_entry(entry_id)
        if row is None:
            raise NotFound(f"Entry {entry_id} not found")

        notes_ct = row["notes_ct"]
        return Entry(
            id=row["id"],
            site=row["site"],
            username=row["username"],
            password=EncryptionService.decrypt_text(key, row["password_ct"]),
            notes=EncryptionService.decrypt_text(key, notes_ct) if notes_ct is not None else None,
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def get_password(self, entry_id: int) -> str:
        """Decrypt only the password of one entry."""
        key = self.session.current_key()
        row = self.storage.get_entry(entry_id)
        if row is None:
            raise NotFound(f"Entry {entry_id} not found")
        return EncryptionService.decrypt_text(key, row["password_ct"])

    def list(self, search: Optional[str] = None) -> List[EntryListItem]:
        """
        List entry metadata, most recently updated first.

        search is trimmed and matched as a substring of site or username
        (SQLite LIKE: ASCII case-insensitive). Blank terms list everything.
        """
        self.session.current_key()  # fails with Locked
        term = search.strip() if search else ""
        return [
            EntryListItem(
                id=row["id"],
                site=row["site"],
                username=row["username"],
                created_at=row["created_at"],
                updated_at=row["updated_at"],
            )
            for row in self.storage.list_entries(term or None)
        ]

    def update(
        self,
        entry_id: int,
        site: str,
        username: str,
        password: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> None:
        """
        Overwrite an entry.

        password None keeps the stored ciphertext. notes None keeps the
        stored notes, "" clears them, anything else replaces them.
        updated_at is refreshed on every call.

        Raises:
            Locked: Vault is locked.
            NotFound: No entry with that id.
        """
        key = self.session.current_key()
        password_ct = KEEP if password is None else EncryptionService.encrypt_text(key, password)
        notes_ct = KEEP if notes is None else self._seal_notes(key, notes)

        if not self.storage.update_entry(
            entry_id, site, username, self._clock(),
            password_ct=password_ct, notes_ct=notes_ct,
        ):
            raise NotFound(f"Entry {entry_id} not found")

    def delete(self, entry_id: int) -> None:
        """Delete an entry. Unknown ids are ignored."""
        self.session.current_key()  # fails with Locked
        if not self.storage.delete_entry(entry_id):
            logger.debug("Delete of missing entry %s ignored", entry_id)

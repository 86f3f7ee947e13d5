# Vault API - RESTful endpoints for the password vault
#
# API endpoints for vault operations:
# - Initialize/unlock/lock vault
# - CRUD operations for entries
# - Password generator
# - Encrypted backup export/import
#
# Endpoints are plain `def` so FastAPI runs them in its threadpool; the
# Argon2id derivation in initialize/unlock blocks for a noticeable time.

import base64
import binascii
import logging
from typing import Dict, Optional, Type

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from ..vault import VaultManager
from ..vault.errors import (
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
from .security import verify_session_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/vault", tags=["vault"])

# ── Singleton ────────────────────────────────────────────────────────

_vault_manager: Optional[VaultManager] = None


def get_vault_manager() -> VaultManager:
    """Lazy singleton, created on first use."""
    global _vault_manager
    if _vault_manager is None:
        _vault_manager = VaultManager()
    return _vault_manager


def set_vault_manager(manager: Optional[VaultManager]) -> None:
    global _vault_manager
    _vault_manager = manager


_STATUS_BY_ERROR: Dict[Type[VaultError], int] = {
    NotInitialized: status.HTTP_409_CONFLICT,
    AlreadyInitialized: status.HTTP_409_CONFLICT,
    Locked: status.HTTP_423_LOCKED,
    BadMasterPassword: status.HTTP_401_UNAUTHORIZED,
    NotFound: status.HTTP_404_NOT_FOUND,
    CryptoError: status.HTTP_400_BAD_REQUEST,
    VaultIoError: status.HTTP_400_BAD_REQUEST,
    StorageError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _http_error(error: VaultError) -> HTTPException:
    """Translate a vault error into an HTTPException with a user message."""
    code = _STATUS_BY_ERROR.get(type(error), status.HTTP_500_INTERNAL_SERVER_ERROR)
    if isinstance(error, (Locked, BadMasterPassword, NotInitialized)):
        detail = error.user_message
    else:
        detail = str(error)
    if code >= 500:
        logger.error("Vault API failure: %s", error)
    return HTTPException(status_code=code, detail=detail)


# ── Request Models ───────────────────────────────────────────────────


class MasterPasswordRequest(BaseModel):
    master_password: str = Field(..., min_length=1)


class AddEntryRequest(BaseModel):
    site: str = Field(..., max_length=500)
    username: str = Field(..., max_length=500)
    password: str
    notes: Optional[str] = None


class UpdateEntryRequest(BaseModel):
    site: str = Field(..., max_length=500)
    username: str = Field(..., max_length=500)
    password: Optional[str] = None
    notes: Optional[str] = None


class GeneratePasswordRequest(BaseModel):
    length: int = Field(20, ge=0, le=4096)
    use_digits: bool = True
    use_upper: bool = True
    use_symbols: bool = True


class ExportBackupRequest(BaseModel):
    path: Optional[str] = None


class ImportBackupRequest(BaseModel):
    path: Optional[str] = None
    data: Optional[str] = None  # base64 blob


class VaultStatusResponse(BaseModel):
    is_unlocked: bool
    vault_exists: bool


# ── Lifecycle ────────────────────────────────────────────────────────


@router.get("/status", response_model=VaultStatusResponse)
def get_vault_status(token: str = Depends(verify_session_token)):
    """Whether the vault exists and is unlocked."""
    vault = get_vault_manager()
    try:
        exists = vault.is_initialized()
    except VaultError as e:
        raise _http_error(e)
    return VaultStatusResponse(is_unlocked=vault.is_unlocked(), vault_exists=exists)


@router.post("/initialize")
def initialize_vault(
    request: MasterPasswordRequest,
    token: str = Depends(verify_session_token)
):
    """Create the vault with a master password. The vault is unlocked afterwards."""
    try:
        get_vault_manager().initialize(request.master_password)
    except VaultError as e:
        raise _http_error(e)
    return {"success": True, "message": "Vault created successfully"}


@router.post("/unlock")
def unlock_vault(
    request: MasterPasswordRequest,
    token: str = Depends(verify_session_token)
):
    """Unlock the vault with the master password."""
    try:
        get_vault_manager().unlock(request.master_password)
    except VaultError as e:
        raise _http_error(e)
    return {"success": True, "message": "Vault unlocked successfully"}


@router.post("/lock")
def lock_vault(token: str = Depends(verify_session_token)):
    """Lock the vault (wipe the key from memory)."""
    get_vault_manager().lock()
    return {"success": True, "message": "Vault locked"}


# ── Entries ──────────────────────────────────────────────────────────


@router.post("/entries")
def add_entry(
    request: AddEntryRequest,
    token: str = Depends(verify_session_token)
):
    try:
        entry_id = get_vault_manager().add_entry(
            site=request.site,
            username=request.username,
            password=request.password,
            notes=request.notes,
        )
    except VaultError as e:
        raise _http_error(e)
    return {"success": True, "id": entry_id}


@router.get("/entries")
def list_entries(
    search: Optional[str] = None,
    token: str = Depends(verify_session_token)
):
    """
    List entries (metadata only, no passwords), most recently updated first.

    Use GET /entries/{id} to retrieve the decrypted entry.
    """
    try:
        items = get_vault_manager().list_entries(search)
    except VaultError as e:
        raise _http_error(e)
    return {"entries": [item.to_dict() for item in items]}


@router.get("/entries/{entry_id}")
def get_entry(
    entry_id: int,
    token: str = Depends(verify_session_token)
):
    """Get one entry with its password and notes decrypted."""
    try:
        entry = get_vault_manager().get_entry(entry_id)
    except VaultError as e:
        raise _http_error(e)
    return entry.to_dict()


@router.get("/entries/{entry_id}/password")
def get_entry_password(
    entry_id: int,
    token: str = Depends(verify_session_token)
):
    try:
        password = get_vault_manager().get_password(entry_id)
    except VaultError as e:
        raise _http_error(e)
    return {"password": password}


@router.put("/entries/{entry_id}")
def update_entry(
    entry_id: int,
    request: UpdateEntryRequest,
    token: str = Depends(verify_session_token)
):
    """
    Update an entry.

    Omitting password (or sending null) keeps the stored one. Omitting
    notes keeps them; an empty string clears them.
    """
    try:
        get_vault_manager().update_entry(
            entry_id,
            site=request.site,
            username=request.username,
            password=request.password,
            notes=request.notes,
        )
    except VaultError as e:
        raise _http_error(e)
    return {"success": True}


@router.delete("/entries/{entry_id}")
def delete_entry(
    entry_id: int,
    token: str = Depends(verify_session_token)
):
    """Delete an entry. Deleting an unknown id succeeds."""
    try:
        get_vault_manager().delete_entry(entry_id)
    except VaultError as e:
        raise _http_error(e)
    return {"success": True}


@router.post("/generate-password")
def generate_password(
    request: GeneratePasswordRequest,
    token: str = Depends(verify_session_token)
):
    password = VaultManager.generate_password(
        request.length, request.use_digits, request.use_upper, request.use_symbols
    )
    return {"password": password}


# ── Backup ───────────────────────────────────────────────────────────


@router.post("/backup/export")
def export_backup(
    request: ExportBackupRequest,
    token: str = Depends(verify_session_token)
):
    """Export an encrypted backup to a file, or return it base64-encoded."""
    try:
        blob = get_vault_manager().export_backup(request.path)
    except VaultError as e:
        raise _http_error(e)

    if blob is None:
        return {"success": True, "path": request.path}
    return {"success": True, "data": base64.b64encode(blob).decode("ascii")}


@router.post("/backup/import")
def import_backup(
    request: ImportBackupRequest,
    token: str = Depends(verify_session_token)
):
    """Import an encrypted backup from a file path or a base64 blob."""
    if (request.path is None) == (request.data is None):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Provide exactly one of 'path' or 'data'"
        )

    if request.data is not None:
        try:
            source = base64.b64decode(request.data, validate=True)
        except (binascii.Error, ValueError):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Backup data is not valid base64"
            )
    else:
        source = request.path

    try:
        count = get_vault_manager().import_backup(source)
    except VaultError as e:
        raise _http_error(e)
    return {"success": True, "imported": count}

# API Module - Local HTTP command layer for the vault

from .security import initialize_session_token, verify_session_token
from .vault_routes import get_vault_manager, router, set_vault_manager

__all__ = [
    "router",
    "get_vault_manager",
    "set_vault_manager",
    "initialize_session_token",
    "verify_session_token",
]

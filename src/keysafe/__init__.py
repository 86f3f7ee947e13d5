# keysafe - Main Package
#
# Local encrypted password vault: a master password derives the key that
# seals every stored secret; the key exists only in memory.

__version__ = "0.3.0"
__author__ = "keysafe contributors"
__description__ = "Local encrypted password vault with a master-password key"

from .core import (
    EventType,
    EventSeverity,
    get_audit_logger,
)
from .vault import VaultManager

__all__ = [
    "__version__",
    "VaultManager",
    "EventType",
    "EventSeverity",
    "get_audit_logger",
]

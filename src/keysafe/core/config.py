"""Runtime settings for keysafe.

Values come from environment variables (optionally loaded from a ``.env``
file via python-dotenv). Every variable has a default so a bare checkout
runs without any configuration.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Argon2id defaults (OWASP recommended)
DEFAULT_KDF_MEMORY_COST = 65536  # KiB = 64 MB
DEFAULT_KDF_TIME_COST = 3
DEFAULT_KDF_PARALLELISM = 4


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


@dataclass
class Settings:
    """Resolved configuration for one keysafe process."""

    db_path: Path = field(default_factory=lambda: Path("data/vault.db"))
    audit_log_dir: Path = field(default_factory=lambda: Path("audit_logs"))
    kdf_memory_cost: int = DEFAULT_KDF_MEMORY_COST
    kdf_time_cost: int = DEFAULT_KDF_TIME_COST
    kdf_parallelism: int = DEFAULT_KDF_PARALLELISM
    api_host: str = "127.0.0.1"
    api_port: int = 8000
    api_token: Optional[str] = None


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """Build Settings from the environment.

    Args:
        env_file: Optional explicit .env path. When None, python-dotenv
                  searches the working directory upwards.

    Raises:
        ValueError: If a numeric variable is not a positive integer.
    """
    load_dotenv(dotenv_path=env_file, override=False)

    return Settings(
        db_path=Path(os.environ.get("KEYSAFE_DB_PATH", "data/vault.db")),
        audit_log_dir=Path(os.environ.get("KEYSAFE_AUDIT_LOG_DIR", "audit_logs")),
        kdf_memory_cost=_env_int("KEYSAFE_KDF_MEMORY_COST", DEFAULT_KDF_MEMORY_COST),
        kdf_time_cost=_env_int("KEYSAFE_KDF_TIME_COST", DEFAULT_KDF_TIME_COST),
        kdf_parallelism=_env_int("KEYSAFE_KDF_PARALLELISM", DEFAULT_KDF_PARALLELISM),
        api_host=os.environ.get("KEYSAFE_API_HOST", "127.0.0.1"),
        api_port=_env_int("KEYSAFE_API_PORT", 8000),
        api_token=os.environ.get("KEYSAFE_API_TOKEN") or None,
    )

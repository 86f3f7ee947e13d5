"""
Shared pytest fixtures for the keysafe test suite.

Autouse fixtures below isolate tests from live application data:
  - Audit logger -> temp directory (prevents test events in ./audit_logs)
  - Vault API singleton -> reset after every test
"""

import pytest

from keysafe.vault import KdfParams, VaultManager


# Argon2id at the minimum cost argon2-cffi accepts; production defaults
# (64 MB, 3 passes) would make every initialize/unlock take ~0.5s.
FAST_KDF = KdfParams(memory_cost=1024, time_cost=1, parallelism=1)


class FakeClock:
    """Deterministic epoch-seconds clock for ordering tests."""

    def __init__(self, start: int = 1_700_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int = 1) -> int:
        self.now += seconds
        return self.now


@pytest.fixture(autouse=True)
def _isolate_audit_logs(tmp_path, monkeypatch):
    """Redirect the global AuditLogger to a temp directory for every test."""
    import keysafe.core.audit_log as audit_mod

    logger = audit_mod.AuditLogger(log_dir=tmp_path / "audit_logs")
    monkeypatch.setattr(audit_mod, "_audit_logger", logger)

    yield logger

    logger.close()


@pytest.fixture(autouse=True)
def _isolate_vault_api():
    """Reset the API's vault singleton so tests never touch data/vault.db."""
    import keysafe.api.vault_routes as routes_mod

    old_manager = routes_mod._vault_manager
    routes_mod._vault_manager = None

    yield

    routes_mod._vault_manager = old_manager


@pytest.fixture
def fast_kdf():
    return FAST_KDF


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def vault_path(tmp_path):
    return tmp_path / "vault.db"


@pytest.fixture
def vault(vault_path, clock):
    """A fresh, uninitialized vault with cheap KDF parameters."""
    manager = VaultManager(vault_path, kdf_params=FAST_KDF, clock=clock)
    yield manager
    manager.lock()


@pytest.fixture
def unlocked_vault(vault):
    """A vault initialized with the master password "master123"."""
    vault.initialize("master123")
    return vault

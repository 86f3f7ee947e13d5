"""Tests for vault initialization, unlock and lock (configuration store)."""

import json
import sqlite3

import pytest

from keysafe.vault import KdfParams, VaultManager
from keysafe.vault.config_store import KEY_CHECK_PLAINTEXT
from keysafe.vault.crypto import EncryptionService
from keysafe.vault.errors import (
    AlreadyInitialized,
    BadMasterPassword,
    Locked,
    NotInitialized,
)


def _config_row(path):
    conn = sqlite3.connect(str(path))
    try:
        return conn.execute(
            "SELECT kdf_salt, kdf_params, key_check, created_at FROM vault_config"
        ).fetchall()
    finally:
        conn.close()


class TestInitialize:

    def test_fresh_vault_is_not_initialized(self, vault):
        assert vault.is_initialized() is False
        assert vault.is_unlocked() is False

    def test_initialize_unlocks(self, vault):
        vault.initialize("master123")
        assert vault.is_initialized() is True
        assert vault.is_unlocked() is True

    def test_second_initialize_fails(self, unlocked_vault):
        with pytest.raises(AlreadyInitialized):
            unlocked_vault.initialize("other-password")

    def test_second_initialize_from_other_instance_fails(self, unlocked_vault, vault_path, fast_kdf):
        other = VaultManager(vault_path, kdf_params=fast_kdf)
        with pytest.raises(AlreadyInitialized):
            other.initialize("other-password")

    def test_losing_concurrent_initialize(self, unlocked_vault, vault_path, fast_kdf, monkeypatch):
        # The other instance passed its existence check before the row landed
        loser = VaultManager(vault_path, kdf_params=fast_kdf)
        monkeypatch.setattr(loser.config, "is_initialized", lambda: False)
        with pytest.raises(AlreadyInitialized):
            loser.initialize("other-password")
        assert loser.is_unlocked() is False
        assert len(_config_row(vault_path)) == 1
        loser.unlock("master123")
        assert loser.is_unlocked() is True

    def test_config_row_contents(self, unlocked_vault, vault_path, clock, fast_kdf):
        rows = _config_row(vault_path)
        assert len(rows) == 1
        salt, params_json, key_check, created_at = rows[0]
        assert len(salt) == 16
        assert KdfParams.from_json(params_json) == fast_kdf
        assert json.loads(params_json)["algorithm"] == "argon2id"
        assert created_at == clock.now
        # nonce + constant + tag
        assert len(key_check) == 12 + len(KEY_CHECK_PLAINTEXT) + 16

    def test_key_check_decrypts_with_session_key(self, unlocked_vault, vault_path):
        _, _, key_check, _ = _config_row(vault_path)[0]
        key = unlocked_vault.session.current_key()
        assert EncryptionService.decrypt(key, key_check) == KEY_CHECK_PLAINTEXT

    def test_password_not_stored(self, unlocked_vault, vault_path):
        unlocked_vault.lock()
        for path in vault_path.parent.glob("vault.db*"):
            assert b"master123" not in path.read_bytes()


class TestUnlock:

    def test_unlock_before_initialize(self, vault):
        with pytest.raises(NotInitialized):
            vault.unlock("master123")

    def test_unlock_with_correct_password(self, unlocked_vault):
        unlocked_vault.lock()
        unlocked_vault.unlock("master123")
        assert unlocked_vault.is_unlocked() is True

    def test_unlock_with_wrong_password(self, unlocked_vault):
        unlocked_vault.lock()
        with pytest.raises(BadMasterPassword):
            unlocked_vault.unlock("master124")
        assert unlocked_vault.is_unlocked() is False
        with pytest.raises(Locked):
            unlocked_vault.list_entries()

    def test_failed_unlock_locks_unlocked_vault(self, unlocked_vault):
        with pytest.raises(BadMasterPassword):
            unlocked_vault.unlock("not-master123")
        assert unlocked_vault.is_unlocked() is False
        with pytest.raises(Locked):
            unlocked_vault.list_entries()
        unlocked_vault.unlock("master123")
        assert unlocked_vault.is_unlocked() is True

    def test_unlock_reproduces_key(self, unlocked_vault):
        key = unlocked_vault.session.current_key()
        unlocked_vault.lock()
        unlocked_vault.unlock("master123")
        assert unlocked_vault.session.current_key() == key

    def test_unlock_while_unlocked_replaces_key(self, unlocked_vault):
        unlocked_vault.unlock("master123")
        assert unlocked_vault.is_unlocked() is True

    def test_new_instance_uses_stored_params(self, unlocked_vault, vault_path):
        entry_id = unlocked_vault.add_entry("example.com", "alice", "p@ss")
        # Different defaults must not matter for an existing vault
        reopened = VaultManager(
            vault_path,
            kdf_params=KdfParams(memory_cost=2048, time_cost=2, parallelism=1),
        )
        assert reopened.is_unlocked() is False
        reopened.unlock("master123")
        assert reopened.get_entry(entry_id).password == "p@ss"

    def test_wrong_password_is_audited(self, unlocked_vault, _isolate_audit_logs):
        unlocked_vault.lock()
        with pytest.raises(BadMasterPassword):
            unlocked_vault.unlock("nope")
        text = _isolate_audit_logs.log_file.read_text(encoding="utf-8")
        assert "vault.unlock.failed" in text
        assert "nope" not in text


class TestLock:

    def test_lock_is_idempotent(self, vault):
        vault.lock()
        vault.lock()
        assert vault.is_unlocked() is False

    def test_everything_fails_after_lock(self, unlocked_vault):
        entry_id = unlocked_vault.add_entry("example.com", "alice", "p@ss")
        unlocked_vault.lock()

        calls = [
            lambda: unlocked_vault.add_entry("a", "b", "c"),
            lambda: unlocked_vault.get_entry(entry_id),
            lambda: unlocked_vault.get_password(entry_id),
            lambda: unlocked_vault.list_entries(),
            lambda: unlocked_vault.list_entries("example"),
            lambda: unlocked_vault.update_entry(entry_id, "a", "b"),
            lambda: unlocked_vault.delete_entry(entry_id),
            lambda: unlocked_vault.export_backup(),
            lambda: unlocked_vault.import_backup(b"\x00" * 64),
        ]
        for call in calls:
            with pytest.raises(Locked):
                call()

        unlocked_vault.unlock("master123")
        assert unlocked_vault.get_entry(entry_id).site == "example.com"

    def test_independent_vaults(self, tmp_path, fast_kdf):
        a = VaultManager(tmp_path / "a.db", kdf_params=fast_kdf)
        b = VaultManager(tmp_path / "b.db", kdf_params=fast_kdf)
        a.initialize("alpha-password")
        b.initialize("beta-password")
        a.lock()
        assert b.is_unlocked() is True
        assert a.is_unlocked() is False

"""Tests de configuración."""

import dataclasses

import pytest

from device_manager.config import DeviceManagerConfig


class TestDeviceManagerConfig:

    def test_defaults(self):
        config = DeviceManagerConfig()

        assert config.admin_index == "device-manager"
        assert config.assets_history_collection == "assets-history"
        assert config.batch_interval_ms == 10
        assert config.retry_on_conflict == 10
        assert config.lock_backend == "local"
        assert config.auto_provisioning is True

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DEVICE_MANAGER_ENV_FILE", str(tmp_path / "missing.env"))
        monkeypatch.setenv("DM_ADMIN_INDEX", "dm-admin")
        monkeypatch.setenv("DM_RETRY_ON_CONFLICT", "3")
        monkeypatch.setenv("DM_LOCK_BACKEND", "Redis")
        monkeypatch.setenv("DM_LOCK_TIMEOUT", "5")
        monkeypatch.setenv("DM_AUTO_PROVISIONING", "false")

        config = DeviceManagerConfig.from_env()

        assert config.admin_index == "dm-admin"
        assert config.retry_on_conflict == 3
        assert config.lock_backend == "redis"
        assert config.lock_timeout_seconds == 5.0
        assert config.auto_provisioning is False

    def test_batch_interval_is_not_read_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DEVICE_MANAGER_ENV_FILE", str(tmp_path / "missing.env"))
        monkeypatch.setenv("DM_BATCH_INTERVAL_MS", "250")

        config = DeviceManagerConfig.from_env()

        assert config.batch_interval_ms == 10

    def test_env_file_does_not_override_environment(self, monkeypatch, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("DM_ADMIN_INDEX=from-file\nDM_MEASURES_COLLECTION=file-measures\n")
        monkeypatch.setenv("DEVICE_MANAGER_ENV_FILE", str(env_file))
        monkeypatch.setenv("DM_ADMIN_INDEX", "from-env")
        monkeypatch.setenv("DM_MEASURES_COLLECTION", "placeholder")
        monkeypatch.delenv("DM_MEASURES_COLLECTION")

        config = DeviceManagerConfig.from_env()

        assert config.admin_index == "from-env"
        assert config.measures_collection == "file-measures"

    def test_negative_retry_on_conflict(self):
        with pytest.raises(ValueError):
            DeviceManagerConfig(retry_on_conflict=-1)

    def test_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            DeviceManagerConfig().admin_index = "x"

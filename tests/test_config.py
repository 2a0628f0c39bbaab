import pytest

from config import load_settings, pwd_context
from errors import ConfigError


@pytest.fixture
def env(monkeypatch):
    for name in ("ADMIN_PASSWORD", "ADMIN_PASSWORD_HASH", "JWT_SECRET", "MAX_UPLOAD_BYTES", "STORAGE_BACKEND", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_missing_admin_secret_is_fatal(env):
    with pytest.raises(ConfigError):
        load_settings()


def test_plain_password_is_hashed(env):
    env.setenv("ADMIN_PASSWORD", "pw")
    settings = load_settings()
    assert settings.admin_password_hash != "pw"
    assert pwd_context.verify("pw", settings.admin_password_hash)
    assert settings.jwt_secret


def test_precomputed_hash_is_used(env):
    hashed = pwd_context.hash("pw2")
    env.setenv("ADMIN_PASSWORD_HASH", hashed)
    assert load_settings().admin_password_hash == hashed


def test_upload_limit_must_be_finite_and_positive(env):
    env.setenv("ADMIN_PASSWORD", "pw")
    assert load_settings().max_upload_bytes == 100 * 1024 * 1024
    env.setenv("MAX_UPLOAD_BYTES", "0")
    with pytest.raises(ConfigError):
        load_settings()
    env.setenv("MAX_UPLOAD_BYTES", "lots")
    with pytest.raises(ConfigError):
        load_settings()


def test_unknown_storage_backend(env):
    env.setenv("ADMIN_PASSWORD", "pw")
    env.setenv("STORAGE_BACKEND", "postgres")
    with pytest.raises(ConfigError):
        load_settings()


def test_unrecognized_password_hash_is_fatal(env):
    env.setenv("ADMIN_PASSWORD_HASH", "plaintext-not-a-hash")
    with pytest.raises(ConfigError):
        load_settings()


def test_log_level_is_checked(env):
    env.setenv("ADMIN_PASSWORD", "pw")
    env.setenv("LOG_LEVEL", "debug")
    assert load_settings().log_level == "DEBUG"
    env.setenv("LOG_LEVEL", "VERBOSE")
    with pytest.raises(ConfigError):
        load_settings()

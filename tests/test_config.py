import pytest

from giftdraw.core.config import load_settings


@pytest.fixture
def base_env(monkeypatch):
    monkeypatch.setenv("BOT_TOKEN", "123:abc")
    monkeypatch.setenv("DATABASE_URL", "sqlite:///giftdraw.db")
    for name in ("LOG_LEVEL", "LOG_PATH", "DRAW_MAX_ATTEMPTS", "MIN_PARTICIPANTS", "ADMIN_PASSWORD_MIN_LENGTH"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(base_env):
    settings = load_settings()
    assert settings.log_level == "INFO"
    assert settings.log_path == "logs/giftdraw.log"
    assert settings.draw_max_attempts == 1000
    assert settings.min_participants == 3
    assert settings.admin_password_min_length == 4


def test_overrides(base_env):
    base_env.setenv("DRAW_MAX_ATTEMPTS", "250")
    base_env.setenv("MIN_PARTICIPANTS", "4")
    assert load_settings().draw_max_attempts == 250
    assert load_settings().min_participants == 4


def test_invalid_integer(base_env):
    base_env.setenv("DRAW_MAX_ATTEMPTS", "lots")
    with pytest.raises(ValueError, match="DRAW_MAX_ATTEMPTS"):
        load_settings()


def test_missing_token(base_env):
    base_env.delenv("BOT_TOKEN")
    with pytest.raises(ValueError, match="BOT_TOKEN"):
        load_settings()

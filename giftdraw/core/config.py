import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    bot_token: str
    database_url: str
    log_level: str
    log_path: str
    draw_max_attempts: int
    min_participants: int
    admin_password_min_length: int


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}.") from exc
    if value < 1:
        raise ValueError(f"{name} must be positive, got {value}.")
    return value


def load_settings() -> Settings:
    bot_token = os.getenv("BOT_TOKEN")
    database_url = os.getenv("DATABASE_URL")
    log_level = os.getenv("LOG_LEVEL", "INFO")
    log_path = os.getenv("LOG_PATH", "logs/giftdraw.log")

    if not bot_token:
        raise ValueError("BOT_TOKEN is required. Set it in the environment or .env file.")
    if not database_url:
        raise ValueError("DATABASE_URL is required. Set it in the environment or .env file.")

    return Settings(
        bot_token=bot_token,
        database_url=database_url,
        log_level=log_level,
        log_path=log_path,
        draw_max_attempts=_int_env("DRAW_MAX_ATTEMPTS", 1000),
        min_participants=_int_env("MIN_PARTICIPANTS", 3),
        admin_password_min_length=_int_env("ADMIN_PASSWORD_MIN_LENGTH", 4),
    )

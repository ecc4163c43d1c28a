from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from aiogram.fsm.context import FSMContext
from loguru import logger

from giftdraw.core.config import Settings, load_settings

ADMIN_FLAG = "admin_authenticated"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


def split_names(raw: str) -> List[str]:
    return [name.strip() for name in raw.split(",") if name.strip()]


async def is_admin_authenticated(state: FSMContext) -> bool:
    data = await state.get_data()
    return bool(data.get(ADMIN_FLAG))


async def notify(bot, chat_id: Optional[int], text: str) -> None:
    if chat_id is None:
        return
    try:
        await bot.send_message(chat_id, text)
    except Exception as exc:  # pragma: no cover - network dependent
        logger.bind(chat_id=chat_id).warning("Failed to send notification: {error}", error=str(exc))


def log_handler_exception(action: str, user_id: int | None, chat_id: int | None, error: Exception) -> None:
    logger.bind(action=action, user_id=user_id, chat_id=chat_id).exception(
        "Handler error: {error}", error=str(error)
    )

from __future__ import annotations

import asyncio

import uvloop
from aiogram.types import BotCommand, BotCommandScopeDefault
from loguru import logger

from giftdraw.bot import bot, dp, settings
from giftdraw.core.logging import setup_logging
from giftdraw.db import init_engine, init_schema


USERS_COMMANDS: dict[str, str] = {
    "start": "start",
    "help": "show help",
    "new": "create a session",
    "link": "participant invite link",
    "join": "join a session",
    "use": "switch active session",
    "sessions": "list your sessions",
    "add": "add a participant",
    "remove": "remove a participant",
    "exclude": "exclude or include a participant",
    "restrict": "set who a giver must not draw",
    "restrictions": "list restrictions",
    "close": "open or close registration",
    "draw": "start the draw",
    "mine": "reveal your match",
    "status": "session status",
    "progress": "draw progress",
    "results": "show all assignments",
    "reveal": "reveal one assignment",
    "reset": "reset the draw",
    "delete": "delete the session",
    "claim": "manage a session with its key",
    "admin": "admin dashboard",
    "logout": "leave admin mode",
}


async def set_default_commands() -> None:
    await bot.set_my_commands(
        [
            BotCommand(command=command, description=description)
            for command, description in USERS_COMMANDS.items()
        ],
        scope=BotCommandScopeDefault(),
    )


async def on_startup() -> None:
    logger.info("bot starting...")

    await set_default_commands()

    bot_info = await bot.get_me()

    logger.info("Name     - {name}", name=bot_info.full_name)
    logger.info("Username - @{username}", username=bot_info.username)
    logger.info("ID       - {id}", id=bot_info.id)
    logger.info(
        "Draw     - {attempts} attempts, {minimum} participants minimum",
        attempts=settings.draw_max_attempts,
        minimum=settings.min_participants,
    )

    logger.info("bot started")


async def on_shutdown() -> None:
    logger.info("bot stopping...")

    await dp.storage.close()
    await bot.session.close()

    logger.info("bot stopped")


async def main() -> None:
    setup_logging(settings.log_level, settings.log_path)
    engine = init_engine(settings.database_url)
    init_schema(engine)

    dp.startup.register(on_startup)
    dp.shutdown.register(on_shutdown)

    await dp.start_polling(bot, allowed_updates=dp.resolve_used_update_types())


if __name__ == "__main__":
    if not getattr(asyncio, "debug", False):
        uvloop.install()

    asyncio.run(main())

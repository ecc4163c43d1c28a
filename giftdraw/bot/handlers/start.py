import html

from aiogram import Router, types
from aiogram.filters import Command, CommandObject, CommandStart

from giftdraw.bot.utils import log_handler_exception, notify
from giftdraw.db import get_session
from giftdraw.services import session_flow

router = Router()

HELP_TEXT = (
    "Hello! I organize gift exchange draws.\n\n"
    "Organizers:\n"
    "/new &lt;name&gt; - create a session and get its invite link\n"
    "/add, /remove, /exclude &lt;name&gt; - manage participants\n"
    "/restrict &lt;giver&gt;: &lt;name&gt;, &lt;name&gt; - who a giver must not draw\n"
    "/close - open or close registration\n"
    "/draw - run the draw, /reset - start over\n"
    "/progress, /results, /reveal &lt;giver&gt; - follow the draw\n\n"
    "Participants:\n"
    "/join &lt;session&gt; [name] - join a session\n"
    "/mine - reveal who you give a gift to\n"
    "/status - session status"
)


@router.message(CommandStart())
async def command_start_handler(message: types.Message, command: CommandObject) -> None:
    if not command.args:
        await message.answer(HELP_TEXT)
        return

    try:
        with get_session() as session:
            session_flow.ensure_user(
                session,
                message.from_user.id,
                message.from_user.username,
                message.from_user.first_name,
                message.from_user.last_name,
            )
            name = message.from_user.full_name
            try:
                participant = session_flow.join_session(
                    session, command.args, name, telegram_id=message.from_user.id
                )
            except session_flow.DuplicateName as exc:
                await message.answer(
                    f"{html.escape(str(exc))}\nJoin with another name: "
                    f"/join {html.escape(command.args)} &lt;name&gt;"
                )
                return
            draw_session = participant.draw_session
            joined_name = participant.name
            session_name = draw_session.name
            organizer_id = draw_session.organizer_telegram_id

        await message.answer(
            f"You joined <b>{html.escape(session_name)}</b> as {html.escape(joined_name)}. "
            "You'll be able to draw once the organizer starts the draw."
        )
        await notify(
            message.bot,
            organizer_id,
            f"{html.escape(joined_name)} joined {html.escape(session_name)}.",
        )
    except session_flow.SessionFlowError as exc:
        await message.answer(html.escape(str(exc)))
    except Exception as exc:
        log_handler_exception("start", message.from_user.id, message.chat.id, exc)
        await message.answer("Something went wrong. Please try again later.")


@router.message(Command("help"))
async def help_handler(message: types.Message) -> None:
    await message.answer(HELP_TEXT)

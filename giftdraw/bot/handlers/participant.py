from __future__ import annotations

import html
from typing import Optional

from aiogram import Router, types
from aiogram.filters import Command, CommandObject
from aiogram.fsm.context import FSMContext

from giftdraw.bot.keyboards import REVEAL_OWN, callback_session_id, for_action
from giftdraw.bot.utils import is_admin_authenticated, log_handler_exception, notify
from giftdraw.db import get_session, repo
from giftdraw.services import session_flow

router = Router()


def _ensure_user(session, from_user: types.User):
    return session_flow.ensure_user(
        session,
        from_user.id,
        from_user.username,
        from_user.first_name,
        from_user.last_name,
    )


@router.message(Command("join"))
async def join_handler(message: types.Message, command: CommandObject) -> None:
    parts = (command.args or "").split(maxsplit=1)
    if not parts:
        await message.answer("Usage: /join &lt;session&gt; [name]")
        return
    session_id = parts[0]
    name = parts[1] if len(parts) > 1 else message.from_user.full_name

    try:
        with get_session() as session:
            _ensure_user(session, message.from_user)
            participant = session_flow.join_session(
                session, session_id, name, telegram_id=message.from_user.id
            )
            joined_name = participant.name
            session_name = participant.draw_session.name
            organizer_id = participant.draw_session.organizer_telegram_id

        await message.answer(
            f"You joined <b>{html.escape(session_name)}</b> as {html.escape(joined_name)}."
        )
        await notify(
            message.bot,
            organizer_id,
            f"{html.escape(joined_name)} joined {html.escape(session_name)}.",
        )
    except session_flow.SessionFlowError as exc:
        await message.answer(html.escape(str(exc)))
    except Exception as exc:
        log_handler_exception("join", message.from_user.id, message.chat.id, exc)
        await message.answer("Something went wrong. Please try again later.")


@router.message(Command("use"))
async def use_handler(message: types.Message, command: CommandObject, state: FSMContext) -> None:
    if not command.args:
        await message.answer("Usage: /use &lt;session&gt;")
        return

    try:
        with get_session() as session:
            user = _ensure_user(session, message.from_user)
            draw_session = session_flow.use_session(
                session,
                user,
                command.args.strip(),
                admin_authenticated=await is_admin_authenticated(state),
            )
            session_name = draw_session.name
        await message.answer(f"Active session: <b>{html.escape(session_name)}</b>")
    except session_flow.SessionFlowError as exc:
        await message.answer(html.escape(str(exc)))
    except Exception as exc:
        log_handler_exception("use", message.from_user.id, message.chat.id, exc)
        await message.answer("Something went wrong. Please try again later.")


async def _reveal(bot, from_user: types.User, session_id: Optional[str] = None) -> str:
    with get_session() as session:
        user = _ensure_user(session, from_user)
        if session_id is None:
            draw_session = session_flow.active_session(session, user)
        else:
            draw_session = session_flow.get_session_or_raise(session, session_id)
        result = session_flow.reveal_own(session, draw_session, from_user.id)
        session_name = draw_session.name
        current = session_flow.progress(session, draw_session)

    if result.organizer_telegram_id is not None:
        await notify(
            bot,
            result.organizer_telegram_id,
            f"{html.escape(result.giver)} has drawn in {html.escape(session_name)} "
            f"({current.drawn}/{current.total}).",
        )
    if result.completed:
        await notify(
            bot,
            result.organizer_telegram_id,
            f"Everyone has drawn in {html.escape(session_name)}! 🎉",
        )

    return f"{html.escape(result.giver)} ⇩\n<b>{html.escape(result.receiver)}</b>"


@router.message(Command("mine"))
async def mine_handler(message: types.Message) -> None:
    try:
        text = await _reveal(message.bot, message.from_user)
        await message.answer(text)
    except session_flow.SessionFlowError as exc:
        await message.answer(html.escape(str(exc)))
    except Exception as exc:
        log_handler_exception("mine", message.from_user.id, message.chat.id, exc)
        await message.answer("Something went wrong. Please try again later.")


@router.callback_query(for_action(REVEAL_OWN))
async def reveal_callback_handler(query: types.CallbackQuery) -> None:
    try:
        text = await _reveal(
            query.message.bot,
            query.from_user,
            callback_session_id(query.data, REVEAL_OWN),
        )
        await query.answer()
        await query.message.answer(text)
    except session_flow.SessionFlowError as exc:
        await query.answer(str(exc), show_alert=True)
    except Exception as exc:
        log_handler_exception("reveal_own", query.from_user.id, query.message.chat.id, exc)
        await query.answer("Something went wrong. Please try again later.", show_alert=True)


@router.message(Command("status"))
async def status_handler(message: types.Message) -> None:
    try:
        with get_session() as session:
            user = _ensure_user(session, message.from_user)
            draw_session = session_flow.active_session(session, user)
            participants = session_flow.list_participants(session, draw_session)
            me = repo.get_participant_by_telegram_id(session, draw_session.id, message.from_user.id)

            lines = [
                f"<b>{html.escape(draw_session.name)}</b>: {session_flow.format_status(draw_session)}",
                "",
            ]
            if participants:
                lines.append("Participants:")
                lines.extend(
                    f"- {session_flow.format_participant_label(p)}" for p in participants
                )
            else:
                lines.append("No participants yet.")
            if me and me.is_excluded:
                lines.append("\nYou are excluded from this draw.")
            elif me and me.has_drawn:
                lines.append("\nYou have already drawn. Use /mine to see your match again.")

        await message.answer("\n".join(lines))
    except session_flow.SessionFlowError as exc:
        await message.answer(html.escape(str(exc)))
    except Exception as exc:
        log_handler_exception("status", message.from_user.id, message.chat.id, exc)
        await message.answer("Something went wrong. Please try again later.")

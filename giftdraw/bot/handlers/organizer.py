from __future__ import annotations

import html

from aiogram import Router, types
from aiogram.filters import Command, CommandObject
from aiogram.fsm.context import FSMContext
from loguru import logger

from giftdraw.bot.keyboards import (
    CANCEL,
    CONFIRM_DELETE,
    CONFIRM_DRAW,
    CONFIRM_RESET,
    CONFIRM_RESULTS,
    callback_session_id,
    confirm_keyboard,
    for_action,
    reveal_keyboard,
)
from giftdraw.bot.utils import (
    get_settings,
    is_admin_authenticated,
    log_handler_exception,
    split_names,
)
from giftdraw.db import get_session
from giftdraw.services import session_flow

router = Router()


def _load(session, from_user: types.User):
    user = session_flow.ensure_user(
        session,
        from_user.id,
        from_user.username,
        from_user.first_name,
        from_user.last_name,
    )
    return session_flow.active_session(session, user)


async def _reply_error(message: types.Message, action: str, exc: Exception) -> None:
    if isinstance(exc, session_flow.SessionFlowError):
        await message.answer(html.escape(str(exc)))
        return
    log_handler_exception(action, message.from_user.id, message.chat.id, exc)
    await message.answer("Something went wrong. Please try again later.")


@router.message(Command("new"))
async def new_session_handler(message: types.Message, command: CommandObject) -> None:
    if not command.args:
        await message.answer("Usage: /new &lt;session name&gt;")
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
            draw_session = session_flow.create_session(
                session,
                command.args,
                message.from_user.full_name,
                organizer_telegram_id=message.from_user.id,
            )
            session_id = draw_session.id
            session_name = draw_session.name
            admin_key = draw_session.admin_key

        me = await message.bot.get_me()
        link = session_flow.participant_link(me.username, session_id)
        await message.answer(
            f"Session <b>{html.escape(session_name)}</b> created!\n\n"
            f"Share this link with participants:\n{link}\n\n"
            f"Organizer key (keep it private): <code>{html.escape(admin_key)}</code>\n"
            f"Use <code>/claim {session_id} {html.escape(admin_key)}</code> to manage it from another account."
        )
    except Exception as exc:
        await _reply_error(message, "new", exc)


@router.message(Command("link"))
async def link_handler(message: types.Message) -> None:
    try:
        with get_session() as session:
            draw_session = _load(session, message.from_user)
            session_id = draw_session.id
        me = await message.bot.get_me()
        await message.answer(session_flow.participant_link(me.username, session_id))
    except Exception as exc:
        await _reply_error(message, "link", exc)


@router.message(Command("claim"))
async def claim_handler(message: types.Message, command: CommandObject) -> None:
    parts = (command.args or "").split()
    if len(parts) != 2:
        await message.answer("Usage: /claim &lt;session&gt; &lt;organizer key&gt;")
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
            draw_session = session_flow.claim_organizer(
                session, parts[0], parts[1], message.from_user.id
            )
            session_name = draw_session.name
        await message.answer(f"You now organize <b>{html.escape(session_name)}</b>.")
    except Exception as exc:
        await _reply_error(message, "claim", exc)


@router.message(Command("add"))
async def add_handler(message: types.Message, command: CommandObject) -> None:
    if not command.args:
        await message.answer("Usage: /add &lt;name&gt;")
        return
    try:
        with get_session() as session:
            draw_session = _load(session, message.from_user)
            participant = session_flow.add_participant_manually(
                session, draw_session, message.from_user.id, command.args
            )
            name = participant.name
        await message.answer(f"Added {html.escape(name)}.")
    except Exception as exc:
        await _reply_error(message, "add", exc)


@router.message(Command("remove"))
async def remove_handler(message: types.Message, command: CommandObject) -> None:
    if not command.args:
        await message.answer("Usage: /remove &lt;name&gt;")
        return
    try:
        with get_session() as session:
            draw_session = _load(session, message.from_user)
            session_flow.remove_participant(session, draw_session, message.from_user.id, command.args)
        await message.answer(f"Removed {html.escape(command.args.strip())}.")
    except Exception as exc:
        await _reply_error(message, "remove", exc)


@router.message(Command("exclude"))
async def exclude_handler(message: types.Message, command: CommandObject) -> None:
    if not command.args:
        await message.answer("Usage: /exclude &lt;name&gt;")
        return
    try:
        with get_session() as session:
            draw_session = _load(session, message.from_user)
            excluded = session_flow.toggle_exclusion(
                session, draw_session, message.from_user.id, command.args
            )
        verb = "excluded from" if excluded else "included in"
        await message.answer(f"{html.escape(command.args.strip())} is now {verb} the draw.")
    except Exception as exc:
        await _reply_error(message, "exclude", exc)


@router.message(Command("restrict"))
async def restrict_handler(message: types.Message, command: CommandObject) -> None:
    giver, separator, rest = (command.args or "").rpartition(":")
    if not separator or not giver.strip():
        await message.answer(
            "Usage: /restrict &lt;giver&gt;: &lt;name&gt;, &lt;name&gt;\n"
            "The last colon ends the giver's name. "
            "Leave the list empty to clear the giver's restrictions."
        )
        return
    try:
        with get_session() as session:
            draw_session = _load(session, message.from_user)
            receivers = session_flow.set_restrictions(
                session, draw_session, message.from_user.id, giver, split_names(rest)
            )
        if receivers:
            await message.answer(
                f"{html.escape(giver.strip())} can't draw: "
                + ", ".join(html.escape(name) for name in receivers)
            )
        else:
            await message.answer(f"{html.escape(giver.strip())} has no restrictions.")
    except Exception as exc:
        await _reply_error(message, "restrict", exc)


@router.message(Command("restrictions"))
async def restrictions_handler(message: types.Message) -> None:
    try:
        with get_session() as session:
            draw_session = _load(session, message.from_user)
            session_flow.require_organizer(draw_session, message.from_user.id)
            restrictions = session_flow.get_restrictions(session, draw_session)
        if not restrictions:
            await message.answer("No restrictions.")
            return
        lines = [
            f"{html.escape(giver)} ✗ " + ", ".join(html.escape(name) for name in receivers)
            for giver, receivers in restrictions.items()
        ]
        await message.answer("\n".join(lines))
    except Exception as exc:
        await _reply_error(message, "restrictions", exc)


@router.message(Command("close"))
async def registration_handler(message: types.Message) -> None:
    try:
        with get_session() as session:
            draw_session = _load(session, message.from_user)
            closed = session_flow.toggle_registration(session, draw_session, message.from_user.id)
        await message.answer("Registration closed." if closed else "Registration open.")
    except Exception as exc:
        await _reply_error(message, "close", exc)


@router.message(Command("progress"))
async def progress_handler(message: types.Message) -> None:
    try:
        with get_session() as session:
            draw_session = _load(session, message.from_user)
            session_flow.require_organizer(draw_session, message.from_user.id)
            current = session_flow.progress(session, draw_session)
            participants = session_flow.list_participants(session, draw_session)
            lines = [f"{current.drawn} of {current.total} have drawn ({current.percentage:.0f}%)."]
            lines.extend(f"- {session_flow.format_participant_label(p)}" for p in participants)
        await message.answer("\n".join(lines))
    except Exception as exc:
        await _reply_error(message, "progress", exc)


@router.message(Command("draw"))
async def draw_handler(message: types.Message) -> None:
    try:
        with get_session() as session:
            draw_session = _load(session, message.from_user)
            session_flow.require_organizer(draw_session, message.from_user.id)
            session_flow.require_setup(draw_session)
            session_id = draw_session.id
        await message.answer(
            "Start the draw now? Participants won't be able to join afterwards.",
            reply_markup=confirm_keyboard(CONFIRM_DRAW, session_id, "Yes, start the draw"),
        )
    except Exception as exc:
        await _reply_error(message, "draw", exc)


@router.callback_query(for_action(CONFIRM_DRAW))
async def confirm_draw_handler(query: types.CallbackQuery) -> None:
    settings = get_settings()
    session_id = callback_session_id(query.data, CONFIRM_DRAW)
    try:
        with get_session() as session:
            draw_session = session_flow.get_session_or_raise(session, session_id)
            result = session_flow.start_draw(
                session,
                draw_session,
                query.from_user.id,
                max_attempts=settings.draw_max_attempts,
                min_participants=settings.min_participants,
            )
            session_name = draw_session.name
            recipients = [p.telegram_id for p in result.participants if p.telegram_id is not None]

        await query.answer("The draw has started!", show_alert=True)
        await query.message.edit_reply_markup(reply_markup=None)
        for telegram_id in recipients:
            try:
                await query.message.bot.send_message(
                    telegram_id,
                    f"The draw for <b>{html.escape(session_name)}</b> has started!",
                    reply_markup=reveal_keyboard(session_id),
                )
            except Exception as exc:  # pragma: no cover - network dependent
                logger.bind(user_id=telegram_id).warning(
                    "Failed to send draw notification: {error}", error=str(exc)
                )
    except session_flow.SessionFlowError as exc:
        await query.answer(str(exc), show_alert=True)
    except Exception as exc:
        log_handler_exception("confirm_draw", query.from_user.id, query.message.chat.id, exc)
        await query.answer("Something went wrong. Please try again later.", show_alert=True)


@router.message(Command("reset"))
async def reset_handler(message: types.Message) -> None:
    try:
        with get_session() as session:
            draw_session = _load(session, message.from_user)
            session_flow.require_organizer(draw_session, message.from_user.id)
            session_id = draw_session.id
        await message.answer(
            "Reset the session? Every assignment will be deleted.",
            reply_markup=confirm_keyboard(CONFIRM_RESET, session_id, "Yes, reset"),
        )
    except Exception as exc:
        await _reply_error(message, "reset", exc)


@router.callback_query(for_action(CONFIRM_RESET))
async def confirm_reset_handler(query: types.CallbackQuery) -> None:
    try:
        with get_session() as session:
            draw_session = session_flow.get_session_or_raise(
                session, callback_session_id(query.data, CONFIRM_RESET)
            )
            session_flow.reset_session(session, draw_session, query.from_user.id)
        await query.answer("Session reset.", show_alert=True)
        await query.message.edit_reply_markup(reply_markup=None)
    except session_flow.SessionFlowError as exc:
        await query.answer(str(exc), show_alert=True)
    except Exception as exc:
        log_handler_exception("confirm_reset", query.from_user.id, query.message.chat.id, exc)
        await query.answer("Something went wrong. Please try again later.", show_alert=True)


@router.message(Command("results"))
async def results_handler(message: types.Message, state: FSMContext) -> None:
    try:
        with get_session() as session:
            draw_session = _load(session, message.from_user)
            if not await is_admin_authenticated(state):
                session_flow.require_organizer(draw_session, message.from_user.id)
            session_id = draw_session.id
        await message.answer(
            "Show every assignment? Make sure nobody else is looking.",
            reply_markup=confirm_keyboard(CONFIRM_RESULTS, session_id, "Yes, show all"),
        )
    except Exception as exc:
        await _reply_error(message, "results", exc)


@router.callback_query(for_action(CONFIRM_RESULTS))
async def confirm_results_handler(query: types.CallbackQuery, state: FSMContext) -> None:
    try:
        with get_session() as session:
            draw_session = session_flow.get_session_or_raise(
                session, callback_session_id(query.data, CONFIRM_RESULTS)
            )
            assignments = session_flow.all_assignments(
                session,
                draw_session,
                query.from_user.id,
                admin_authenticated=await is_admin_authenticated(state),
            )
        await query.answer()
        await query.message.edit_reply_markup(reply_markup=None)
        if not assignments:
            await query.message.answer("No assignments yet.")
            return
        lines = [
            f"{html.escape(giver)} → {html.escape(receiver)}"
            for giver, receiver in assignments.items()
        ]
        await query.message.answer("\n".join(lines))
    except session_flow.SessionFlowError as exc:
        await query.answer(str(exc), show_alert=True)
    except Exception as exc:
        log_handler_exception("confirm_results", query.from_user.id, query.message.chat.id, exc)
        await query.answer("Something went wrong. Please try again later.", show_alert=True)


@router.message(Command("reveal"))
async def reveal_handler(message: types.Message, command: CommandObject, state: FSMContext) -> None:
    if not command.args:
        await message.answer("Usage: /reveal &lt;giver&gt;")
        return
    try:
        with get_session() as session:
            draw_session = _load(session, message.from_user)
            receiver = session_flow.reveal_assignment(
                session,
                draw_session,
                command.args,
                message.from_user.id,
                admin_authenticated=await is_admin_authenticated(state),
            )
        await message.answer(
            f"{html.escape(command.args.strip())} → <tg-spoiler>{html.escape(receiver)}</tg-spoiler>"
        )
    except Exception as exc:
        await _reply_error(message, "reveal", exc)


@router.message(Command("delete"))
async def delete_handler(message: types.Message, state: FSMContext) -> None:
    try:
        with get_session() as session:
            draw_session = _load(session, message.from_user)
            if not await is_admin_authenticated(state):
                session_flow.require_organizer(draw_session, message.from_user.id)
            session_name = draw_session.name
            session_id = draw_session.id
        await message.answer(
            f"Delete <b>{html.escape(session_name)}</b> and all of its data? This cannot be undone.",
            reply_markup=confirm_keyboard(CONFIRM_DELETE, session_id, "Yes, delete it"),
        )
    except Exception as exc:
        await _reply_error(message, "delete", exc)


@router.callback_query(for_action(CONFIRM_DELETE))
async def confirm_delete_handler(query: types.CallbackQuery, state: FSMContext) -> None:
    try:
        with get_session() as session:
            draw_session = session_flow.get_session_or_raise(
                session, callback_session_id(query.data, CONFIRM_DELETE)
            )
            session_flow.delete_session(
                session,
                draw_session,
                query.from_user.id,
                admin_authenticated=await is_admin_authenticated(state),
            )
        await query.answer("Session deleted.", show_alert=True)
        await query.message.edit_reply_markup(reply_markup=None)
    except session_flow.SessionFlowError as exc:
        await query.answer(str(exc), show_alert=True)
    except Exception as exc:
        log_handler_exception("confirm_delete", query.from_user.id, query.message.chat.id, exc)
        await query.answer("Something went wrong. Please try again later.", show_alert=True)


@router.callback_query(lambda c: c.data == CANCEL)
async def cancel_handler(query: types.CallbackQuery) -> None:
    await query.answer("Cancelled.")
    await query.message.edit_reply_markup(reply_markup=None)


@router.message(Command("sessions"))
async def sessions_handler(message: types.Message, state: FSMContext) -> None:
    try:
        admin = await is_admin_authenticated(state)
        with get_session() as session:
            sessions = session_flow.list_sessions(
                session, telegram_id=None if admin else message.from_user.id
            )
            lines = [
                f"<code>{s.id}</code> {html.escape(s.name)}: {session_flow.format_status(s)}"
                for s in sessions
            ]
        if not lines:
            await message.answer("No sessions yet. Create one with /new &lt;name&gt;.")
            return
        await message.answer("\n".join(lines) + "\n\nSwitch with /use &lt;session&gt;.")
    except Exception as exc:
        await _reply_error(message, "sessions", exc)

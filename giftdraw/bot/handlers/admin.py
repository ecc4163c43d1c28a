from __future__ import annotations

import html

from aiogram import F, Router, types
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import State, StatesGroup
from loguru import logger

from giftdraw.bot.utils import ADMIN_FLAG, get_settings, is_admin_authenticated, log_handler_exception
from giftdraw.db import get_session
from giftdraw.services import security, session_flow

router = Router()


class AdminLogin(StatesGroup):
    new_password = State()
    confirm_password = State()
    password = State()


async def _forget_secret(message: types.Message) -> None:
    try:
        await message.delete()
    except Exception as exc:  # pragma: no cover - network dependent
        logger.bind(chat_id=message.chat.id).debug("Could not delete password message: {error}", error=str(exc))


async def _show_dashboard(message: types.Message) -> None:
    with get_session() as session:
        sessions = session_flow.list_sessions(session)
        lines = []
        for draw_session in sessions:
            current = session_flow.progress(session, draw_session)
            lines.append(
                f"<code>{draw_session.id}</code> {html.escape(draw_session.name)} "
                f"by {html.escape(draw_session.created_by)}: "
                f"{session_flow.format_status(draw_session)}, {current.drawn}/{current.total} drawn"
            )
    if not lines:
        await message.answer("Admin dashboard: no sessions yet.")
        return
    await message.answer(
        "Admin dashboard:\n" + "\n".join(lines) + "\n\nOpen one with /use &lt;session&gt;."
    )


@router.message(Command("admin"), F.chat.type == "private")
async def admin_handler(message: types.Message, state: FSMContext) -> None:
    if await is_admin_authenticated(state):
        await _show_dashboard(message)
        return

    try:
        with get_session() as session:
            configured = security.is_admin_configured(session)
        if configured:
            await state.set_state(AdminLogin.password)
            await message.answer("Enter the admin password:")
        else:
            await state.set_state(AdminLogin.new_password)
            await message.answer("No admin password yet. Choose one:")
    except Exception as exc:
        log_handler_exception("admin", message.from_user.id, message.chat.id, exc)
        await message.answer("Something went wrong. Please try again later.")


@router.message(AdminLogin.new_password, F.text, ~F.text.startswith("/"))
async def new_password_handler(message: types.Message, state: FSMContext) -> None:
    await _forget_secret(message)
    min_length = get_settings().admin_password_min_length
    if len(message.text) < min_length:
        await message.answer(f"The password must be at least {min_length} characters long. Try again:")
        return
    await state.update_data(pending_password=message.text)
    await state.set_state(AdminLogin.confirm_password)
    await message.answer("Repeat the password:")


@router.message(AdminLogin.confirm_password, F.text, ~F.text.startswith("/"))
async def confirm_password_handler(message: types.Message, state: FSMContext) -> None:
    await _forget_secret(message)
    data = await state.get_data()
    try:
        with get_session() as session:
            security.setup_admin_password(
                session,
                data.get("pending_password", ""),
                message.text,
                min_length=get_settings().admin_password_min_length,
            )
    except security.AdminAuthError as exc:
        await state.set_state(AdminLogin.new_password)
        await state.update_data(pending_password=None)
        await message.answer(f"{html.escape(str(exc))} Choose a password again:")
        return
    except Exception as exc:
        await state.clear()
        log_handler_exception("admin_setup", message.from_user.id, message.chat.id, exc)
        await message.answer("Something went wrong. Please try again later.")
        return

    await state.set_state(None)
    await state.set_data({ADMIN_FLAG: True})
    await message.answer("Admin password saved. You are logged in.")
    await _show_dashboard(message)


@router.message(AdminLogin.password, F.text, ~F.text.startswith("/"))
async def password_handler(message: types.Message, state: FSMContext) -> None:
    await _forget_secret(message)
    try:
        with get_session() as session:
            valid = security.verify_admin_password(session, message.text)
    except Exception as exc:
        await state.clear()
        log_handler_exception("admin_login", message.from_user.id, message.chat.id, exc)
        await message.answer("Something went wrong. Please try again later.")
        return

    if not valid:
        await state.clear()
        await message.answer("Wrong password.")
        return

    await state.set_state(None)
    await state.set_data({ADMIN_FLAG: True})
    logger.bind(user_id=message.from_user.id).info("Admin logged in")
    await _show_dashboard(message)


@router.message(Command("logout"))
async def logout_handler(message: types.Message, state: FSMContext) -> None:
    await state.clear()
    await message.answer("Logged out.")

from typing import Optional

from aiogram.utils.keyboard import InlineKeyboardBuilder

REVEAL_OWN = "reveal_own"
CONFIRM_DRAW = "confirm_draw"
CONFIRM_RESET = "confirm_reset"
CONFIRM_RESULTS = "confirm_results"
CONFIRM_DELETE = "confirm_delete"
CANCEL = "cancel"

SEPARATOR = ":"


def session_callback(action: str, session_id: str) -> str:
    return f"{action}{SEPARATOR}{session_id}"


def callback_session_id(data: Optional[str], action: str) -> Optional[str]:
    """Return the session id packed into ``data`` for ``action``, or None."""
    prefix = action + SEPARATOR
    if not data or not data.startswith(prefix):
        return None
    return data[len(prefix):] or None


def for_action(action: str):
    return lambda c: callback_session_id(c.data, action) is not None


def reveal_keyboard(session_id: str):
    keyboard = InlineKeyboardBuilder()
    keyboard.button(text="Reveal my match 🎁", callback_data=session_callback(REVEAL_OWN, session_id))
    return keyboard.as_markup()


def confirm_keyboard(action: str, session_id: str, label: str):
    keyboard = InlineKeyboardBuilder()
    keyboard.button(text=label, callback_data=session_callback(action, session_id))
    keyboard.button(text="Cancel", callback_data=CANCEL)
    keyboard.adjust(1)
    return keyboard.as_markup()

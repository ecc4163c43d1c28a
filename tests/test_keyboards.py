import os

os.environ.setdefault("BOT_TOKEN", "123456:test-token")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from giftdraw.bot.keyboards import (  # noqa: E402
    CANCEL,
    CONFIRM_DELETE,
    CONFIRM_DRAW,
    REVEAL_OWN,
    callback_session_id,
    confirm_keyboard,
    for_action,
    reveal_keyboard,
)


class FakeQuery:
    def __init__(self, data):
        self.data = data


def buttons(markup):
    return [button for row in markup.inline_keyboard for button in row]


def test_confirm_button_carries_session_id():
    first, cancel = buttons(confirm_keyboard(CONFIRM_DELETE, "session_abc", "Yes, delete it"))

    assert callback_session_id(first.callback_data, CONFIRM_DELETE) == "session_abc"
    assert cancel.callback_data == CANCEL


def test_reveal_button_carries_session_id():
    (button,) = buttons(reveal_keyboard("session_abc"))
    assert callback_session_id(button.callback_data, REVEAL_OWN) == "session_abc"


def test_callback_does_not_match_other_actions():
    data = buttons(confirm_keyboard(CONFIRM_DRAW, "session_abc", "Yes"))[0].callback_data

    assert callback_session_id(data, CONFIRM_DELETE) is None
    assert for_action(CONFIRM_DRAW)(FakeQuery(data))
    assert not for_action(CONFIRM_DELETE)(FakeQuery(data))


def test_bare_action_without_session_is_rejected():
    assert callback_session_id(CONFIRM_DELETE, CONFIRM_DELETE) is None
    assert callback_session_id(CONFIRM_DELETE + ":", CONFIRM_DELETE) is None
    assert callback_session_id(None, CONFIRM_DELETE) is None

from __future__ import annotations

from unittest.mock import patch

import pytest

import main
from lessonbot.config import Settings
from lessonbot.domain import ConfigError


def _settings(*, admin_chat_id: str | None = None, liveness_port: int | None = None) -> Settings:
    return Settings(
        identity="u",
        secret="p",
        account_id="ACC1",
        telegram_bot_token="TEST_TOKEN",
        telegram_chat_ids=("1", "2"),
        telegram_admin_chat_id=admin_chat_id,
        liveness_port=liveness_port,
    )


def _args(once: bool):
    return patch("main.argparse.ArgumentParser.parse_args", return_value=type("Args", (), {"once": once})())


def test_main_sends_start_and_shutdown_messages_in_once_mode() -> None:
    settings = _settings()

    with (
        patch("main.load_settings", return_value=settings),
        patch("main.get_bot_username", return_value="lesson_bot"),
        patch("main.run_cycle") as run_cycle,
        patch("main._send_status_message") as send_status,
        patch("main.start_liveness_server") as liveness,
        _args(once=True),
    ):
        assert main.main() == 0
        run_cycle.assert_called_once_with(settings)
        liveness.assert_not_called()

        # startup + shutdown
        assert send_status.call_count == 2
        assert "LessonBot started" in send_status.call_args_list[0].kwargs["text"]
        assert "LessonBot stopped" in send_status.call_args_list[1].kwargs["text"]


def test_main_starts_liveness_listener_when_port_configured() -> None:
    settings = _settings(liveness_port=8080)

    with (
        patch("main.load_settings", return_value=settings),
        patch("main.get_bot_username", return_value="lesson_bot"),
        patch("main.run_cycle"),
        patch("main._send_status_message"),
        patch("main.start_liveness_server") as liveness,
        _args(once=True),
    ):
        assert main.main() == 0
        liveness.assert_called_once_with(8080)


def test_main_runs_forever_with_stop_event() -> None:
    settings = _settings()

    with (
        patch("main.load_settings", return_value=settings),
        patch("main.get_bot_username", return_value="lesson_bot"),
        patch("main.run_forever") as run_forever,
        patch("main._install_stop_handlers") as install,
        patch("main._send_status_message"),
        _args(once=False),
    ):
        assert main.main() == 0

    stop_event = run_forever.call_args.kwargs["stop_event"]
    install.assert_called_once_with(stop_event)


def test_main_sends_crash_notice_to_admin_and_shutdown_message_on_error() -> None:
    settings = _settings(admin_chat_id="999")

    with (
        patch("main.load_settings", return_value=settings),
        patch("main.get_bot_username", return_value="lesson_bot"),
        patch("main.run_forever", side_effect=RuntimeError("boom")),
        patch("main._install_stop_handlers"),
        patch("main._send_status_message") as send_status,
        patch("main._send_admin_message") as send_admin,
        _args(once=False),
    ):
        with pytest.raises(RuntimeError):
            main.main()

        # startup + shutdown to recipients, crash to admin
        assert send_status.call_count == 2
        assert send_admin.call_count == 1
        assert "exited with an error" in send_admin.call_args.kwargs["text"]


def test_main_exits_on_config_error_before_any_message() -> None:
    with (
        patch("main.load_settings", side_effect=ConfigError("Missing required environment variable: NRIC")),
        patch("main._send_status_message") as send_status,
        _args(once=True),
    ):
        assert main.main() == 1
        send_status.assert_not_called()


def test_main_exits_when_bot_token_is_rejected() -> None:
    with (
        patch("main.load_settings", return_value=_settings()),
        patch("main.get_bot_username", side_effect=RuntimeError("401 Unauthorized")),
        patch("main.run_cycle") as run_cycle,
        patch("main._send_status_message") as send_status,
        _args(once=True),
    ):
        assert main.main() == 1
        run_cycle.assert_not_called()
        send_status.assert_not_called()

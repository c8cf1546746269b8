import argparse
import logging
import signal
import threading

from lessonbot.config import load_settings
from lessonbot.domain import ConfigError
from lessonbot.liveness import start_liveness_server
from lessonbot.telegram_notifier import get_bot_username
from lessonbot.worker import _send_admin_message, _send_status_message, run_cycle, run_forever

logger = logging.getLogger(__name__)


def _setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )


def _install_stop_handlers(stop_event: threading.Event) -> None:
    def _handle(signum, _frame) -> None:
        logger.info("Received signal %s, stopping after the current cycle", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _handle)
    signal.signal(signal.SIGTERM, _handle)


def main() -> int:
    parser = argparse.ArgumentParser(description="LessonBot: driving lesson slot watcher and booker")
    parser.add_argument("--once", action="store_true", help="Run single cycle and exit")
    args = parser.parse_args()

    _setup_logging()
    try:
        settings = load_settings()
    except ConfigError as e:
        logger.error("Invalid configuration: %s", e)
        return 1

    try:
        username = get_bot_username(bot_token=settings.telegram_bot_token)
    except Exception as e:
        logger.error("Failed to start telegram bot (%s: %s)", type(e).__name__, e)
        return 1
    logger.info("Authorized on account %s", username)

    if settings.liveness_port is not None:
        start_liveness_server(settings.liveness_port)

    # Startup notice (best-effort)
    try:
        _send_status_message(
            settings,
            text=(
                "LessonBot started.\n"
                f"Mode: {'once' if args.once else 'forever'}\n"
                f"lookahead={settings.lookahead_days}d "
                f"delay={settings.retry_min_seconds}..{settings.retry_max_seconds}s"
            ),
        )
    except Exception:
        logger.warning("Failed to send Telegram startup message", exc_info=True)

    try:
        if args.once:
            run_cycle(settings)
            return 0

        stop_event = threading.Event()
        _install_stop_handlers(stop_event)
        run_forever(settings, stop_event=stop_event)
        return 0

    except Exception as e:
        # Crash notice goes to the admin chat only (best-effort)
        try:
            _send_admin_message(
                settings,
                text=(
                    "LessonBot exited with an error.\n"
                    f"Reason: {type(e).__name__}: {e}"
                ),
            )
        except Exception:
            logger.warning("Failed to send Telegram crash message", exc_info=True)
        raise

    finally:
        # Shutdown notice (best-effort)
        try:
            _send_status_message(settings, text="LessonBot stopped (process exit).")
        except Exception:
            logger.warning("Failed to send Telegram shutdown message", exc_info=True)


if __name__ == "__main__":
    raise SystemExit(main())

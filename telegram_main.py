import logging
import os

from dotenv import load_dotenv

from infrastructure.container import build_services
from interfaces.telegram.handlers import create_telegram_bot


load_dotenv()

TELEGRAM_TOKEN = os.environ.get("TELEGRAM_TOKEN")
DB_PATH = os.environ.get("DB_PATH", "chess.db")
WEB_URL = os.environ.get("WEB_URL", "http://localhost:5000")
COMPUTER_MOVE_DELAY = float(os.environ.get("COMPUTER_MOVE_DELAY", "1.0"))
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


def main() -> None:
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not TELEGRAM_TOKEN:
        raise RuntimeError("TELEGRAM_TOKEN environment variable is not set.")

    services = build_services(DB_PATH, computer_delay=COMPUTER_MOVE_DELAY)
    bot = create_telegram_bot(TELEGRAM_TOKEN, services, WEB_URL)

    logging.getLogger(__name__).info("Telegram bot polling (db=%s)", DB_PATH)
    try:
        bot.infinity_polling()
    finally:
        services.scheduler.cancel_all()


if __name__ == "__main__":
    main()

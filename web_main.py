import logging
import os

from dotenv import load_dotenv

from infrastructure.container import build_services
from interfaces.web.api import create_web_app


load_dotenv()

DB_PATH = os.environ.get("DB_PATH", "chess.db")
HTTP_HOST = os.environ.get("HTTP_HOST", "0.0.0.0")
HTTP_PORT = int(os.environ.get("HTTP_PORT", "5000"))
COMPUTER_MOVE_DELAY = float(os.environ.get("COMPUTER_MOVE_DELAY", "1.0"))
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


def main() -> None:
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    services = build_services(DB_PATH, computer_delay=COMPUTER_MOVE_DELAY)
    services.sessions.recover()
    app = create_web_app(services)

    logging.getLogger(__name__).info("Serving HTTP on %s:%s (db=%s)", HTTP_HOST, HTTP_PORT, DB_PATH)
    try:
        app.run(host=HTTP_HOST, port=HTTP_PORT)
    finally:
        services.scheduler.cancel_all()


if __name__ == "__main__":
    main()

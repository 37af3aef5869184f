"""Run the expired-session token sweeper as a standalone process."""

import logging
import time

from taskmanager.config import settings
from taskmanager.services.token_sweeper import token_sweeper


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    settings.validate_security_settings()
    token_sweeper.start()
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        token_sweeper.stop()


if __name__ == "__main__":
    main()

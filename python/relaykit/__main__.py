"""
RelayKit server entry point.

Run with: python -m relaykit  (or the ``relaykit`` console script)

Reads configuration from the environment / .env file; see relaykit.config.
"""

import asyncio
import logging

from relaykit.config import Settings
from relaykit.server import RelayServer

logger = logging.getLogger("relaykit")


def main() -> None:
    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    server = RelayServer(settings)
    try:
        asyncio.run(server.serve())
    except KeyboardInterrupt:
        logger.info("Server stopped manually via KeyboardInterrupt.")


if __name__ == "__main__":
    main()

"""Create the database tables and seed the default plan catalog."""

import logging

from app.core.database import init_db

logger = logging.getLogger(__name__)


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    init_db()
    logger.info("Database initialized")


if __name__ == "__main__":
    main()

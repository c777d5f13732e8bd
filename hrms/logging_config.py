"""Process-wide logging setup."""

import logging

from hrms.config import settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure the root logger once; later calls only adjust the level."""
    resolved = getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO)
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=resolved, format=LOG_FORMAT)
    root.setLevel(resolved)
    # SQL echo is controlled by the engine, keep the sqlalchemy logger quieter
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.ENVIRONMENT == "development" else logging.WARNING,
    )

import logging

from storefront import config

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = config.LOG_LEVEL) -> None:
    """Root handler for the API and the maintenance scripts."""
    logging.basicConfig(level=level, format=LOG_FORMAT)

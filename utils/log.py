import logging


def configure_logging(level="INFO"):
    """Configure root logger once."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def get_logger(name=None):
    return logging.getLogger(name)

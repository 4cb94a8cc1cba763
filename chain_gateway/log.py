"""Process-wide logging setup."""

import logging

DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


def setup_logging(level: str = "INFO", fmt: str = None) -> None:
    """Configure the root logger once at startup."""
    logging.basicConfig(level=level.upper(), format=fmt or DEFAULT_FORMAT, datefmt=DATE_FORMAT)
    # grpc and the http stack are noisy at INFO
    logging.getLogger("grpc").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

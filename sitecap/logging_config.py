"""Logging setup shared by the CLI and the HTTP server."""

import logging

DEBUG_LOGGER = "sitecap.debug"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(debug: bool = False, level: int = logging.INFO) -> None:
    """Configure root logging and the request-tracing logger.

    Records from ``sitecap.debug`` propagate to the root handlers, so
    raising that logger to DEBUG is enough to get interception and
    response tracing without making the rest of the process verbose.

    Args:
        debug: Enable interception/response tracing on ``sitecap.debug``
        level: Level for everything else
    """
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger(DEBUG_LOGGER).setLevel(logging.DEBUG if debug else logging.WARNING)

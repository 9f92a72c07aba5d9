"""
Logging setup shared by the API process and the runner script
"""
import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Install a single stdout handler on the root logger.

    Safe to call more than once: an existing handler installed here is
    replaced instead of duplicated.
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_agrotrade", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._agrotrade = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # uvicorn's access log duplicates what the ledger already reports
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

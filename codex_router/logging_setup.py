import logging
import sys


def setup_logging(level="WARNING"):
    """Console logging on stderr so stdout stays free for command output."""
    lvl = getattr(logging, str(level).upper(), logging.WARNING)
    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    logging.basicConfig(level=lvl, format=fmt, handlers=[logging.StreamHandler(sys.stderr)], force=True)

from __future__ import annotations

import logging
import sys

from . import __version__

_the_handler = None


class StderrHandler(logging.StreamHandler):
    """Log to stderr; stdout carries the payload for the agent."""

    def __init__(self, stream=None):
        super().__init__(stream if stream is not None else sys.stderr)
        self.setFormatter(
            logging.Formatter("[%(levelname)s] [%(name)s] %(message)s")
        )

    @classmethod
    def setup(cls, name, verbose=False, stream=None):
        global _the_handler

        log = logging.getLogger(name)
        log.setLevel(logging.DEBUG if verbose else logging.INFO)

        if _the_handler is None:
            _the_handler = cls(stream)
            log.addHandler(_the_handler)
            log.debug("mysql_sampler version: %s", __version__)
            log.debug("Python version: %s", sys.version)
        elif _the_handler not in log.handlers:
            log.addHandler(_the_handler)

        return log

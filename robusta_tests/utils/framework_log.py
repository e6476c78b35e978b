"""Log of provisioning failures, kept per pytest worker next to its temporary files."""

import functools
import logging
import pathlib as pl
import time

from robusta_tests.utils import temptools


@functools.cache
def get_framework_log_path() -> pl.Path:
    return temptools.get_worker_tmp() / "framework.log"


@functools.cache
def framework_logger() -> logging.Logger:
    """Return logger writing to `framework.log`.

    Participants record here failures that need to be inspected after the test run,
    e.g. an instance that never reached the running state. Timestamps are in UTC.
    """

    class UTCFormatter(logging.Formatter):
        converter = time.gmtime  # type: ignore[assignment]

    handler = logging.FileHandler(get_framework_log_path())
    handler.setFormatter(UTCFormatter("%(asctime)s %(levelname)s %(message)s"))

    logger = logging.getLogger("robusta_tests.framework")
    logger.setLevel(logging.INFO)
    logger.addHandler(handler)

    return logger

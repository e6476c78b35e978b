"""Locking of files shared by all pytest workers (like the provisioning log)."""

import contextlib
import logging
import typing as tp

from robusta_tests.utils import configuration

# Participants are provisioned from a single process unless pytest-xdist runs several
# workers, and only then do appends to shared files need an inter-process lock.
if configuration.IS_XDIST:
    from filelock import FileLock

    logging.getLogger("filelock").setLevel(logging.WARNING)

    FileLockIfXdist: tp.Any = FileLock
else:
    FileLockIfXdist = contextlib.nullcontext

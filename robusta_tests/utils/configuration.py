"""Test framework and provisioning configuration."""

import os
import pathlib as pl
import tempfile

IS_XDIST = bool(os.environ.get("PYTEST_XDIST_TESTRUNUID"))

# Local directory where configuration files are staged before they are injected into instances
STAGING_ROOT = pl.Path(os.environ.get("STAGING_ROOT") or tempfile.gettempdir()).expanduser()

NODE_IMAGE_REPO = os.environ.get("NODE_IMAGE_REPO") or "ghcr.io/celestiaorg/celestia-app"
TXSIM_IMAGE_REPO = os.environ.get("TXSIM_IMAGE_REPO") or "ghcr.io/celestiaorg/txsim"

# Forward RPC and gRPC ports of started nodes to local proxy ports
PORT_FORWARDING = bool(os.environ.get("PORT_FORWARDING"))

# Deadline (in seconds) for starting a participant. No deadline if set to 0.
START_TIMEOUT = float(os.environ.get("START_TIMEOUT") or 0)
if START_TIMEOUT < 0:
    msg = f"Invalid START_TIMEOUT: {START_TIMEOUT}"
    raise RuntimeError(msg)

# Resolve PROVISIONING_LOG
PROVISIONING_LOG: str | pl.Path = os.environ.get("PROVISIONING_LOG") or ""
if PROVISIONING_LOG:
    PROVISIONING_LOG = pl.Path(PROVISIONING_LOG).expanduser().resolve()

"""Client for the consensus node RPC (JSON-RPC over HTTP GET)."""

import logging
import typing as tp

import requests

from robusta_tests.utils import constants

LOGGER = logging.getLogger(__name__)


class RPCError(Exception):
    pass


class HTTPClient:
    """Consensus RPC client.

    Usage:
        client = HTTPClient("http://127.0.0.1:26657", constants.WEBSOCKET_PATH)
        height = client.latest_height()
    """

    def __init__(
        self, remote: str, ws_endpoint: str = constants.WEBSOCKET_PATH, *, timeout: float = 10
    ) -> None:
        if not remote.startswith(("http://", "https://")):
            remote = f"http://{remote}"
        self.remote = remote.rstrip("/")
        self.ws_endpoint = ws_endpoint
        self.timeout = timeout
        self.session = requests.Session()

    @property
    def ws_url(self) -> str:
        """Return URL of the WebSocket endpoint used for event subscriptions."""
        return f"{self.remote.replace('http', 'ws', 1)}{self.ws_endpoint}"

    def call(self, method: str, **params: tp.Any) -> tp.Any:
        """Call RPC `method` and return the `result` part of the response."""
        url = f"{self.remote}/{method}"
        LOGGER.debug(f"RPC call: {url} {params}")

        resp = self.session.get(url, params=params or None, timeout=self.timeout)
        resp.raise_for_status()
        content = resp.json()

        if content.get("error"):
            msg = f"RPC `{method}` failed: {content['error']}"
            raise RPCError(msg)

        return content.get("result")

    def status(self) -> dict[str, tp.Any]:
        return self.call("status")

    def latest_height(self) -> int:
        return int(self.status()["sync_info"]["latest_block_height"])

    def close(self) -> None:
        self.session.close()

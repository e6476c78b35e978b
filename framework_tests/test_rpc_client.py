import typing as tp

import pytest
import requests

from robusta_tests.consensus import rpc_client


class FakeResponse:
    def __init__(self, content: dict[str, tp.Any], status_code: int = 200) -> None:
        self.content = content
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            msg = f"{self.status_code} Error"
            raise requests.HTTPError(msg)

    def json(self) -> dict[str, tp.Any]:
        return self.content


@pytest.fixture
def client() -> tp.Iterator[rpc_client.HTTPClient]:
    rpc = rpc_client.HTTPClient("10.0.0.2:26657")
    yield rpc
    rpc.close()


def test_urls(client: rpc_client.HTTPClient):
    assert client.remote == "http://10.0.0.2:26657"
    assert client.ws_url == "ws://10.0.0.2:26657/websocket"


def test_latest_height(client: rpc_client.HTTPClient, monkeypatch: pytest.MonkeyPatch):
    requested = []

    def _get(url: str, **kwargs: tp.Any) -> FakeResponse:
        requested.append(url)
        return FakeResponse(
            {"jsonrpc": "2.0", "id": -1, "result": {"sync_info": {"latest_block_height": "17"}}}
        )

    monkeypatch.setattr(client.session, "get", _get)
    assert client.latest_height() == 17
    assert requested == ["http://10.0.0.2:26657/status"]


def test_rpc_error(client: rpc_client.HTTPClient, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(
        client.session,
        "get",
        lambda url, **kwargs: FakeResponse({"error": {"code": -32601, "message": "not found"}}),
    )
    with pytest.raises(rpc_client.RPCError, match="not found"):
        client.call("foo")


def test_http_error(client: rpc_client.HTTPClient, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(
        client.session, "get", lambda url, **kwargs: FakeResponse({}, status_code=500)
    )
    with pytest.raises(requests.HTTPError):
        client.status()

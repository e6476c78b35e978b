import hashlib
import itertools
import pathlib as pl
import threading
import typing as tp

import pytest

from robusta_tests.consensus import files
from robusta_tests.consensus import keys
from robusta_tests.participants import instance_api
from robusta_tests.participants import node
from robusta_tests.participants import template_cache
from robusta_tests.utils import temptools


class FakeInstance(instance_api.ClusterInstance):
    """In-memory instance that records every call of the cluster-instance API."""

    def __init__(self, name: str, *, provider: "FakeProvider") -> None:
        super().__init__(name)
        self.provider = provider
        self.calls: list[tuple[tp.Any, ...]] = []
        self.files: dict[str, tuple[bytes, str]] = {}
        self.committed = False
        self.running = False
        self.ip = provider.next_ip()

    def _record(self, operation: str, *args: tp.Any) -> None:
        if operation in self.provider.fail_on:
            msg = f"simulated `{operation}` failure"
            raise RuntimeError(msg)
        self.calls.append((operation, *args))
        self.provider.record(self.name, operation, *args)

    def set_image(self, image: str) -> None:
        self._record("set_image", image)

    def add_port_tcp(self, port: int) -> None:
        self._record("add_port_tcp", port)

    def set_memory(self, request: str, limit: str) -> None:
        self._record("set_memory", request, limit)

    def set_cpu(self, request: str) -> None:
        self._record("set_cpu", request)

    def add_volume_with_owner(self, path: str, size: str, owner: int) -> None:
        self._record("add_volume_with_owner", path, size, owner)

    def set_command(self, *command: str) -> None:
        self._record("set_command", *command)

    def set_args(self, *args: str) -> None:
        self._record("set_args", *args)

    def set_user(self, user: str) -> None:
        self._record("set_user", user)

    def execute_command(self, *command: str) -> str:
        self._record("execute_command", *command)
        return ""

    def commit(self) -> None:
        self._record("commit")
        self.committed = True

    def clone_with_name(self, name: str) -> "FakeInstance":
        self._record("clone_with_name", name)
        clone = FakeInstance(name, provider=self.provider)
        clone.committed = self.committed
        return clone

    def start(self) -> None:
        self._record("start")

    def wait_instance_is_running(self) -> None:
        self._record("wait_instance_is_running")
        self.running = True

    def get_ip(self) -> str:
        if "get_ip" in self.provider.fail_on:
            msg = "simulated `get_ip` failure"
            raise RuntimeError(msg)
        return self.ip

    def add_file(self, src: tp.Any, dest: str, chown: str) -> None:
        self._record("add_file", dest, chown)
        self.files[dest] = (pl.Path(src).read_bytes(), chown)

    def port_forward_tcp(self, port: int) -> int:
        self._record("port_forward_tcp", port)
        return self.provider.next_proxy_port()


class FakeProvider(instance_api.InstanceProvider):
    def __init__(self) -> None:
        self.instances: list[FakeInstance] = []
        self.calls: list[tuple[tp.Any, ...]] = []
        self.fail_on: set[str] = set()
        self._lock = threading.Lock()
        self._ips = itertools.count(2)
        self._proxy_ports = itertools.count(40000)

    def record(self, *call: tp.Any) -> None:
        with self._lock:
            self.calls.append(call)

    def next_ip(self) -> str:
        with self._lock:
            return f"10.0.0.{next(self._ips)}"

    def next_proxy_port(self) -> int:
        with self._lock:
            return next(self._proxy_ports)

    def new_instance(self, name: str) -> FakeInstance:
        if "new_instance" in self.fail_on:
            msg = "simulated `new_instance` failure"
            raise RuntimeError(msg)
        self.record(name, "new_instance")
        instance = FakeInstance(name, provider=self)
        with self._lock:
            self.instances.append(instance)
        return instance

    def operations(self) -> list[str]:
        return [c[1] for c in self.calls]


def _key_seed(num: int) -> bytes:
    """Return deterministic 32 bytes seed, valid for any integer."""
    return hashlib.sha256(f"robusta-test-key-{num}".encode()).digest()


def ed25519_key(num: int) -> keys.Ed25519PrivKey:
    return keys.Ed25519PrivKey.from_seed(_key_seed(num))


def secp256k1_key(num: int) -> keys.Secp256k1PrivKey:
    return keys.Secp256k1PrivKey(raw=_key_seed(num))


@pytest.fixture(scope="session", autouse=True)
def init_pytest_temp_dirs(tmp_path_factory: pytest.TempPathFactory) -> None:
    """Initialize temporary directories used by the framework log."""
    temptools.PytestTempDirs.init(tmp_path_factory=tmp_path_factory)


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def cache() -> template_cache.TemplateCache:
    return template_cache.TemplateCache()


@pytest.fixture
def staging_root(tmp_path: pl.Path) -> pl.Path:
    return tmp_path / "staging"


@pytest.fixture
def make_keys() -> tp.Callable[[int], dict[str, keys.PrivKey]]:
    """Return factory of deterministic participant keys."""

    def _make(num: int) -> dict[str, keys.PrivKey]:
        return {
            "signer_key": ed25519_key(num * 3 + 1),
            "network_key": ed25519_key(num * 3 + 2),
            "account_key": secp256k1_key(num * 3 + 3),
        }

    return _make


@pytest.fixture
def node_keys(make_keys: tp.Callable[[int], dict[str, keys.PrivKey]]) -> dict[str, keys.PrivKey]:
    return make_keys(0)


@pytest.fixture
def make_node(
    provider: FakeProvider,
    cache: template_cache.TemplateCache,
    staging_root: pl.Path,
    make_keys: tp.Callable[[int], dict[str, keys.PrivKey]],
) -> tp.Callable[..., node.Node]:
    """Return factory of nodes deployed with the fake provider."""
    counter = itertools.count()

    def _make(name: str = "", **kwargs: tp.Any) -> node.Node:
        num = next(counter)
        params: dict[str, tp.Any] = {
            "version": "v1.0.0",
            "start_height": 0,
            "self_delegation": 10_000_000,
            "peers": (),
            "image_repo": "example.org/app",
            "port_forwarding": False,
            **make_keys(num),
            **kwargs,
        }
        return node.new_node(
            provider=provider,
            cache=cache,
            name=name or f"node{num}",
            staging_root=staging_root,
            **params,
        )

    return _make


@pytest.fixture
def genesis(node_keys: dict[str, keys.PrivKey]) -> files.GenesisDoc:
    return files.GenesisDoc(
        chain_id="robusta-test",
        genesis_time="2024-01-01T00:00:00.000000Z",
        validators=[
            files.GenesisValidator(pub_key=node_keys["signer_key"].pub_key(), power=10, name="v0")
        ],
    )

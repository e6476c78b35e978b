"""Test run context: participants of a single test network and the templates they share.

The `Testnet` owns the `TemplateCache`, so templates are shared only within one test run.
"""

import concurrent.futures
import datetime
import logging
import pathlib as pl
import time
import typing as tp

from robusta_tests.consensus import files
from robusta_tests.consensus import keys
from robusta_tests.participants import base
from robusta_tests.participants import errors
from robusta_tests.participants import instance_api
from robusta_tests.participants import node
from robusta_tests.participants import template_cache
from robusta_tests.participants import txsim
from robusta_tests.utils import configuration
from robusta_tests.utils import framework_log
from robusta_tests.utils import helpers
from robusta_tests.utils import locking
from robusta_tests.utils import types as ttypes

LOGGER = logging.getLogger(__name__)

DEFAULT_SELF_DELEGATION = 10_000_000
# Amount of staked tokens per unit of consensus voting power
POWER_REDUCTION = 1_000_000

T = tp.TypeVar("T")


class Testnet:
    """Set of participants of one test network."""

    def __init__(
        self,
        *,
        provider: instance_api.InstanceProvider,
        chain_id: str = "",
        staging_root: pl.Path | None = None,
        node_image_repo: str = "",
        txsim_image_repo: str = "",
        port_forwarding: bool = configuration.PORT_FORWARDING,
        provisioning_log: ttypes.FileType = configuration.PROVISIONING_LOG,
        max_workers: int = 8,
    ) -> None:
        self.provider = provider
        self.chain_id = chain_id or f"robusta-{helpers.get_rand_str(6)}"
        self.staging_root = pl.Path(staging_root or configuration.STAGING_ROOT)
        self.node_image_repo = node_image_repo or configuration.NODE_IMAGE_REPO
        self.txsim_image_repo = txsim_image_repo or configuration.TXSIM_IMAGE_REPO
        self.port_forwarding = port_forwarding
        self.provisioning_log = provisioning_log
        self.max_workers = max_workers

        self.cache = template_cache.TemplateCache()
        self.nodes: list[node.Node] = []
        self.txsims: list[txsim.Txsim] = []
        self.genesis: files.GenesisDoc | None = None

    def log(self, msg: str) -> None:
        """Append a message to the provisioning log."""
        if not self.provisioning_log:
            return

        with (
            locking.FileLockIfXdist(f"{self.provisioning_log}.lock"),
            open(self.provisioning_log, "a", encoding="utf-8") as logfile,
        ):
            logfile.write(
                f"{datetime.datetime.now(tz=datetime.UTC)} {self.chain_id}: {msg}\n"
            )

    def _check_name(self, name: str) -> None:
        names = {p.name for p in (*self.nodes, *self.txsims)}
        if name in names:
            msg = f"participant name '{name}' is already used in the test network"
            raise errors.ConfigurationError(msg, participant=name, artifact="name")

    def create_node(
        self,
        *,
        name: str,
        version: str,
        start_height: int = 0,
        self_delegation: int = 0,
        peers: tp.Iterable[str] = (),
        signer_key: keys.PrivKey | None = None,
        network_key: keys.PrivKey | None = None,
        account_key: keys.PrivKey | None = None,
    ) -> node.Node:
        """Create new node. Keys that were not supplied are generated."""
        self._check_name(name)
        new = node.new_node(
            provider=self.provider,
            cache=self.cache,
            name=name,
            version=version,
            start_height=start_height,
            self_delegation=self_delegation,
            peers=peers,
            signer_key=signer_key or keys.Ed25519PrivKey.generate(),
            network_key=network_key or keys.Ed25519PrivKey.generate(),
            account_key=account_key or keys.Secp256k1PrivKey.generate(),
            image_repo=self.node_image_repo,
            staging_root=self.staging_root,
            port_forwarding=self.port_forwarding,
        )
        self.nodes.append(new)
        self.log(f"created node '{name}' (version {version}, start height {start_height})")
        return new

    def create_genesis_node(
        self, *, name: str, version: str, self_delegation: int = DEFAULT_SELF_DELEGATION
    ) -> node.Node:
        """Create validator that starts from genesis."""
        return self.create_node(name=name, version=version, self_delegation=self_delegation)

    def create_txsim(
        self,
        *,
        name: str,
        version: str,
        mnemonic: str,
        poll_time: float = 1.0,
        blob_sizes: tp.Sequence[int] = (100, 1000),
        blob: int = 1,
        blob_amounts: int = 1,
        seed: int = 0,
        send: int = 0,
        rpc_endpoints: tp.Iterable[str] | None = None,
        grpc_endpoints: tp.Iterable[str] | None = None,
    ) -> txsim.Txsim:
        """Create transaction simulator.

        By default the simulator talks to all nodes that start from genesis.
        """
        self._check_name(name)
        genesis_nodes = [n for n in self.nodes if n.start_height == 0]
        if rpc_endpoints is None:
            rpc_endpoints = [n.external_address_rpc() for n in genesis_nodes]
        if grpc_endpoints is None:
            grpc_endpoints = [n.external_address_grpc() for n in genesis_nodes]

        new = txsim.new_txsim(
            provider=self.provider,
            cache=self.cache,
            name=name,
            version=version,
            signer_key=keys.Ed25519PrivKey.generate(),
            network_key=keys.Ed25519PrivKey.generate(),
            account_key=keys.Secp256k1PrivKey.generate(),
            mnemonic=mnemonic,
            rpc_endpoints=rpc_endpoints,
            grpc_endpoints=grpc_endpoints,
            poll_time=poll_time,
            blob_sizes=blob_sizes,
            blob=blob,
            blob_amounts=blob_amounts,
            seed=seed,
            send=send,
            image_repo=self.txsim_image_repo,
            staging_root=self.staging_root,
        )
        self.txsims.append(new)
        self.log(f"created txsim '{name}' (version {version})")
        return new

    def make_genesis(
        self, chain_id: str = "", *, app_state: dict[str, tp.Any] | None = None
    ) -> files.GenesisDoc:
        """Create genesis document with all validator nodes in the validator set."""
        validators = [
            files.GenesisValidator(
                pub_key=n.signer_key.pub_key(),
                power=max(1, n.self_delegation // POWER_REDUCTION),
                name=n.name,
            )
            for n in self.nodes
            if n.is_validator()
        ]
        if not validators:
            msg = "the test network has no validators"
            raise errors.ConfigurationError(msg, artifact="genesis")

        self.genesis = files.GenesisDoc(
            chain_id=chain_id or self.chain_id,
            validators=validators,
            app_state=app_state or {},
        )
        return self.genesis

    def peers(self, *, with_id: bool = True, exclude: str = "") -> list[str]:
        """Return P2P addresses of all nodes except the `exclude` one."""
        return [n.address_p2p(with_id=with_id) for n in self.nodes if n.name != exclude]

    def _run_parallel(self, func: tp.Callable[[T], None], items: tp.Sequence[T]) -> None:
        """Run `func` for all items in a thread pool, re-raise the first error."""
        if not items:
            return
        with concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [executor.submit(func, i) for i in items]
            for future in concurrent.futures.as_completed(futures):
                future.result()

    def setup(self) -> None:
        """Configure all participants.

        Every node gets the genesis document and the addresses of the other nodes as peers.
        """
        genesis = self.genesis or self.make_genesis()

        def _init_node(n: node.Node) -> None:
            # A single-node network bootstraps from its own address
            node_peers = self.peers(exclude=n.name) or self.peers()
            n.init(genesis, node_peers)

        self._run_parallel(_init_node, self.nodes)
        self._run_parallel(lambda t: t.init(), self.txsims)
        self.log(f"configured {len(self.nodes)} nodes and {len(self.txsims)} txsims")

    def _start_participant(
        self, participant: base.Participant, *, timeout: float | None
    ) -> None:
        try:
            helpers.call_with_timeout(participant.start, timeout=timeout)
        except TimeoutError as exc:
            msg = f"not running after {timeout} seconds"
            framework_log.framework_logger().error(f"{participant.name}: {msg}")
            raise errors.StartError(
                msg, participant=participant.name, artifact="start"
            ) from exc
        self.log(f"started {participant.kind} '{participant.name}'")

    def start(self, *, timeout: float | None = configuration.START_TIMEOUT) -> None:
        """Start all nodes that start from genesis, then all transaction simulators."""
        genesis_nodes = [n for n in self.nodes if n.start_height == 0]
        self._run_parallel(lambda n: self._start_participant(n, timeout=timeout), genesis_nodes)
        self._run_parallel(lambda t: self._start_participant(t, timeout=timeout), self.txsims)

    def _running_client_node(self) -> node.Node:
        for n in self.nodes:
            if n.state == base.ParticipantState.STARTED:
                return n
        msg = "no node of the test network is running"
        raise errors.LifecycleError(msg, artifact="start")

    def wait_for_height(
        self, height: int, *, timeout: float = 300, poll_interval: float = 1.0
    ) -> int:
        """Wait until a running node reports block `height` and return the latest height."""
        client_node = self._running_client_node()
        client = client_node.client(external=not client_node.port_forwarding)
        deadline = time.monotonic() + timeout
        try:
            while True:
                latest = client.latest_height()
                if latest >= height:
                    return latest
                if time.monotonic() > deadline:
                    msg = f"block height {height} not reached in {timeout} seconds (at {latest})"
                    raise TimeoutError(msg)
                time.sleep(poll_interval)
        finally:
            client.close()

    def start_late_nodes(
        self,
        *,
        timeout: float = 300,
        poll_interval: float = 1.0,
        start_timeout: float | None = configuration.START_TIMEOUT,
    ) -> None:
        """Start nodes with non-zero start height once the network reaches that height."""
        late_nodes = sorted(
            (n for n in self.nodes if n.start_height > 0), key=lambda n: n.start_height
        )
        for late in late_nodes:
            LOGGER.info(f"Waiting for height {late.start_height} to start node '{late.name}'.")
            self.wait_for_height(late.start_height, timeout=timeout, poll_interval=poll_interval)
            self._start_participant(late, timeout=start_timeout)

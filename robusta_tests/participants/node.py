"""Consensus node participant."""

import logging
import pathlib as pl
import typing as tp

from robusta_tests.consensus import files
from robusta_tests.consensus import keys
from robusta_tests.consensus import node_config
from robusta_tests.consensus import rpc_client
from robusta_tests.participants import base
from robusta_tests.participants import builders
from robusta_tests.participants import errors
from robusta_tests.participants import instance_api
from robusta_tests.participants import template_cache
from robusta_tests.utils import configuration
from robusta_tests.utils import constants

LOGGER = logging.getLogger(__name__)


class Node(base.Participant):
    """Consensus node.

    A node with non-zero self-delegation is a validator.
    """

    kind: tp.ClassVar[str] = "node"

    def __init__(
        self,
        *,
        name: str,
        version: str,
        start_height: int,
        self_delegation: int,
        initial_peers: tp.Iterable[str],
        signer_key: keys.PrivKey,
        network_key: keys.PrivKey,
        account_key: keys.PrivKey,
        instance: instance_api.ClusterInstance,
        staging_root: pl.Path | None = None,
        port_forwarding: bool = False,
    ) -> None:
        super().__init__(
            name=name,
            version=version,
            signer_key=signer_key,
            network_key=network_key,
            account_key=account_key,
            instance=instance,
            staging_root=staging_root,
            port_forwarding=port_forwarding,
        )
        self.start_height = start_height
        self.self_delegation = self_delegation
        self.initial_peers = tuple(initial_peers)

        self.rpc_proxy_port = 0
        self.grpc_proxy_port = 0

    def is_validator(self) -> bool:
        return self.self_delegation != 0

    def init(self, genesis: files.GenesisDoc, peers: tp.Sequence[str]) -> None:
        """Stage all configuration files of the node and inject them into the instance.

        Raises:
            ConfigurationError: No peers, or a peer address is malformed.
            StagingError: Writing of a local file failed.
            RemoteProvisioningError: Injection of a file failed.
        """
        if not peers:
            msg = "no peers provided"
            raise errors.ConfigurationError(msg, participant=self.name, artifact="peers")
        for peer in peers:
            try:
                files.PeerAddress.parse(peer)
            except ValueError as exc:
                raise errors.ConfigurationError(
                    str(exc), participant=self.name, artifact="peers"
                ) from exc
        self._check_not_started()

        config_dir, data_dir = self._make_staging_dirs()

        config_file = base.StagedFile(
            artifact="config",
            local=config_dir / "config.toml",
            remote=base.remote_path("config", "config.toml"),
        )
        genesis_file = base.StagedFile(
            artifact="genesis",
            local=config_dir / "genesis.json",
            remote=base.remote_path("config", "genesis.json"),
        )
        app_config_file = base.StagedFile(
            artifact="app config",
            local=config_dir / "app.toml",
            remote=base.remote_path("config", "app.toml"),
        )
        addrbook_file = base.StagedFile(
            artifact="addrbook",
            local=config_dir / "addrbook.json",
            remote=base.remote_path("config", "addrbook.json"),
        )

        cfg = node_config.make_config(
            moniker=self.name,
            external_address=self.address_p2p(with_id=False),
            persistent_peers=self.initial_peers,
        )
        self._stage(
            config_file.artifact,
            lambda: node_config.write_toml(out_file=config_file.local, content=cfg),
        )
        self._stage(genesis_file.artifact, lambda: genesis.save_as(genesis_file.local))
        self._stage(
            app_config_file.artifact,
            lambda: node_config.write_toml(
                out_file=app_config_file.local, content=node_config.make_app_config()
            ),
        )
        node_key, pv_key, pv_state = self._stage_keys(config_dir=config_dir, data_dir=data_dir)
        self._stage(
            addrbook_file.artifact,
            lambda: files.write_address_book(peers=peers, out_file=addrbook_file.local),
        )

        self._inject(
            [config_file, genesis_file, app_config_file, pv_key, pv_state, node_key, addrbook_file]
        )
        self.state = base.ParticipantState.CONFIGURED
        LOGGER.info(f"Node '{self.name}' configured with {len(peers)} peers.")

    def _forward_ports(self) -> None:
        with instance_api.remote_operation(
            f"forwarding port {constants.RPC_PORT}",
            participant=self.name,
            error_cls=errors.StartError,
        ):
            self.rpc_proxy_port = self.instance.port_forward_tcp(constants.RPC_PORT)
        with instance_api.remote_operation(
            f"forwarding port {constants.GRPC_PORT}",
            participant=self.name,
            error_cls=errors.StartError,
        ):
            self.grpc_proxy_port = self.instance.port_forward_tcp(constants.GRPC_PORT)

    def address_p2p(self, with_id: bool) -> str:
        """Return P2P endpoint address of the node, used for populating address books.

        With ID it looks something like:
        `3314051954fc072a0678ec0cbac690ad8676ab98@61.108.66.220:26656`
        """
        addr = f"{self.get_ip()}:{constants.P2P_PORT}"
        if with_id:
            addr = f"{self.network_key.pub_key().address().hex()}@{addr}"
        return addr

    def _proxy_port(self, port: int, proxy_port: int) -> int:
        if not proxy_port:
            msg = f"port {port} was not forwarded"
            raise errors.PortNotForwardedError(msg, participant=self.name, artifact=str(port))
        return proxy_port

    def address_rpc(self) -> str:
        """Return local proxy RPC endpoint address of the node."""
        return f"http://127.0.0.1:{self._proxy_port(constants.RPC_PORT, self.rpc_proxy_port)}"

    def address_grpc(self) -> str:
        """Return local proxy gRPC endpoint address of the node."""
        return f"127.0.0.1:{self._proxy_port(constants.GRPC_PORT, self.grpc_proxy_port)}"

    def external_address_rpc(self) -> str:
        return f"http://{self.get_ip()}:{constants.RPC_PORT}"

    def external_address_grpc(self) -> str:
        return f"{self.get_ip()}:{constants.GRPC_PORT}"

    def client(self, *, external: bool = False) -> rpc_client.HTTPClient:
        """Return RPC client of the node."""
        address = self.external_address_rpc() if external else self.address_rpc()
        return rpc_client.HTTPClient(address, constants.WEBSOCKET_PATH)

    def clone(
        self,
        *,
        name: str,
        signer_key: keys.PrivKey,
        network_key: keys.PrivKey,
        account_key: keys.PrivKey,
    ) -> "Node":
        """Return new node with new name and keys, running in a clone of this node's instance."""
        with instance_api.remote_operation("clone instance", participant=name):
            instance = self.instance.clone_with_name(name)

        return Node(
            name=name,
            version=self.version,
            start_height=self.start_height,
            self_delegation=self.self_delegation,
            initial_peers=self.initial_peers,
            signer_key=signer_key,
            network_key=network_key,
            account_key=account_key,
            instance=instance,
            staging_root=self.staging_root,
            port_forwarding=self.port_forwarding,
        )


def new_node(
    *,
    provider: instance_api.InstanceProvider,
    cache: template_cache.TemplateCache,
    name: str,
    version: str,
    start_height: int,
    self_delegation: int,
    peers: tp.Iterable[str],
    signer_key: keys.PrivKey,
    network_key: keys.PrivKey,
    account_key: keys.PrivKey,
    image_repo: str = "",
    staging_root: pl.Path | None = None,
    port_forwarding: bool = configuration.PORT_FORWARDING,
) -> Node:
    """Create node whose instance is cloned from a cached node template."""
    image_repo = image_repo or configuration.NODE_IMAGE_REPO
    fingerprint = builders.node_fingerprint(image_repo=image_repo, version=version)

    def _build() -> instance_api.ClusterInstance:
        return builders.build_node_template(
            provider=provider,
            name=builders.template_name(kind=Node.kind, fingerprint=fingerprint),
            image_repo=image_repo,
            version=version,
        )

    instance = cache.resolve(fingerprint, name=name, builder=_build)

    return Node(
        name=name,
        version=version,
        start_height=start_height,
        self_delegation=self_delegation,
        initial_peers=peers,
        signer_key=signer_key,
        network_key=network_key,
        account_key=account_key,
        instance=instance,
        staging_root=staging_root,
        port_forwarding=port_forwarding,
    )

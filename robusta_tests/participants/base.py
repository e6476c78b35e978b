"""Lifecycle of a participant: staging of configuration files, injection and start."""

import dataclasses
import enum
import functools
import logging
import os
import pathlib as pl
import typing as tp

from robusta_tests.consensus import files
from robusta_tests.consensus import keys
from robusta_tests.participants import errors
from robusta_tests.participants import instance_api
from robusta_tests.utils import configuration
from robusta_tests.utils import constants
from robusta_tests.utils import framework_log

LOGGER = logging.getLogger(__name__)

T = tp.TypeVar("T")


class ParticipantState(enum.Enum):
    CREATED = "created"
    CONFIGURED = "configured"
    STARTED = "started"


@dataclasses.dataclass(frozen=True, order=True)
class StagedFile:
    artifact: str
    local: pl.Path
    remote: str


def remote_path(*parts: str) -> str:
    return "/".join((constants.REMOTE_ROOT_DIR, *parts))


class Participant:
    """Participant of the test network deployed as a single container instance."""

    kind: tp.ClassVar[str] = "participant"

    def __init__(
        self,
        *,
        name: str,
        version: str,
        signer_key: keys.PrivKey,
        network_key: keys.PrivKey,
        account_key: keys.PrivKey,
        instance: instance_api.ClusterInstance,
        staging_root: pl.Path | None = None,
        port_forwarding: bool = False,
    ) -> None:
        self.name = name
        self.version = version
        self.signer_key = signer_key
        self.network_key = network_key
        self.account_key = account_key
        self.instance = instance
        self.staging_root = pl.Path(staging_root or configuration.STAGING_ROOT)
        self.port_forwarding = port_forwarding
        self.state = ParticipantState.CREATED
        # Set once the runtime reports the instance running, a retried `start` only forwards ports
        self.instance_running = False

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, state={self.state.value!r})"

    @property
    def staging_dir(self) -> pl.Path:
        return self.staging_root / self.name

    def _stage(self, artifact: str, func: tp.Callable[[], T]) -> T:
        """Run local staging step, wrap I/O errors with the artifact name."""
        try:
            return func()
        except OSError as exc:
            msg = f"staging {artifact} failed: {exc}"
            raise errors.StagingError(msg, participant=self.name, artifact=artifact) from exc

    def _check_not_started(self) -> None:
        if self.state == ParticipantState.STARTED:
            msg = "can't configure participant that is already started"
            raise errors.LifecycleError(msg, participant=self.name, artifact="init")

    def _make_staging_dirs(self) -> tuple[pl.Path, pl.Path]:
        config_dir = self.staging_dir / "config"
        data_dir = self.staging_dir / "data"
        for dir_path in (config_dir, data_dir):
            self._stage(
                f"directory {dir_path}",
                functools.partial(dir_path.mkdir, parents=True, exist_ok=True),
            )
        return config_dir, data_dir

    def _stage_keys(self, *, config_dir: pl.Path, data_dir: pl.Path) -> list[StagedFile]:
        """Stage the network identity key and the consensus signing key and state."""
        node_key = StagedFile(
            artifact="node key",
            local=config_dir / "node_key.json",
            remote=remote_path("config", "node_key.json"),
        )
        pv_key = StagedFile(
            artifact="priv validator key",
            local=config_dir / "priv_validator_key.json",
            remote=remote_path("config", "priv_validator_key.json"),
        )
        pv_state = StagedFile(
            artifact="priv validator state",
            local=data_dir / "priv_validator_state.json",
            remote=remote_path("data", "priv_validator_state.json"),
        )

        self._stage(
            node_key.artifact,
            lambda: files.write_node_key(priv_key=self.network_key, out_file=node_key.local),
        )
        # The copy step needs to read the key file as a different user
        self._stage(f"{node_key.artifact} permissions", lambda: os.chmod(node_key.local, 0o777))
        self._stage(
            pv_key.artifact,
            lambda: files.write_priv_validator(
                priv_key=self.signer_key, key_file=pv_key.local, state_file=pv_state.local
            ),
        )

        return [node_key, pv_key, pv_state]

    def _inject(self, staged_files: tp.Iterable[StagedFile]) -> None:
        """Copy staged files into the instance's filesystem."""
        for staged in staged_files:
            with instance_api.remote_operation(
                f"adding {staged.artifact} file", participant=self.name
            ):
                self.instance.add_file(staged.local, staged.remote, constants.FILE_OWNER)
            LOGGER.debug(f"{self.name}: injected '{staged.local}' as '{staged.remote}'.")

    def _forward_ports(self) -> None:
        """Forward ports of the started instance. Nothing to forward by default."""

    def start(self) -> None:
        """Start the instance and block until the runtime reports it running.

        There's no deadline, callers that need one wrap the call with their own timeout.
        When port forwarding fails, the instance keeps running and calling `start` again
        retries only the forwarding.
        """
        if self.state != ParticipantState.CONFIGURED:
            msg = f"can't start participant in '{self.state.value}' state, call `init` first"
            raise errors.LifecycleError(msg, participant=self.name, artifact="start")

        LOGGER.info(f"Starting {self.kind} '{self.name}'.")
        try:
            if not self.instance_running:
                with instance_api.remote_operation(
                    "start", participant=self.name, error_cls=errors.StartError
                ):
                    self.instance.start()
                with instance_api.remote_operation(
                    "wait until running", participant=self.name, error_cls=errors.StartError
                ):
                    self.instance.wait_instance_is_running()
                self.instance_running = True
            if self.port_forwarding:
                self._forward_ports()
        except errors.ProvisioningError as exc:
            framework_log.framework_logger().error(f"Failed to start {self.kind}: {exc}")
            raise

        self.state = ParticipantState.STARTED
        LOGGER.info(f"{self.kind.capitalize()} '{self.name}' is running.")

    def get_ip(self) -> str:
        """Return IP address of the instance reported by the runtime."""
        try:
            ip = self.instance.get_ip()
        except Exception as exc:
            msg = f"can't get IP address: {exc}"
            raise errors.AddressUnavailableError(
                msg, participant=self.name, artifact="ip"
            ) from exc
        if not ip:
            msg = "runtime reported no IP address"
            raise errors.AddressUnavailableError(msg, participant=self.name, artifact="ip")
        return ip

"""Configuration fingerprints and builders of instance templates for participant kinds."""

import dataclasses
import hashlib
import logging
import typing as tp

from robusta_tests.participants import errors
from robusta_tests.participants import instance_api
from robusta_tests.utils import constants
from robusta_tests.utils import helpers

LOGGER = logging.getLogger(__name__)


def fingerprint(*settings: tp.Any) -> str:
    """Return MD5 hex digest of the colon-joined settings."""
    settings_str = ":".join(str(s) for s in settings)
    return hashlib.md5(settings_str.encode("utf-8"), usedforsecurity=False).hexdigest()


def node_fingerprint(*, image_repo: str, version: str) -> str:
    return fingerprint(
        image_repo,
        version,
        constants.RPC_PORT,
        constants.P2P_PORT,
        constants.GRPC_PORT,
        constants.REMOTE_ROOT_DIR,
        constants.PERSISTENT_VOLUME_SIZE,
    )


@dataclasses.dataclass(frozen=True)
class TxsimArgs:
    """Run arguments of the transaction simulator."""

    mnemonic: str
    rpc_endpoints: tuple[str, ...]
    grpc_endpoints: tuple[str, ...]
    poll_time: float
    blob_sizes: tuple[int, int]
    blob: int
    blob_amounts: int
    seed: int
    send: int

    @classmethod
    def create(
        cls,
        *,
        mnemonic: str,
        rpc_endpoints: tp.Iterable[str],
        grpc_endpoints: tp.Iterable[str],
        poll_time: float,
        blob_sizes: tp.Sequence[int],
        blob: int,
        blob_amounts: int,
        seed: int,
        send: int,
        participant: str = "",
    ) -> "TxsimArgs":
        """Validate and create the arguments.

        Raises:
            ConfigurationError: `blob_sizes` is not a pair of integers, or `poll_time` is negative.
        """
        if len(blob_sizes) != 2 or not all(
            isinstance(s, int) and not isinstance(s, bool) for s in blob_sizes
        ):
            msg = f"blob sizes must be a sequence of two integers, got {list(blob_sizes)!r}"
            raise errors.ConfigurationError(msg, participant=participant, artifact="blob sizes")
        if poll_time < 0:
            msg = f"poll time must not be negative, got {poll_time}"
            raise errors.ConfigurationError(msg, participant=participant, artifact="poll time")

        return cls(
            mnemonic=mnemonic,
            rpc_endpoints=tuple(rpc_endpoints),
            grpc_endpoints=tuple(grpc_endpoints),
            poll_time=poll_time,
            blob_sizes=(blob_sizes[0], blob_sizes[1]),
            blob=blob,
            blob_amounts=blob_amounts,
            seed=seed,
            send=send,
        )

    def to_args(self) -> list[str]:
        # fmt: off
        return [
            "--key-mnemonic", self.mnemonic,
            "--rpc-endpoints", ",".join(self.rpc_endpoints),
            "--grpc-endpoints", ",".join(self.grpc_endpoints),
            "--poll-time", helpers.format_duration(self.poll_time),
            "--blob-sizes", f"{self.blob_sizes[0]}-{self.blob_sizes[1]}",
            "--blob", str(self.blob),
            "--blob-amounts", str(self.blob_amounts),
            "--seed", str(self.seed),
            "--send", str(self.send),
        ]
        # fmt: on


def txsim_fingerprint(*, image_repo: str, version: str, args: TxsimArgs) -> str:
    # The run arguments are part of the template, so they are part of the fingerprint as well
    return fingerprint(
        image_repo,
        version,
        constants.REMOTE_ROOT_DIR,
        constants.PERSISTENT_VOLUME_SIZE,
        *args.to_args(),
    )


class InstanceDraft:
    """Uncommitted instance definition.

    Every configuration step is wrapped so a failure names the step that failed.
    """

    def __init__(self, instance: instance_api.ClusterInstance) -> None:
        self.instance = instance
        self._committed = False

    @classmethod
    def new(cls, *, provider: instance_api.InstanceProvider, name: str) -> "InstanceDraft":
        with instance_api.remote_operation("create instance", participant=name):
            return cls(provider.new_instance(name))

    @property
    def name(self) -> str:
        return self.instance.name

    def apply(self, operation: str, func: tp.Callable[..., tp.Any], *args: tp.Any) -> tp.Any:
        if self._committed:
            msg = f"can't {operation}, instance definition is already committed"
            raise errors.LifecycleError(msg, participant=self.name, artifact=operation)
        with instance_api.remote_operation(operation, participant=self.name):
            return func(*args)

    def make_remote_dirs(self) -> None:
        for subdir in ("config", "data"):
            self.apply(
                f"create remote {subdir} dir",
                self.instance.execute_command,
                f"mkdir -p {constants.REMOTE_ROOT_DIR}/{subdir}",
            )

    def set_resources(self) -> None:
        self.apply(
            "set memory", self.instance.set_memory, constants.MEMORY_REQUEST, constants.MEMORY_LIMIT
        )
        self.apply("set cpu", self.instance.set_cpu, constants.CPU_REQUEST)
        self.apply(
            "add volume",
            self.instance.add_volume_with_owner,
            constants.REMOTE_ROOT_DIR,
            constants.PERSISTENT_VOLUME_SIZE,
            constants.USER_ID,
        )

    def commit(self) -> instance_api.ClusterInstance:
        """Freeze the definition and return the committed template."""
        self.apply("commit", self.instance.commit)
        self._committed = True
        LOGGER.info(f"Committed instance template '{self.name}'.")
        return self.instance


def build_node_template(
    *, provider: instance_api.InstanceProvider, name: str, image_repo: str, version: str
) -> instance_api.ClusterInstance:
    """Build and commit instance template of a consensus node."""
    draft = InstanceDraft.new(provider=provider, name=name)
    draft.apply("set image", draft.instance.set_image, f"{image_repo}:{version}")
    for port in (constants.RPC_PORT, constants.P2P_PORT, constants.GRPC_PORT):
        draft.apply(f"add tcp port {port}", draft.instance.add_port_tcp, port)
    draft.set_resources()
    draft.apply(
        "set args",
        draft.instance.set_args,
        "start",
        f"--home={constants.REMOTE_ROOT_DIR}",
        f"--rpc.laddr=tcp://0.0.0.0:{constants.RPC_PORT}",
    )
    draft.make_remote_dirs()
    draft.apply("set user", draft.instance.set_user, str(constants.USER_ID))
    return draft.commit()


def build_txsim_template(
    *,
    provider: instance_api.InstanceProvider,
    name: str,
    image_repo: str,
    version: str,
    args: TxsimArgs,
) -> instance_api.ClusterInstance:
    """Build and commit instance template of a transaction simulator."""
    draft = InstanceDraft.new(provider=provider, name=name)
    draft.apply("set image", draft.instance.set_image, f"{image_repo}:{version}")
    draft.set_resources()
    draft.apply("set command", draft.instance.set_command, constants.TXSIM_BINARY)
    draft.apply("set args", draft.instance.set_args, *args.to_args())
    draft.make_remote_dirs()
    return draft.commit()


def template_name(*, kind: str, fingerprint: str) -> str:
    return f"{kind}-template-{fingerprint[:12]}"

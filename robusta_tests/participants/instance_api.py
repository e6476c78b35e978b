"""Contract of the cluster-instance API that deploys participants as container instances.

The orchestration layer itself (image build, volumes, networking, processes) is provided
externally. Implementations subclass `ClusterInstance` and `InstanceProvider`.
"""

import contextlib
import logging
import typing as tp

from robusta_tests.participants import errors
from robusta_tests.utils import types as ttypes

LOGGER = logging.getLogger(__name__)


class ClusterInstance:
    """A single container instance managed by the orchestration layer."""

    def __init__(self, name: str) -> None:
        self.name = name

    def _not_implemented(self, operation: str) -> tp.NoReturn:
        msg = f"`{operation}` not implemented for instance type '{type(self).__name__}'."
        raise NotImplementedError(msg)

    def set_image(self, image: str) -> None:
        self._not_implemented("set_image")

    def add_port_tcp(self, port: int) -> None:
        self._not_implemented("add_port_tcp")

    def set_memory(self, request: str, limit: str) -> None:
        self._not_implemented("set_memory")

    def set_cpu(self, request: str) -> None:
        self._not_implemented("set_cpu")

    def add_volume_with_owner(self, path: str, size: str, owner: int) -> None:
        self._not_implemented("add_volume_with_owner")

    def set_command(self, *command: str) -> None:
        self._not_implemented("set_command")

    def set_args(self, *args: str) -> None:
        self._not_implemented("set_args")

    def set_user(self, user: str) -> None:
        self._not_implemented("set_user")

    def execute_command(self, *command: str) -> str:
        """Execute one-shot command in the instance and return its output."""
        self._not_implemented("execute_command")

    def commit(self) -> None:
        """Freeze the instance definition so it can be cloned."""
        self._not_implemented("commit")

    def clone_with_name(self, name: str) -> "ClusterInstance":
        """Return new independent instance sharing the committed definition."""
        self._not_implemented("clone_with_name")

    def start(self) -> None:
        self._not_implemented("start")

    def wait_instance_is_running(self) -> None:
        """Block until the runtime reports the instance as running."""
        self._not_implemented("wait_instance_is_running")

    def get_ip(self) -> str:
        self._not_implemented("get_ip")

    def add_file(self, src: ttypes.FileType, dest: str, chown: str) -> None:
        """Copy local file `src` to remote path `dest` owned by `chown` (`uid:gid`)."""
        self._not_implemented("add_file")

    def port_forward_tcp(self, port: int) -> int:
        """Forward remote TCP `port` and return the local proxy port."""
        self._not_implemented("port_forward_tcp")


class InstanceProvider:
    """Factory of new instances."""

    def new_instance(self, name: str) -> ClusterInstance:
        msg = f"Not implemented for provider type '{type(self).__name__}'."
        raise NotImplementedError(msg)


@contextlib.contextmanager
def remote_operation(
    operation: str,
    *,
    participant: str,
    error_cls: type[errors.ProvisioningError] = errors.RemoteProvisioningError,
) -> tp.Iterator[None]:
    """Wrap errors of the cluster-instance API with participant and operation - context manager."""
    try:
        yield
    except errors.ProvisioningError:
        raise
    except Exception as exc:
        LOGGER.debug(f"{participant}: `{operation}` failed: {exc}")
        msg = f"{operation} failed: {exc}"
        raise error_cls(msg, participant=participant, artifact=operation) from exc

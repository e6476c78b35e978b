"""Transaction simulator participant generating load on the test network."""

import logging
import pathlib as pl
import typing as tp

from robusta_tests.consensus import keys
from robusta_tests.participants import base
from robusta_tests.participants import builders
from robusta_tests.participants import instance_api
from robusta_tests.participants import template_cache
from robusta_tests.utils import configuration

LOGGER = logging.getLogger(__name__)


class Txsim(base.Participant):
    """Transaction simulator.

    It is a client of the network, not a consensus participant, so it needs only its keys.
    """

    kind: tp.ClassVar[str] = "txsim"

    def __init__(
        self,
        *,
        name: str,
        version: str,
        signer_key: keys.PrivKey,
        network_key: keys.PrivKey,
        account_key: keys.PrivKey,
        instance: instance_api.ClusterInstance,
        args: builders.TxsimArgs,
        staging_root: pl.Path | None = None,
    ) -> None:
        super().__init__(
            name=name,
            version=version,
            signer_key=signer_key,
            network_key=network_key,
            account_key=account_key,
            instance=instance,
            staging_root=staging_root,
        )
        self.args = args

    @property
    def rpc_endpoints(self) -> tuple[str, ...]:
        return self.args.rpc_endpoints

    @property
    def grpc_endpoints(self) -> tuple[str, ...]:
        return self.args.grpc_endpoints

    def init(self) -> None:
        """Stage the simulator keys and inject them into the instance."""
        self._check_not_started()
        config_dir, data_dir = self._make_staging_dirs()
        staged_files = self._stage_keys(config_dir=config_dir, data_dir=data_dir)
        self._inject(staged_files)
        self.state = base.ParticipantState.CONFIGURED
        LOGGER.info(f"Txsim '{self.name}' configured.")


def new_txsim(
    *,
    provider: instance_api.InstanceProvider,
    cache: template_cache.TemplateCache,
    name: str,
    version: str,
    signer_key: keys.PrivKey,
    network_key: keys.PrivKey,
    account_key: keys.PrivKey,
    mnemonic: str,
    rpc_endpoints: tp.Iterable[str],
    grpc_endpoints: tp.Iterable[str],
    poll_time: float,
    blob_sizes: tp.Sequence[int],
    blob: int,
    blob_amounts: int,
    seed: int,
    send: int,
    image_repo: str = "",
    staging_root: pl.Path | None = None,
) -> Txsim:
    """Create transaction simulator whose instance is cloned from a cached template.

    Raises:
        ConfigurationError: Invalid arguments, raised before any call to the cluster-instance API.
    """
    args = builders.TxsimArgs.create(
        mnemonic=mnemonic,
        rpc_endpoints=rpc_endpoints,
        grpc_endpoints=grpc_endpoints,
        poll_time=poll_time,
        blob_sizes=blob_sizes,
        blob=blob,
        blob_amounts=blob_amounts,
        seed=seed,
        send=send,
        participant=name,
    )
    image_repo = image_repo or configuration.TXSIM_IMAGE_REPO
    fingerprint = builders.txsim_fingerprint(image_repo=image_repo, version=version, args=args)

    def _build() -> instance_api.ClusterInstance:
        return builders.build_txsim_template(
            provider=provider,
            name=builders.template_name(kind=Txsim.kind, fingerprint=fingerprint),
            image_repo=image_repo,
            version=version,
            args=args,
        )

    instance = cache.resolve(fingerprint, name=name, builder=_build)

    return Txsim(
        name=name,
        version=version,
        signer_key=signer_key,
        network_key=network_key,
        account_key=account_key,
        instance=instance,
        args=args,
        staging_root=staging_root,
    )

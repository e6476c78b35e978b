"""Rendering of the node configuration (`config.toml`) and app configuration (`app.toml`)."""

import typing as tp

import toml

from robusta_tests.utils import constants
from robusta_tests.utils import helpers
from robusta_tests.utils import types as ttypes

TIMEOUT_PROPOSE = 1.0
TIMEOUT_COMMIT = 1.0
MIN_GAS_PRICE = 0.001
PROMETHEUS_PORT = 26660


def make_config(
    *,
    moniker: str,
    external_address: str,
    persistent_peers: tp.Iterable[str] = (),
) -> dict[str, tp.Any]:
    """Return the node configuration.

    Args:
        moniker: A human readable name of the node.
        external_address: P2P address (`host:port`) other peers use to dial the node.
        persistent_peers: Peers (`<node id>@<host>:<port>`) the node keeps connections with.
    """
    return {
        "proxy_app": "tcp://127.0.0.1:26658",
        "moniker": moniker,
        "fast_sync": True,
        "db_backend": "goleveldb",
        "db_dir": "data",
        "log_level": "info",
        "log_format": "plain",
        "genesis_file": "config/genesis.json",
        "priv_validator_key_file": "config/priv_validator_key.json",
        "priv_validator_state_file": "data/priv_validator_state.json",
        "priv_validator_laddr": "",
        "node_key_file": "config/node_key.json",
        "abci": "socket",
        "filter_peers": False,
        "rpc": {
            "laddr": f"tcp://0.0.0.0:{constants.RPC_PORT}",
            "cors_allowed_origins": [],
            "max_open_connections": 900,
            "max_subscription_clients": 100,
            "timeout_broadcast_tx_commit": "10s",
        },
        "p2p": {
            "laddr": f"tcp://0.0.0.0:{constants.P2P_PORT}",
            "external_address": f"tcp://{external_address}",
            "seeds": "",
            "persistent_peers": ",".join(persistent_peers),
            "addr_book_file": "config/addrbook.json",
            "addr_book_strict": False,
            "max_num_inbound_peers": 40,
            "max_num_outbound_peers": 10,
            "pex": True,
            "allow_duplicate_ip": True,
        },
        "mempool": {
            "recheck": True,
            "broadcast": True,
            "size": 5000,
            "max_txs_bytes": 1073741824,
            "max_tx_bytes": 1048576,
        },
        "consensus": {
            "wal_file": "data/cs.wal/wal",
            "timeout_propose": helpers.format_duration(TIMEOUT_PROPOSE),
            "timeout_commit": helpers.format_duration(TIMEOUT_COMMIT),
            "skip_timeout_commit": False,
            "create_empty_blocks": True,
        },
        "tx_index": {"indexer": "kv"},
        "instrumentation": {
            "prometheus": True,
            "prometheus_listen_addr": f":{PROMETHEUS_PORT}",
            "namespace": "celestia",
        },
    }


def make_app_config() -> dict[str, tp.Any]:
    """Return the application configuration."""
    return {
        "minimum-gas-prices": f"{MIN_GAS_PRICE}{constants.BOND_DENOM}",
        "pruning": "default",
        "halt-height": 0,
        "min-retain-blocks": 0,
        "inter-block-cache": True,
        "telemetry": {"enabled": False, "prometheus-retention-time": 0},
        "api": {"enable": False, "swagger": False, "address": "tcp://0.0.0.0:1317"},
        "grpc": {"enable": True, "address": f"0.0.0.0:{constants.GRPC_PORT}"},
        "grpc-web": {"enable": True, "address": "0.0.0.0:9091"},
        "state-sync": {"snapshot-interval": 0, "snapshot-keep-recent": 2},
    }


def write_toml(*, out_file: ttypes.FileType, content: dict[str, tp.Any]) -> ttypes.FileType:
    """Write configuration content to TOML file."""
    with open(out_file, "w", encoding="utf-8") as out_fp:
        toml.dump(content, out_fp)
    return out_file

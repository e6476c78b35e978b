"""Key, state, genesis and address book files of a consensus node."""

import dataclasses
import datetime
import hashlib
import json
import logging
import re
import typing as tp

from robusta_tests.consensus import keys
from robusta_tests.utils import helpers
from robusta_tests.utils import types as ttypes

LOGGER = logging.getLogger(__name__)

ZERO_TIME = "0001-01-01T00:00:00Z"
ADDRBOOK_NEW_BUCKETS = 256
ADDRBOOK_KEY_LEN = 24
BUCKET_TYPE_NEW = 1

_PEER_RE = re.compile(r"^(?P<id>[0-9a-fA-F]{40})@(?P<host>[^@:\s]+):(?P<port>\d{1,5})$")


def write_node_key(*, priv_key: keys.PrivKey, out_file: ttypes.FileType) -> ttypes.FileType:
    """Write the network identity key used for the P2P handshake."""
    return helpers.write_json(out_file=out_file, content={"priv_key": priv_key.to_json()})


def write_priv_validator(
    *, priv_key: keys.PrivKey, key_file: ttypes.FileType, state_file: ttypes.FileType
) -> None:
    """Write the consensus signing key and an initial (empty) signing state."""
    pub_key = priv_key.pub_key()
    key_content = {
        "address": pub_key.address().hex().upper(),
        "pub_key": pub_key.to_json(),
        "priv_key": priv_key.to_json(),
    }
    state_content = {"height": "0", "round": 0, "step": 0}
    helpers.write_json(out_file=key_file, content=key_content)
    helpers.write_json(out_file=state_file, content=state_content)


@dataclasses.dataclass(frozen=True)
class GenesisValidator:
    pub_key: keys.PubKey
    power: int
    name: str = ""

    def to_json(self) -> dict[str, tp.Any]:
        return {
            "address": self.pub_key.address().hex().upper(),
            "pub_key": self.pub_key.to_json(),
            "power": str(self.power),
            "name": self.name,
        }


@dataclasses.dataclass
class GenesisDoc:
    """Genesis document of the test network."""

    chain_id: str
    genesis_time: str = dataclasses.field(
        default_factory=lambda: datetime.datetime.now(tz=datetime.UTC).strftime(
            "%Y-%m-%dT%H:%M:%S.%fZ"
        )
    )
    initial_height: int = 1
    consensus_params: dict[str, tp.Any] | None = None
    validators: list[GenesisValidator] = dataclasses.field(default_factory=list)
    app_hash: str = ""
    app_state: dict[str, tp.Any] = dataclasses.field(default_factory=dict)

    def to_json(self) -> dict[str, tp.Any]:
        return {
            "genesis_time": self.genesis_time,
            "chain_id": self.chain_id,
            "initial_height": str(self.initial_height),
            "consensus_params": self.consensus_params,
            "validators": [v.to_json() for v in self.validators],
            "app_hash": self.app_hash,
            "app_state": self.app_state,
        }

    def save_as(self, out_file: ttypes.FileType) -> ttypes.FileType:
        return helpers.write_json(out_file=out_file, content=self.to_json())

    @classmethod
    def from_file(cls, genesis_file: ttypes.FileType) -> "GenesisDoc":
        with open(genesis_file, encoding="utf-8") as in_fp:
            content = json.load(in_fp)

        validators = [
            GenesisValidator(
                pub_key=keys.pub_key_from_json(rec["pub_key"]),
                power=int(rec["power"]),
                name=rec.get("name", ""),
            )
            for rec in content.get("validators") or []
        ]

        return cls(
            chain_id=content["chain_id"],
            genesis_time=content["genesis_time"],
            initial_height=int(content.get("initial_height") or 1),
            consensus_params=content.get("consensus_params"),
            validators=validators,
            app_hash=content.get("app_hash", ""),
            app_state=content.get("app_state") or {},
        )


@dataclasses.dataclass(frozen=True, order=True)
class PeerAddress:
    id: str
    host: str
    port: int

    @classmethod
    def parse(cls, peer: str) -> "PeerAddress":
        """Parse peer address in the `<node id>@<host>:<port>` format."""
        match = _PEER_RE.match(peer.strip())
        if not match:
            msg = f"Invalid peer address '{peer}', expected '<node id>@<host>:<port>'"
            raise ValueError(msg)
        port = int(match.group("port"))
        if not 0 < port <= 65535:
            msg = f"Invalid port in peer address '{peer}'"
            raise ValueError(msg)
        return cls(id=match.group("id").lower(), host=match.group("host"), port=port)

    def to_json(self) -> dict[str, tp.Any]:
        return {"id": self.id, "ip": self.host, "port": self.port}

    def __str__(self) -> str:
        return f"{self.id}@{self.host}:{self.port}"


def make_address_book(peers: tp.Iterable[str]) -> dict[str, tp.Any]:
    """Create address book content with all the `peers` in the "new" buckets.

    The address book key and bucket placement are derived from the peer list, so the same peers
    always produce the same address book.
    """
    peer_addrs = [PeerAddress.parse(p) for p in peers]
    book_key = hashlib.sha256(",".join(str(p) for p in peer_addrs).encode("utf-8")).hexdigest()
    book_key = book_key[:ADDRBOOK_KEY_LEN]

    addrs = []
    for peer_addr in peer_addrs:
        bucket_hash = hashlib.sha256(f"{book_key}{peer_addr}".encode()).digest()
        bucket = int.from_bytes(bucket_hash[:8], "big") % ADDRBOOK_NEW_BUCKETS
        addrs.append(
            {
                "addr": peer_addr.to_json(),
                "src": peer_addr.to_json(),
                "buckets": [bucket],
                "attempts": 0,
                "bucket_type": BUCKET_TYPE_NEW,
                "last_attempt": ZERO_TIME,
                "last_success": ZERO_TIME,
                "last_ban_time": ZERO_TIME,
            }
        )

    return {"key": book_key, "addrs": addrs}


def write_address_book(*, peers: tp.Iterable[str], out_file: ttypes.FileType) -> ttypes.FileType:
    """Write address book used for P2P bootstrap."""
    content = make_address_book(peers)
    LOGGER.debug(f"Writing address book with {len(content['addrs'])} peers to '{out_file}'.")
    return helpers.write_json(out_file=out_file, content=content)

import json

import hypothesis
import hypothesis.strategies as st
import pytest
import toml

from robusta_tests.consensus import files
from robusta_tests.consensus import keys
from robusta_tests.consensus import node_config

# Test vector 1 from RFC 8032
ED25519_SEED = bytes.fromhex("9d61b19deffd5a60ba844af492ec2cc44449c5697b326919703bac031cae7f60")
ED25519_PUB = bytes.fromhex("d75a980182b10ab7d54bfed3c964073a0ee172f3daa62325af021a68f707511a")

PEER_IDS = st.binary(min_size=20, max_size=20).map(bytes.hex)
PEERS = st.builds(
    lambda node_id, host_num, port: f"{node_id}@10.0.{host_num}.1:{port}",
    PEER_IDS,
    st.integers(min_value=0, max_value=255),
    st.integers(min_value=1, max_value=65535),
)


class TestKeys:
    def test_ed25519(self):
        priv_key = keys.Ed25519PrivKey.from_seed(ED25519_SEED)
        pub_key = priv_key.pub_key()

        assert pub_key.raw == ED25519_PUB
        assert len(priv_key.raw) == 64
        assert len(pub_key.address()) == keys.ADDRESS_SIZE
        assert pub_key.to_json()["type"] == "tendermint/PubKeyEd25519"
        assert priv_key.to_json()["type"] == "tendermint/PrivKeyEd25519"

    def test_secp256k1(self):
        priv_key = keys.Secp256k1PrivKey(raw=(1).to_bytes(32, "big"))
        pub_key = priv_key.pub_key()

        # The secp256k1 generator point, compressed
        assert pub_key.raw.hex() == (
            "0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
        )
        assert pub_key.address().hex() == "751e76e8199196d454941c45d1b3a323f1433bd6"

    def test_generate(self):
        for algo in (keys.ED25519, keys.SECP256K1):
            priv_key = keys.generate_priv_key(algo)
            assert priv_key.algo == algo
            assert keys.priv_key_from_json(priv_key.to_json()) == priv_key

        with pytest.raises(ValueError, match="Unsupported"):
            keys.generate_priv_key("rsa")

    def test_invalid_length(self):
        with pytest.raises(ValueError):
            keys.Ed25519PrivKey(raw=b"\x01" * 32)

    def test_priv_key_not_in_repr(self):
        priv_key = keys.Ed25519PrivKey.from_seed(ED25519_SEED)
        assert ED25519_SEED.hex() not in repr(priv_key)
        assert repr(ED25519_SEED) not in repr(priv_key)


class TestPeerAddress:
    def test_parse(self):
        peer = files.PeerAddress.parse(f"{'AB' * 20}@10.0.0.1:26656")
        assert peer.id == "ab" * 20
        assert peer.host == "10.0.0.1"
        assert peer.port == 26656
        assert str(peer) == f"{'ab' * 20}@10.0.0.1:26656"

    @pytest.mark.parametrize(
        "peer",
        (
            "",
            "10.0.0.1:26656",
            f"{'ab' * 20}@10.0.0.1",
            f"{'ab' * 19}@10.0.0.1:26656",
            f"{'zz' * 20}@10.0.0.1:26656",
            f"{'ab' * 20}@10.0.0.1:0",
            f"{'ab' * 20}@10.0.0.1:70000",
        ),
    )
    def test_invalid(self, peer: str):
        with pytest.raises(ValueError, match="peer address"):
            files.PeerAddress.parse(peer)

    @hypothesis.given(peer=st.text(alphabet=st.characters(blacklist_characters="@")))
    def test_missing_id(self, peer: str):
        with pytest.raises(ValueError):
            files.PeerAddress.parse(peer)


class TestAddressBook:
    @hypothesis.given(peers=st.lists(PEERS, min_size=1, max_size=10, unique=True))
    def test_deterministic(self, peers: list[str]):
        addrbook = files.make_address_book(peers)

        assert addrbook == files.make_address_book(peers)
        assert len(addrbook["key"]) == files.ADDRBOOK_KEY_LEN
        assert [str(files.PeerAddress(**_addr(a))) for a in addrbook["addrs"]] == peers
        for addr in addrbook["addrs"]:
            assert len(addr["buckets"]) == 1
            assert 0 <= addr["buckets"][0] < files.ADDRBOOK_NEW_BUCKETS
            assert addr["src"] == addr["addr"]
            assert addr["attempts"] == 0

    def test_different_peers_different_key(self):
        peers = [f"{'ab' * 20}@10.0.0.1:26656"]
        other_peers = [f"{'cd' * 20}@10.0.0.1:26656"]
        assert (
            files.make_address_book(peers)["key"] != files.make_address_book(other_peers)["key"]
        )

    def test_invalid_peer(self):
        with pytest.raises(ValueError):
            files.make_address_book(["foo"])


def _addr(addr: dict) -> dict:
    return {"id": addr["addr"]["id"], "host": addr["addr"]["ip"], "port": addr["addr"]["port"]}


class TestGenesis:
    def test_save_and_load(self, tmp_path):
        signer_key = keys.Ed25519PrivKey.from_seed(ED25519_SEED)
        genesis = files.GenesisDoc(
            chain_id="robusta-test",
            validators=[files.GenesisValidator(pub_key=signer_key.pub_key(), power=10, name="v0")],
            app_state={"foo": "bar"},
        )
        genesis_file = genesis.save_as(tmp_path / "genesis.json")

        content = json.loads((tmp_path / "genesis.json").read_text())
        assert content["initial_height"] == "1"
        assert content["validators"][0]["power"] == "10"
        assert content["validators"][0]["address"] == (
            signer_key.pub_key().address().hex().upper()
        )

        loaded = files.GenesisDoc.from_file(genesis_file)
        assert loaded == genesis

    def test_priv_validator(self, tmp_path):
        priv_key = keys.Ed25519PrivKey.from_seed(ED25519_SEED)
        files.write_priv_validator(
            priv_key=priv_key,
            key_file=tmp_path / "priv_validator_key.json",
            state_file=tmp_path / "priv_validator_state.json",
        )

        key_content = json.loads((tmp_path / "priv_validator_key.json").read_text())
        assert keys.priv_key_from_json(key_content["priv_key"]) == priv_key
        state_content = json.loads((tmp_path / "priv_validator_state.json").read_text())
        assert state_content == {"height": "0", "round": 0, "step": 0}


class TestNodeConfig:
    def test_config(self, tmp_path):
        peers = [f"{'ab' * 20}@10.0.0.1:26656", f"{'cd' * 20}@10.0.0.2:26656"]
        config = node_config.make_config(
            moniker="node0", external_address="10.0.0.3:26656", persistent_peers=peers
        )
        out_file = node_config.write_toml(out_file=tmp_path / "config.toml", content=config)

        loaded = toml.load(out_file)
        assert loaded["moniker"] == "node0"
        assert loaded["p2p"]["external_address"] == "tcp://10.0.0.3:26656"
        assert loaded["p2p"]["persistent_peers"] == ",".join(peers)
        assert loaded["consensus"]["timeout_propose"] == "1s"

    def test_app_config(self):
        app_config = node_config.make_app_config()
        assert app_config["minimum-gas-prices"] == "0.001utia"
        assert app_config["grpc"]["enable"]

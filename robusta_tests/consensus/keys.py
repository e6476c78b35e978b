"""Key types of the consensus protocol.

Two algorithms are supported: Edwards-curve `ed25519` (network identity keys, consensus signing
keys) and `secp256k1` (account keys, its public key is recoverable from an address signature).
Keys serialize to the Amino JSON representation used in the node's key files.
"""

import base64
import dataclasses
import hashlib
import typing as tp

import ecdsa
from Crypto.Hash import RIPEMD160
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519

ED25519 = "ed25519"
SECP256K1 = "secp256k1"

ADDRESS_SIZE = 20


@dataclasses.dataclass(frozen=True)
class PubKey:
    raw: bytes
    algo: tp.ClassVar[str] = ""
    amino_type: tp.ClassVar[str] = ""

    def address(self) -> bytes:
        raise NotImplementedError(f"Not implemented for key type '{self.algo}'.")

    def to_json(self) -> dict[str, str]:
        return {"type": self.amino_type, "value": base64.b64encode(self.raw).decode("ascii")}


@dataclasses.dataclass(frozen=True)
class PrivKey:
    raw: bytes = dataclasses.field(repr=False)
    algo: tp.ClassVar[str] = ""
    amino_type: tp.ClassVar[str] = ""

    @classmethod
    def generate(cls) -> "PrivKey":
        raise NotImplementedError(f"Not implemented for key type '{cls.algo}'.")

    def pub_key(self) -> PubKey:
        raise NotImplementedError(f"Not implemented for key type '{self.algo}'.")

    def to_json(self) -> dict[str, str]:
        return {"type": self.amino_type, "value": base64.b64encode(self.raw).decode("ascii")}


@dataclasses.dataclass(frozen=True)
class Ed25519PubKey(PubKey):
    algo: tp.ClassVar[str] = ED25519
    amino_type: tp.ClassVar[str] = "tendermint/PubKeyEd25519"

    def address(self) -> bytes:
        """Return first 20 bytes of SHA256 of the public key."""
        return hashlib.sha256(self.raw).digest()[:ADDRESS_SIZE]


@dataclasses.dataclass(frozen=True)
class Ed25519PrivKey(PrivKey):
    """Ed25519 private key, stored as 32 bytes seed followed by 32 bytes public key."""

    algo: tp.ClassVar[str] = ED25519
    amino_type: tp.ClassVar[str] = "tendermint/PrivKeyEd25519"

    def __post_init__(self) -> None:
        if len(self.raw) != 64:
            msg = f"Invalid ed25519 private key length: {len(self.raw)}"
            raise ValueError(msg)

    @classmethod
    def from_seed(cls, seed: bytes) -> "Ed25519PrivKey":
        key = ed25519.Ed25519PrivateKey.from_private_bytes(seed)
        pub = key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw, format=serialization.PublicFormat.Raw
        )
        return cls(raw=seed + pub)

    @classmethod
    def generate(cls) -> "Ed25519PrivKey":
        seed = ed25519.Ed25519PrivateKey.generate().private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption(),
        )
        return cls.from_seed(seed)

    def pub_key(self) -> Ed25519PubKey:
        return Ed25519PubKey(raw=self.raw[32:])


@dataclasses.dataclass(frozen=True)
class Secp256k1PubKey(PubKey):
    """Compressed (33 bytes) secp256k1 public key."""

    algo: tp.ClassVar[str] = SECP256K1
    amino_type: tp.ClassVar[str] = "tendermint/PubKeySecp256k1"

    def address(self) -> bytes:
        """Return RIPEMD160 of SHA256 of the compressed public key."""
        sha = hashlib.sha256(self.raw).digest()
        return RIPEMD160.new(sha).digest()


@dataclasses.dataclass(frozen=True)
class Secp256k1PrivKey(PrivKey):
    algo: tp.ClassVar[str] = SECP256K1
    amino_type: tp.ClassVar[str] = "tendermint/PrivKeySecp256k1"

    def __post_init__(self) -> None:
        if len(self.raw) != 32:
            msg = f"Invalid secp256k1 private key length: {len(self.raw)}"
            raise ValueError(msg)

    @classmethod
    def generate(cls) -> "Secp256k1PrivKey":
        return cls(raw=ecdsa.SigningKey.generate(curve=ecdsa.SECP256k1).to_string())

    def pub_key(self) -> Secp256k1PubKey:
        signing_key = ecdsa.SigningKey.from_string(self.raw, curve=ecdsa.SECP256k1)
        return Secp256k1PubKey(raw=signing_key.get_verifying_key().to_string("compressed"))


PRIV_KEY_TYPES: dict[str, type[PrivKey]] = {
    ED25519: Ed25519PrivKey,
    SECP256K1: Secp256k1PrivKey,
}


def generate_priv_key(algo: str = ED25519) -> PrivKey:
    """Generate new private key of the given algorithm."""
    key_cls = PRIV_KEY_TYPES.get(algo)
    if key_cls is None:
        msg = f"Unsupported key type: {algo}"
        raise ValueError(msg)
    return key_cls.generate()


def priv_key_from_json(content: dict[str, str]) -> PrivKey:
    """Load private key from its Amino JSON representation."""
    for key_cls in PRIV_KEY_TYPES.values():
        if content.get("type") == key_cls.amino_type:
            return key_cls(raw=base64.b64decode(content["value"]))
    msg = f"Unsupported private key type: {content.get('type')}"
    raise ValueError(msg)


def pub_key_from_json(content: dict[str, str]) -> PubKey:
    """Load public key from its Amino JSON representation."""
    for key_cls in (Ed25519PubKey, Secp256k1PubKey):
        if content.get("type") == key_cls.amino_type:
            return key_cls(raw=base64.b64decode(content["value"]))
    msg = f"Unsupported public key type: {content.get('type')}"
    raise ValueError(msg)

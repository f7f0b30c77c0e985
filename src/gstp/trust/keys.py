# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import logging
from dataclasses import dataclass
from enum import StrEnum
from importlib import import_module
from types import ModuleType
from typing import Any, NamedTuple, Protocol, Self, runtime_checkable

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.ec import EllipticCurvePrivateKey, EllipticCurvePublicKey
from cryptography.hazmat.primitives.asymmetric.ed448 import Ed448PrivateKey, Ed448PublicKey
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey, X25519PublicKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from gstp.envelope.datamodel import XID, Tagged
from gstp.envelope.exceptions import DecryptionFailed, InvalidFormat

__all__ = (  # noqa: RUF022
    'SignatureScheme',
    'EncapsulationScheme',

    'SigningPrivateKey',
    'SigningPublicKey',
    'Signature',
    'EncapsulationPrivateKey',
    'EncapsulationPublicKey',
    'PrivateKeys',
    'PublicKeys',

    'Signer',
    'Verifier',
    'Encrypter',
    'Decrypter',

    'keypair',
)


log = logging.getLogger(__name__)


class PostQuantumKey(NamedTuple):
    secret: bytes
    public: bytes


type ClassicalSigningKey = Ed25519PrivateKey | Ed448PrivateKey | EllipticCurvePrivateKey


def _load_pq_module(scheme: 'SignatureScheme | EncapsulationScheme', name: str) -> ModuleType:
    try:
        return import_module(name)
    except ImportError as exc:
        raise RuntimeError(f'The {scheme} scheme requires the pqcrypto package (install it with: pip install gstp[pq])') from exc


class SignatureScheme(StrEnum):
    ED25519 = 'Ed25519'
    ED448 = 'Ed448'
    ECDSA = 'ECDSA'
    MLDSA44 = 'MLDSA44'
    MLDSA65 = 'MLDSA65'
    MLDSA87 = 'MLDSA87'

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}.{self.name}'

    @property
    def is_post_quantum(self) -> bool:
        return self in {SignatureScheme.MLDSA44, SignatureScheme.MLDSA65, SignatureScheme.MLDSA87}

    @property
    def pq_module(self) -> ModuleType:
        match self:
            case SignatureScheme.MLDSA44:
                return _load_pq_module(self, 'pqcrypto.sign.ml_dsa_44')
            case SignatureScheme.MLDSA65:
                return _load_pq_module(self, 'pqcrypto.sign.ml_dsa_65')
            case SignatureScheme.MLDSA87:
                return _load_pq_module(self, 'pqcrypto.sign.ml_dsa_87')
            case _:
                raise ValueError(f'{self!r} is not a post-quantum signature scheme')

    def generate(self) -> 'SigningPrivateKey':
        match self:
            case SignatureScheme.ED25519:
                return SigningPrivateKey(self, Ed25519PrivateKey.generate())
            case SignatureScheme.ED448:
                return SigningPrivateKey(self, Ed448PrivateKey.generate())
            case SignatureScheme.ECDSA:
                return SigningPrivateKey(self, ec.generate_private_key(ec.SECP256R1()))
            case SignatureScheme.MLDSA44 | SignatureScheme.MLDSA65 | SignatureScheme.MLDSA87:
                public, secret = self.pq_module.generate_keypair()
                return SigningPrivateKey(self, PostQuantumKey(secret=secret, public=public))


class EncapsulationScheme(StrEnum):
    X25519 = 'X25519'
    MLKEM512 = 'MLKEM512'
    MLKEM768 = 'MLKEM768'
    MLKEM1024 = 'MLKEM1024'

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}.{self.name}'

    @property
    def is_post_quantum(self) -> bool:
        return self is not EncapsulationScheme.X25519

    @property
    def pq_module(self) -> ModuleType:
        match self:
            case EncapsulationScheme.MLKEM512:
                return _load_pq_module(self, 'pqcrypto.kem.ml_kem_512')
            case EncapsulationScheme.MLKEM768:
                return _load_pq_module(self, 'pqcrypto.kem.ml_kem_768')
            case EncapsulationScheme.MLKEM1024:
                return _load_pq_module(self, 'pqcrypto.kem.ml_kem_1024')
            case _:
                raise ValueError(f'{self!r} is not a post-quantum encapsulation scheme')

    def generate(self) -> 'EncapsulationPrivateKey':
        match self:
            case EncapsulationScheme.X25519:
                return EncapsulationPrivateKey(self, X25519PrivateKey.generate())
            case EncapsulationScheme.MLKEM512 | EncapsulationScheme.MLKEM768 | EncapsulationScheme.MLKEM1024:
                public, secret = self.pq_module.generate_keypair()
                return EncapsulationPrivateKey(self, PostQuantumKey(secret=secret, public=public))


def _scheme_and_data[S: (SignatureScheme, EncapsulationScheme)](value: Any, scheme_type: type[S], what: str) -> tuple[S, bytes]:  # noqa: ANN401
    match value:
        case [str() as scheme, bytes() as data]:
            try:
                return scheme_type(scheme), data
            except ValueError as exc:
                raise InvalidFormat(f'Unknown {what} scheme: {scheme!r}') from exc
        case _:
            raise InvalidFormat(f'Invalid {what} encoding: {value!r}')


# Signing

@dataclass(frozen=True)
class Signature(Tagged, tag=40020):
    scheme: SignatureScheme
    data: bytes

    def to_cbor(self) -> list[object]:
        return [str(self.scheme), self.data]

    @classmethod
    def from_cbor(cls, value: Any) -> Self:  # noqa: ANN401
        return cls(*_scheme_and_data(value, SignatureScheme, 'signature'))

    def summary(self) -> str:
        return 'Signature' if self.scheme is SignatureScheme.ED25519 else f'Signature({self.scheme})'


@dataclass(frozen=True, eq=False)
class SigningPrivateKey:
    scheme: SignatureScheme
    key: ClassicalSigningKey | PostQuantumKey

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}({self.scheme!r})'

    def public_key(self) -> 'SigningPublicKey':
        match self.key:
            case Ed25519PrivateKey() | Ed448PrivateKey():
                data = self.key.public_key().public_bytes_raw()
            case EllipticCurvePrivateKey():
                data = self.key.public_key().public_bytes(Encoding.X962, PublicFormat.CompressedPoint)
            case PostQuantumKey(public=public):
                data = public
        return SigningPublicKey(self.scheme, data)

    def sign(self, message: bytes) -> Signature:
        match self.key:
            case Ed25519PrivateKey() | Ed448PrivateKey():
                data = self.key.sign(message)
            case EllipticCurvePrivateKey():
                data = self.key.sign(message, ec.ECDSA(hashes.SHA256()))
            case PostQuantumKey(secret=secret):
                data = self.scheme.pq_module.sign(secret, message)
        return Signature(self.scheme, data)


@dataclass(frozen=True)
class SigningPublicKey(Tagged, tag=40022):
    scheme: SignatureScheme
    data: bytes

    def to_cbor(self) -> list[object]:
        return [str(self.scheme), self.data]

    @classmethod
    def from_cbor(cls, value: Any) -> Self:  # noqa: ANN401
        return cls(*_scheme_and_data(value, SignatureScheme, 'signing key'))

    def summary(self) -> str:
        return f'SigningPublicKey({self.scheme})'

    def verify(self, signature: Signature, message: bytes) -> bool:
        if signature.scheme is not self.scheme:
            return False
        try:
            match self.scheme:
                case SignatureScheme.ED25519:
                    Ed25519PublicKey.from_public_bytes(self.data).verify(signature.data, message)
                case SignatureScheme.ED448:
                    Ed448PublicKey.from_public_bytes(self.data).verify(signature.data, message)
                case SignatureScheme.ECDSA:
                    public_key = EllipticCurvePublicKey.from_encoded_point(ec.SECP256R1(), self.data)
                    public_key.verify(signature.data, message, ec.ECDSA(hashes.SHA256()))
                case _:
                    return bool(self.scheme.pq_module.verify(self.data, message, signature.data))
        except (InvalidSignature, ValueError):
            return False
        except RuntimeError as exc:
            log.debug('Cannot verify %s signature: %s', self.scheme, exc)
            return False
        return True


# Encapsulation

@dataclass(frozen=True)
class EncapsulationPublicKey(Tagged, tag=40011):
    scheme: EncapsulationScheme
    data: bytes

    def to_cbor(self) -> list[object]:
        return [str(self.scheme), self.data]

    @classmethod
    def from_cbor(cls, value: Any) -> Self:  # noqa: ANN401
        return cls(*_scheme_and_data(value, EncapsulationScheme, 'encapsulation key'))

    def summary(self) -> str:
        return f'EncapsulationPublicKey({self.scheme})'

    def encapsulation_public_key(self) -> Self:
        return self

    def encapsulate(self) -> tuple[bytes, bytes]:
        """Return a new shared secret and the ciphertext that conveys it to the owner of this key"""
        match self.scheme:
            case EncapsulationScheme.X25519:
                ephemeral_key = X25519PrivateKey.generate()
                shared_secret = ephemeral_key.exchange(X25519PublicKey.from_public_bytes(self.data))
                return shared_secret, ephemeral_key.public_key().public_bytes_raw()
            case _:
                ciphertext, shared_secret = self.scheme.pq_module.encrypt(self.data)
                return shared_secret, ciphertext


@dataclass(frozen=True, eq=False)
class EncapsulationPrivateKey:
    scheme: EncapsulationScheme
    key: X25519PrivateKey | PostQuantumKey

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}({self.scheme!r})'

    def encapsulation_private_key(self) -> Self:
        return self

    def public_key(self) -> EncapsulationPublicKey:
        match self.key:
            case X25519PrivateKey():
                return EncapsulationPublicKey(self.scheme, self.key.public_key().public_bytes_raw())
            case PostQuantumKey(public=public):
                return EncapsulationPublicKey(self.scheme, public)

    def decapsulate(self, ciphertext: bytes) -> bytes:
        """Recover the shared secret conveyed by the ciphertext"""
        try:
            match self.key:
                case X25519PrivateKey():
                    return self.key.exchange(X25519PublicKey.from_public_bytes(ciphertext))
                case PostQuantumKey(secret=secret):
                    return self.scheme.pq_module.decrypt(secret, ciphertext)
        except ValueError as exc:
            raise DecryptionFailed(f'Cannot decapsulate the shared secret: {exc}') from exc


# Key bundles

@dataclass(frozen=True)
class PublicKeys(Tagged, tag=40017):
    signing_key: SigningPublicKey
    encapsulation_key: EncapsulationPublicKey

    def to_cbor(self) -> list[object]:
        return [self.signing_key, self.encapsulation_key]

    @classmethod
    def from_cbor(cls, value: Any) -> Self:  # noqa: ANN401
        match value:
            case [SigningPublicKey() as signing_key, EncapsulationPublicKey() as encapsulation_key]:
                return cls(signing_key, encapsulation_key)
            case _:
                raise InvalidFormat(f'Invalid public keys encoding: {value!r}')

    def summary(self) -> str:
        return f'PublicKeys({self.xid.short_description})'

    @property
    def xid(self) -> XID:
        return XID.for_key(self.signing_key)

    def signing_public_key(self) -> SigningPublicKey:
        return self.signing_key

    def encapsulation_public_key(self) -> EncapsulationPublicKey:
        return self.encapsulation_key

    def verify(self, signature: Signature, message: bytes) -> bool:
        return self.signing_key.verify(signature, message)


@dataclass(frozen=True, eq=False)
class PrivateKeys:
    signing_key: SigningPrivateKey
    encapsulation_key: EncapsulationPrivateKey

    def public_keys(self) -> PublicKeys:
        return PublicKeys(self.signing_key.public_key(), self.encapsulation_key.public_key())

    def encapsulation_private_key(self) -> EncapsulationPrivateKey:
        return self.encapsulation_key

    def sign(self, message: bytes) -> Signature:
        return self.signing_key.sign(message)


# Capabilities

@runtime_checkable
class Signer(Protocol):
    def sign(self, message: bytes) -> Signature: ...


@runtime_checkable
class Verifier(Protocol):
    def verify(self, signature: Signature, message: bytes) -> bool: ...


@runtime_checkable
class Encrypter(Protocol):
    def encapsulation_public_key(self) -> EncapsulationPublicKey: ...


@runtime_checkable
class Decrypter(Protocol):
    def encapsulation_private_key(self) -> EncapsulationPrivateKey: ...


def keypair(signature_scheme: SignatureScheme = SignatureScheme.ED25519, encapsulation_scheme: EncapsulationScheme = EncapsulationScheme.X25519) -> tuple[PrivateKeys, PublicKeys]:
    """Generate a new set of private keys along with their public counterparts"""
    private_keys = PrivateKeys(signature_scheme.generate(), encapsulation_scheme.generate())
    return private_keys, private_keys.public_keys()

# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from collections.abc import Buffer
from dataclasses import dataclass
from secrets import token_bytes as secure_random_bytes
from typing import Any, Self

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from gstp.envelope.datamodel import Digest, FixedSize, Tagged
from gstp.envelope.exceptions import DecryptionFailed, InvalidFormat

from .keys import Decrypter, EncapsulationScheme, Encrypter

__all__ = 'SymmetricKey', 'Nonce', 'EncryptedMessage', 'SealedMessage'  # noqa: RUF022


SEALED_MESSAGE_INFO = b'gstp sealed message'


class Nonce(FixedSize, size=12):
    @classmethod
    def generate(cls) -> Self:
        return cls(secure_random_bytes(cls._size_))


@dataclass(frozen=True)
class EncryptedMessage:
    ciphertext: bytes
    nonce: Nonce
    aad: bytes

    @property
    def digest(self) -> Digest:
        """The digest of the plaintext, when the message was encrypted with the digest as additional data"""
        return Digest(self.aad)


class SymmetricKey(FixedSize, size=32):
    """A ChaCha20-Poly1305 key"""

    @classmethod
    def generate(cls) -> Self:
        return cls(ChaCha20Poly1305.generate_key())

    def encrypt(self, plaintext: Buffer, aad: Buffer = b'', nonce: Nonce | None = None) -> EncryptedMessage:
        nonce = nonce if nonce is not None else Nonce.generate()
        aad = bytes(aad)
        return EncryptedMessage(ciphertext=ChaCha20Poly1305(self).encrypt(nonce, bytes(plaintext), aad), nonce=nonce, aad=aad)

    def decrypt(self, message: EncryptedMessage) -> bytes:
        try:
            return ChaCha20Poly1305(self).decrypt(message.nonce, message.ciphertext, message.aad)
        except InvalidTag as exc:
            raise DecryptionFailed('The message failed authentication') from exc


@dataclass(frozen=True)
class SealedMessage(Tagged, tag=40019):
    """A message that can only be opened by the owner of the private key matching the encapsulation key it was sealed to"""

    scheme: EncapsulationScheme
    encapsulated_key: bytes
    message: EncryptedMessage

    @staticmethod
    def _wrapping_key(shared_secret: bytes, encapsulated_key: bytes) -> SymmetricKey:
        hkdf = HKDF(algorithm=hashes.SHA256(), length=SymmetricKey._size_, salt=encapsulated_key, info=SEALED_MESSAGE_INFO)
        return SymmetricKey(hkdf.derive(shared_secret))

    @classmethod
    def seal(cls, plaintext: Buffer, recipient: Encrypter) -> Self:
        public_key = recipient.encapsulation_public_key()
        shared_secret, encapsulated_key = public_key.encapsulate()
        message = cls._wrapping_key(shared_secret, encapsulated_key).encrypt(plaintext)
        return cls(scheme=public_key.scheme, encapsulated_key=encapsulated_key, message=message)

    def open(self, decrypter: Decrypter) -> bytes:
        private_key = decrypter.encapsulation_private_key()
        if private_key.scheme is not self.scheme:
            raise DecryptionFailed(f'The message was sealed with {self.scheme}, not {private_key.scheme}')
        shared_secret = private_key.decapsulate(self.encapsulated_key)
        return self._wrapping_key(shared_secret, self.encapsulated_key).decrypt(self.message)

    def to_cbor(self) -> list[object]:
        return [str(self.scheme), self.encapsulated_key, self.message.ciphertext, bytes(self.message.nonce)]

    @classmethod
    def from_cbor(cls, value: Any) -> Self:  # noqa: ANN401
        match value:
            case [str() as scheme, bytes() as encapsulated_key, bytes() as ciphertext, bytes() as nonce]:
                try:
                    return cls(scheme=EncapsulationScheme(scheme), encapsulated_key=encapsulated_key, message=EncryptedMessage(ciphertext, Nonce(nonce), b''))
                except ValueError as exc:
                    raise InvalidFormat(f'Invalid sealed message: {exc}') from exc
            case _:
                raise InvalidFormat(f'Invalid sealed message encoding: {value!r}')

    def summary(self) -> str:
        return 'SealedMessage' if self.scheme is EncapsulationScheme.X25519 else f'SealedMessage({self.scheme})'

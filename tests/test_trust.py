# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from types import ModuleType

import pytest
from gstp.envelope import KEY, XID, DecryptionFailed, Envelope, cbor_decode, cbor_encode
from gstp.trust import (
    Decrypter,
    EncapsulationPublicKey,
    EncapsulationScheme,
    Encrypter,
    Nonce,
    PrivateKeys,
    PublicKeys,
    SealedMessage,
    Signature,
    SignatureScheme,
    Signer,
    SigningPublicKey,
    SymmetricKey,
    Verifier,
    keypair,
)
from gstp.trust.identity import IdentityError, XIDDocument

CLASSICAL_SIGNATURE_SCHEMES = [SignatureScheme.ED25519, SignatureScheme.ED448, SignatureScheme.ECDSA]


class TestKeys:

    def test_protocols(self) -> None:
        private_keys, public_keys = keypair()
        assert isinstance(private_keys, Signer)
        assert isinstance(private_keys, Decrypter)
        assert isinstance(public_keys, Verifier)
        assert isinstance(public_keys, Encrypter)
        assert isinstance(private_keys.signing_key, Signer)
        assert isinstance(public_keys.signing_key, Verifier)
        assert isinstance(public_keys.encapsulation_key, Encrypter)
        assert isinstance(private_keys.encapsulation_key, Decrypter)

    def test_schemes(self) -> None:
        assert repr(SignatureScheme.ED25519) == 'SignatureScheme.ED25519'
        assert repr(EncapsulationScheme.X25519) == 'EncapsulationScheme.X25519'
        assert not SignatureScheme.ED25519.is_post_quantum
        assert SignatureScheme.MLDSA44.is_post_quantum
        assert EncapsulationScheme.MLKEM512.is_post_quantum
        with pytest.raises(ValueError, match='is not a post-quantum signature scheme'):
            SignatureScheme.ED25519.pq_module  # noqa: B018
        with pytest.raises(ValueError, match='is not a post-quantum encapsulation scheme'):
            EncapsulationScheme.X25519.pq_module  # noqa: B018

    @pytest.mark.parametrize('scheme', CLASSICAL_SIGNATURE_SCHEMES)
    def test_signing(self, scheme: SignatureScheme) -> None:
        private_key = scheme.generate()
        public_key = private_key.public_key()
        assert public_key.scheme is scheme
        signature = private_key.sign(b'message')
        assert signature.scheme is scheme
        assert public_key.verify(signature, b'message')
        assert not public_key.verify(signature, b'another message')
        assert not scheme.generate().public_key().verify(signature, b'message')
        assert cbor_decode(cbor_encode(signature)) == signature
        assert cbor_decode(cbor_encode(public_key)) == public_key

    def test_signing_scheme_mismatch(self) -> None:
        signature = SignatureScheme.ED25519.generate().sign(b'message')
        public_key = SignatureScheme.ED448.generate().public_key()
        assert not public_key.verify(signature, b'message')
        assert not SigningPublicKey(SignatureScheme.ED25519, b'invalid').verify(signature, b'message')

    def test_post_quantum_backend_missing(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def missing_module(name: str) -> ModuleType:
            raise ImportError(f'No module named {name!r}')

        monkeypatch.setattr('gstp.trust.keys.import_module', missing_module)
        with pytest.raises(RuntimeError, match=r'install it with: pip install gstp\[pq\]'):
            SignatureScheme.MLDSA44.generate()
        public_key = SigningPublicKey(SignatureScheme.MLDSA44, bytes(1312))
        assert not public_key.verify(Signature(SignatureScheme.MLDSA44, bytes(2420)), b'message')

    def test_signature_summary(self) -> None:
        assert Signature(SignatureScheme.ED25519, b'').summary() == 'Signature'
        assert Signature(SignatureScheme.MLDSA44, b'').summary() == 'Signature(MLDSA44)'

    def test_encapsulation(self) -> None:
        private_key = EncapsulationScheme.X25519.generate()
        public_key = private_key.public_key()
        shared_secret, ciphertext = public_key.encapsulate()
        assert len(shared_secret) == 32
        assert private_key.decapsulate(ciphertext) == shared_secret
        assert EncapsulationScheme.X25519.generate().decapsulate(ciphertext) != shared_secret
        assert cbor_decode(cbor_encode(public_key)) == public_key
        with pytest.raises(DecryptionFailed, match='Cannot decapsulate the shared secret'):
            private_key.decapsulate(b'invalid')

    def test_keypair(self) -> None:
        private_keys, public_keys = keypair(SignatureScheme.ECDSA)
        assert isinstance(private_keys, PrivateKeys)
        assert isinstance(public_keys, PublicKeys)
        assert public_keys.signing_key.scheme is SignatureScheme.ECDSA
        assert public_keys.encapsulation_key.scheme is EncapsulationScheme.X25519
        assert private_keys.public_keys() == public_keys
        assert public_keys.xid == XID.for_key(public_keys.signing_key)
        assert public_keys.verify(private_keys.sign(b'message'), b'message')
        assert cbor_decode(cbor_encode(public_keys)) == public_keys


class TestEncryption:

    def test_symmetric_key(self) -> None:
        key = SymmetricKey.generate()
        message = key.encrypt(b'plaintext', aad=b'additional data')
        assert isinstance(message.nonce, Nonce)
        assert message.ciphertext != b'plaintext'
        assert key.decrypt(message) == b'plaintext'
        with pytest.raises(DecryptionFailed, match='The message failed authentication'):
            SymmetricKey.generate().decrypt(message)
        with pytest.raises(DecryptionFailed, match='The message failed authentication'):
            key.decrypt(message.__class__(ciphertext=message.ciphertext, nonce=message.nonce, aad=b'other data'))

    def test_sealed_message(self) -> None:
        private_keys, public_keys = keypair()
        other_private_keys, _ = keypair()
        sealed = SealedMessage.seal(b'secret', public_keys)
        assert sealed.scheme is EncapsulationScheme.X25519
        assert sealed.summary() == 'SealedMessage'
        assert sealed.open(private_keys) == b'secret'
        assert sealed.open(private_keys.encapsulation_key) == b'secret'
        decoded = cbor_decode(cbor_encode(sealed))
        assert isinstance(decoded, SealedMessage)
        assert decoded.open(private_keys) == b'secret'
        with pytest.raises(DecryptionFailed):
            sealed.open(other_private_keys)


class TestIdentity:

    def test_document(self) -> None:
        private_keys, public_keys = keypair()
        document = XIDDocument.from_public_keys(public_keys)
        assert document == XIDDocument.from_private_keys(private_keys)
        assert document.xid == public_keys.xid
        assert document.verification_key() == public_keys.signing_key
        assert document.encryption_key() == public_keys.encapsulation_key
        assert XIDDocument.from_envelope(document.to_envelope()) == document
        assert XIDDocument.from_envelope(Envelope.from_bytes(document.to_envelope().to_bytes())) == document

    def test_partial_document(self) -> None:
        _, public_keys = keypair()
        document = XIDDocument.from_verification_key(public_keys.signing_key)
        assert document.encryption_key() is None
        assert XIDDocument(xid=document.xid).verification_key() is None
        document = document.with_encryption_key(public_keys.encapsulation_key)
        assert document.encryption_key() == public_keys.encapsulation_key
        assert isinstance(document.encryption_key(), EncapsulationPublicKey)

    def test_invalid_document(self) -> None:
        _, public_keys = keypair()
        with pytest.raises(IdentityError, match='The identity document subject is not an XID'):
            XIDDocument.from_envelope(Envelope.new('not an identity'))
        with pytest.raises(IdentityError, match='Unsupported identity document key'):
            XIDDocument.from_envelope(Envelope.new(public_keys.xid).add_assertion(KEY, 'not a key'))

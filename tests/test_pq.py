# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from datetime import UTC, datetime, timedelta

import pytest
from gstp.envelope import ARID, SENDER_CONTINUATION, Envelope, cbor_decode, cbor_encode
from gstp.messages import Continuation, ContinuationExpired, ContinuationIdInvalid, SealedEnvelopeError, SealedEvent, SealedRequest, SealedResponse
from gstp.trust import EncapsulationScheme, SealedMessage, SignatureScheme, keypair
from gstp.trust.identity import XIDDocument

pytest.importorskip('pqcrypto')


REQUEST_ID = ARID(bytes.fromhex('c66be27dbad7cd095ca77647406d07976dc0f35f0d4d654bb0e96dd227a1e9fc'))
REQUEST_DATE = datetime(2024, 7, 4, 11, 11, 11, tzinfo=UTC)


class TestPostQuantum:

    @pytest.mark.parametrize('scheme', [SignatureScheme.MLDSA44, SignatureScheme.MLDSA65, SignatureScheme.MLDSA87])
    def test_signing(self, scheme: SignatureScheme) -> None:
        private_key = scheme.generate()
        public_key = private_key.public_key()
        signature = private_key.sign(b'message')
        assert signature.scheme is scheme
        assert signature.summary() == f'Signature({scheme.name})'
        assert public_key.verify(signature, b'message')
        assert not public_key.verify(signature, b'another message')
        assert not SignatureScheme.ED25519.generate().public_key().verify(signature, b'message')
        assert cbor_decode(cbor_encode(signature)) == signature

    @pytest.mark.parametrize('scheme', [EncapsulationScheme.MLKEM512, EncapsulationScheme.MLKEM768, EncapsulationScheme.MLKEM1024])
    def test_encapsulation(self, scheme: EncapsulationScheme) -> None:
        private_key = scheme.generate()
        shared_secret, ciphertext = private_key.public_key().encapsulate()
        assert private_key.decapsulate(ciphertext) == shared_secret
        sealed = SealedMessage.seal(b'secret', private_key.public_key())
        assert sealed.summary() == f'SealedMessage({scheme.name})'
        assert sealed.open(private_key) == b'secret'

    def test_request_response_exchange(self) -> None:
        now = datetime.now(UTC).replace(microsecond=0)
        client_private_keys, client_public_keys = keypair(SignatureScheme.MLDSA44, EncapsulationScheme.MLKEM512)
        server_private_keys, server_public_keys = keypair(SignatureScheme.MLDSA44, EncapsulationScheme.MLKEM512)
        client = XIDDocument.from_public_keys(client_public_keys)
        server = XIDDocument.from_public_keys(server_public_keys)

        client_request = SealedRequest.new('test', REQUEST_ID, client).with_parameter('param1', 42).with_state('The state of things.')
        sealed_request = client_request.to_envelope(now + timedelta(seconds=60), client_private_keys, server)
        assert sealed_request.format() == "ENCRYPTED [\n    'hasRecipient': SealedMessage(MLKEM512)\n]"

        parsed_request = SealedRequest.try_from_envelope(sealed_request.to_bytes(), None, now, server_private_keys)
        assert parsed_request.request == client_request.request
        assert parsed_request.sender == client
        assert parsed_request.state is None

        server_response = SealedResponse.new_success(parsed_request.id, server).with_result('ok').with_optional_peer_continuation(parsed_request.peer_continuation)
        sealed_response = server_response.to_envelope(None, server_private_keys, client)
        parsed_response = SealedResponse.try_from_envelope(sealed_response.to_bytes(), REQUEST_ID, now, client_private_keys)
        assert parsed_response.extract_result(str) == 'ok'
        assert parsed_response.state == Envelope.new('The state of things.')

        with pytest.raises(SealedEnvelopeError):
            SealedResponse.try_from_envelope(sealed_response, REQUEST_ID, now, server_private_keys)

    def test_encrypted_continuation(self) -> None:
        private_keys, public_keys = keypair(SignatureScheme.MLDSA44, EncapsulationScheme.MLKEM512)
        continuation = Continuation.new('The state of things.').with_valid_id(REQUEST_ID).with_valid_until(REQUEST_DATE + timedelta(seconds=60))
        envelope = continuation.to_envelope(public_keys)
        assert envelope.format() == "ENCRYPTED [\n    'hasRecipient': SealedMessage(MLKEM512)\n]"

        valid_now = REQUEST_DATE + timedelta(seconds=30)
        assert Continuation.try_from_envelope(envelope, REQUEST_ID, valid_now, private_keys) == continuation
        with pytest.raises(ContinuationExpired):
            Continuation.try_from_envelope(envelope, REQUEST_ID, REQUEST_DATE + timedelta(seconds=90), private_keys)
        with pytest.raises(ContinuationIdInvalid):
            Continuation.try_from_envelope(envelope, ARID.generate(), valid_now, private_keys)

    def test_sealed_event(self) -> None:
        private_keys, public_keys = keypair(SignatureScheme.MLDSA44, EncapsulationScheme.MLKEM512)
        sender = XIDDocument.from_public_keys(public_keys)
        event = SealedEvent.new('test', REQUEST_ID, sender).with_note('This is a test').with_date(REQUEST_DATE)
        envelope = event.to_envelope(None, private_keys)
        assert not envelope.is_encrypted
        assert envelope.verify(public_keys).assertions_with_predicate(SENDER_CONTINUATION) == []

        parsed = SealedEvent.try_from_envelope(envelope.to_bytes(), content_type=str)
        assert parsed.content == 'test'
        assert parsed.id == REQUEST_ID
        assert parsed.note == 'This is a test'
        assert parsed.date == REQUEST_DATE
        assert parsed.sender == sender
        assert parsed.state is None
        assert parsed.peer_continuation is None

# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from datetime import UTC, datetime, timedelta, timezone

import cbor2
import pytest
from gstp.envelope import (
    ARID,
    BODY,
    DATE,
    HAS_RECIPIENT,
    NOTE,
    OK_VALUE,
    SIGNED,
    UNKNOWN_VALUE,
    AmbiguousPredicate,
    Digest,
    Encrypted,
    Envelope,
    Event,
    Expression,
    Function,
    InvalidFormat,
    InvalidSignature,
    InvalidType,
    KnownValue,
    Leaf,
    NonexistentPredicate,
    NotEncrypted,
    NotWrapped,
    Parameter,
    Request,
    Response,
    TagRegistry,
    UnknownRecipient,
    Wrapped,
    cbor_decode,
    cbor_encode,
    register_tags,
    summarize,
)
from gstp.trust import keypair

REQUEST_ID = ARID(bytes.fromhex('c66be27dbad7cd095ca77647406d07976dc0f35f0d4d654bb0e96dd227a1e9fc'))
REQUEST_DATE = datetime(2024, 7, 4, 11, 11, 11, tzinfo=UTC)


class TestDataModel:

    def test_fixed_size(self) -> None:
        assert len(ARID.generate()) == 32
        assert ARID.generate() != ARID.generate()
        assert REQUEST_ID.short_description == 'c66be27d'
        assert REQUEST_ID.summary() == 'ARID(c66be27d)'
        with pytest.raises(ValueError, match="'ARID' objects must have 32 bytes"):
            ARID(b'too short')

    def test_digest(self) -> None:
        assert Digest.from_image(b'hello', b'world') == Digest.from_image(b'helloworld')
        assert Envelope.new('Hello').digest == Digest.from_image(cbor_encode('Hello'))

    def test_tag_registry(self) -> None:
        register_tags()
        register_tags()
        assert TagRegistry.get_type(40012) is ARID
        assert TagRegistry.get_type(40006) is Function
        assert TagRegistry.get_name(40004) == 'request'
        assert TagRegistry.get_type(12345) is None
        with pytest.raises(ValueError, match='CBOR tag 40012 is already associated with'):
            TagRegistry.associate(40012, Function)

    def test_codec(self) -> None:
        assert cbor_decode(cbor_encode(REQUEST_ID)) == REQUEST_ID
        assert isinstance(cbor_decode(cbor_encode(REQUEST_ID)), ARID)
        assert cbor_decode(cbor_encode(REQUEST_DATE)) == REQUEST_DATE
        assert cbor_decode(cbor_encode(datetime(2024, 7, 4, 13, 11, 11, tzinfo=timezone(timedelta(hours=2))))) == REQUEST_DATE
        assert cbor_encode({'b': 1, 'a': 2}) == cbor_encode({'a': 2, 'b': 1})
        unknown = cbor_decode(cbor_encode(cbor2.CBORTag(12345, 'value')))
        assert unknown == cbor2.CBORTag(12345, 'value')
        with pytest.raises(ValueError, match='Dates must be timezone aware'):
            cbor_encode(datetime(2024, 7, 4, 11, 11, 11))  # noqa: DTZ001
        with pytest.raises(InvalidFormat, match='Invalid CBOR data'):
            cbor_decode(b'\xff')

    def test_summarize(self) -> None:
        assert summarize('Hello') == '"Hello"'
        assert summarize(42) == '42'
        assert summarize(True) == 'true'  # noqa: FBT003
        assert summarize(None) == 'null'
        assert summarize(b'\x00\x01') == 'Bytes(2)'
        assert summarize(REQUEST_DATE) == '2024-07-04T11:11:11Z'
        assert summarize(cbor2.CBORTag(40004, REQUEST_ID)) == 'request(ARID(c66be27d))'
        assert summarize(cbor2.CBORTag(12345, 1)) == '12345(1)'
        assert summarize([1, 'a']) == '[1, "a"]'


class TestKnownValues:

    def test_lookup(self) -> None:
        assert KnownValue.lookup(100) is BODY
        assert KnownValue.lookup('body') is BODY
        assert KnownValue.lookup('OK') is OK_VALUE
        assert KnownValue.lookup('Unknown') is UNKNOWN_VALUE
        with pytest.raises(KeyError):
            KnownValue.lookup('no such value')

    def test_registration(self) -> None:
        with pytest.raises(ValueError, match='The known value is already used by another KnownValue'):
            KnownValue(100, 'anotherBody')
        with pytest.raises(ValueError, match='The known value name is already used by another KnownValue'):
            KnownValue(9999, 'body')
        with pytest.raises(ValueError, match='Known values must be non-negative integers'):
            KnownValue(-1, 'negative')

    def test_encoding(self) -> None:
        assert BODY.summary() == "'body'"
        assert cbor_decode(cbor_encode(NOTE)) is NOTE
        with pytest.raises(InvalidFormat):
            cbor_decode(cbor_encode(cbor2.CBORTag(40000, 9998)))


class TestEnvelope:

    def test_leaf(self) -> None:
        envelope = Envelope.new('Hello')
        assert isinstance(envelope, Leaf)
        assert envelope.subject is envelope
        assert envelope.assertions == ()
        assert envelope.extract_subject(str) == 'Hello'
        assert Envelope.new(42).extract_subject(int) == 42
        assert Envelope.new(42).extract_subject(float) == 42.0
        assert Envelope.new(REQUEST_DATE).extract_subject(datetime) == REQUEST_DATE
        assert Envelope.new(REQUEST_ID).extract_subject(ARID) == REQUEST_ID
        assert Envelope.new(envelope) is envelope
        assert Envelope.null().is_null
        assert not envelope.is_null
        with pytest.raises(InvalidType, match="Expected a 'int' value"):
            envelope.extract_subject(int)
        with pytest.raises(InvalidType, match="Expected a 'int' value"):
            Envelope.new(True).extract_subject(int)  # noqa: FBT003

    def test_equality(self) -> None:
        assert Envelope.new('Hello') == Envelope.new('Hello')
        assert Envelope.new('Hello') != Envelope.new('World')
        assert hash(Envelope.new('Hello')) == hash(Envelope.new('Hello'))
        first = Envelope.new('Hello').add_assertion(NOTE, 'a').add_assertion(DATE, REQUEST_DATE)
        second = Envelope.new('Hello').add_assertion(DATE, REQUEST_DATE).add_assertion(NOTE, 'a')
        assert first == second
        assert first.to_bytes() == second.to_bytes()
        assert len(first.add_assertion(NOTE, 'a').assertions) == 2

    def test_assertions(self) -> None:
        envelope = Envelope.new('Hello').add_assertion(NOTE, 'a').add_optional_assertion(DATE, None).add_assertion_if(False, BODY, 'x')  # noqa: FBT003
        assert len(envelope.assertions) == 1
        assert envelope.subject == Envelope.new('Hello')
        assert envelope.extract_object_for_predicate(NOTE, str) == 'a'
        assert envelope.extract_optional_object_for_predicate(DATE, datetime) is None
        assert envelope.optional_object_for_predicate(BODY) is None
        assert envelope.objects_for_predicate(DATE) == []
        with pytest.raises(NonexistentPredicate, match="no assertion with the 'date' predicate"):
            envelope.object_for_predicate(DATE)
        envelope = envelope.add_assertion(NOTE, 'b')
        assert sorted(envelope.extract_objects_for_predicate(NOTE, str)) == ['a', 'b']
        with pytest.raises(AmbiguousPredicate, match="more than one assertion with the 'note' predicate"):
            envelope.object_for_predicate(NOTE)

    def test_wrapping(self) -> None:
        envelope = Envelope.new('Hello').add_assertion(NOTE, 'a')
        wrapped = envelope.wrap()
        assert isinstance(wrapped, Wrapped)
        assert wrapped.is_wrapped
        assert wrapped.digest == Digest.from_image(envelope.digest)
        assert wrapped.try_unwrap() == envelope
        assert wrapped.extract_subject(Envelope) == wrapped
        with pytest.raises(NotWrapped):
            envelope.try_unwrap()

    def test_serialization(self) -> None:
        envelope = Envelope.new('Hello').add_assertion(NOTE, 'a').add_assertion(DATE, REQUEST_DATE).add_assertion(BODY, Envelope.new(42).wrap())
        data = envelope.to_bytes()
        decoded = Envelope.from_bytes(data)
        assert decoded == envelope
        assert decoded.to_bytes() == data
        assert decoded.extract_object_for_predicate(DATE, datetime) == REQUEST_DATE
        assert Envelope.from_bytes(Envelope.new(OK_VALUE).to_bytes()).extract_subject(KnownValue) is OK_VALUE
        with pytest.raises(InvalidFormat, match='The data does not represent an envelope'):
            Envelope.from_bytes(b'\x00')
        with pytest.raises(InvalidFormat, match='Invalid envelope data'):
            Envelope.from_bytes(b'\xff')
        with pytest.raises(InvalidFormat, match='Envelope nodes can only contain assertions'):
            Envelope.from_bytes(cbor2.dumps(cbor2.CBORTag(200, [cbor2.CBORTag(201, 'Hello'), cbor2.CBORTag(201, 'World')])))

    def test_format(self) -> None:
        envelope = Envelope.new('Hello').add_assertion(NOTE, 'a').add_assertion(DATE, REQUEST_DATE)
        assert envelope.format() == '"Hello" [\n    \'date\': 2024-07-04T11:11:11Z\n    \'note\': "a"\n]'
        assert envelope.format_flat() == '"Hello" [ \'date\': 2024-07-04T11:11:11Z, \'note\': "a" ]'
        assert envelope.wrap().format() == '{\n    "Hello" [\n        \'date\': 2024-07-04T11:11:11Z\n        \'note\': "a"\n    ]\n}'
        assert str(Envelope.new(42)) == '42'

    def test_signing(self) -> None:
        private_keys, public_keys = keypair()
        _, other_public_keys = keypair()
        envelope = Envelope.new('This is a test').add_assertion(NOTE, 'a')
        signed = envelope.sign(private_keys)
        assert signed.is_wrapped
        assert len(signed.assertions_with_predicate(SIGNED)) == 1
        assert signed.format() == '{\n    "This is a test" [\n        \'note\': "a"\n    ]\n} [\n    \'signed\': Signature\n]'
        assert signed.verify(public_keys) == envelope
        assert Envelope.from_bytes(signed.to_bytes()).verify(public_keys) == envelope
        with pytest.raises(InvalidSignature):
            signed.verify(other_public_keys)
        with pytest.raises(InvalidSignature):
            envelope.verify(public_keys)

    def test_signature_integrity(self) -> None:
        private_keys, public_keys = keypair()
        data = Envelope.new('This is a test').sign(private_keys).to_bytes()
        tampered = data.replace(b'This is a test', b'This is a tesT')
        assert tampered != data
        with pytest.raises(InvalidSignature):
            Envelope.from_bytes(tampered).verify(public_keys)

    def test_encryption(self) -> None:
        private_keys, public_keys = keypair()
        other_private_keys, other_public_keys = keypair()
        envelope = Envelope.new('Hello').add_assertion(NOTE, 'a')

        encrypted = envelope.encrypt_to_recipient(public_keys)
        assert encrypted.is_encrypted
        assert isinstance(encrypted.subject, Encrypted)
        assert encrypted.subject.digest == envelope.wrap().digest
        assert encrypted.format() == "ENCRYPTED [\n    'hasRecipient': SealedMessage\n]"
        assert encrypted.decrypt_to_recipient(private_keys) == envelope
        assert Envelope.from_bytes(encrypted.to_bytes()).decrypt_to_recipient(private_keys) == envelope
        with pytest.raises(UnknownRecipient):
            encrypted.decrypt_to_recipient(other_private_keys)
        with pytest.raises(NotEncrypted):
            envelope.decrypt_to_recipient(private_keys)

        encrypted = envelope.encrypt_to_recipients([public_keys, other_public_keys])
        assert len(encrypted.assertions_with_predicate(HAS_RECIPIENT)) == 2
        assert encrypted.decrypt_to_recipient(private_keys) == envelope
        assert encrypted.decrypt_to_recipient(other_private_keys) == envelope
        with pytest.raises(ValueError, match='At least one recipient is required'):
            envelope.encrypt_to_recipients([])


class TestExpressions:

    def test_function_and_parameter(self) -> None:
        assert Function.new('test') == Function('test')
        assert Function.new(Function(1)) == Function(1)
        assert Function('test').summary() == '«"test"»'
        assert Function(1).summary() == '«1»'
        assert Parameter('param1').summary() == '❰"param1"❱'
        assert cbor_decode(cbor_encode(Function('test'))) == Function('test')
        assert cbor_decode(cbor_encode(Parameter(2))) == Parameter(2)

    def test_expression(self) -> None:
        expression = Expression.new('nextPage').with_parameter('fromRecord', 100).with_parameter('toRecord', 199).with_optional_parameter('limit', None)
        assert expression.function == Function('nextPage')
        assert expression.extract_object_for_parameter('fromRecord', int) == 100
        assert expression.extract_optional_object_for_parameter('limit', int) is None
        assert expression.extract_objects_for_parameter('toRecord', int) == [199]
        assert expression.object_for_parameter('toRecord') == Envelope.new(199)
        assert expression.to_envelope().format() == '«"nextPage"» [\n    ❰"fromRecord"❱: 100\n    ❰"toRecord"❱: 199\n]'
        assert Expression.from_envelope(expression.to_envelope()) == expression
        with pytest.raises(InvalidFormat, match='The envelope subject is not a function'):
            Expression.from_envelope(Envelope.new('nextPage'))

    def test_request(self) -> None:
        request = Request.new('test', REQUEST_ID).with_parameter('param1', 42).with_parameter('param2', 'hello').with_note('This is a test').with_date(REQUEST_DATE)
        assert request.function == Function('test')
        envelope = request.to_envelope()
        assert envelope.subject.format_flat() == 'request(ARID(c66be27d))'
        assert envelope.extract_object_for_predicate(NOTE, str) == 'This is a test'
        assert envelope.extract_object_for_predicate(DATE, datetime) == REQUEST_DATE
        assert Request.from_envelope(envelope) == request
        assert Request.from_envelope(Envelope.from_bytes(envelope.to_bytes())) == request
        assert request.summary() == 'id: c66be27d, body: «"test"» [ ❰"param1"❱: 42, ❰"param2"❱: "hello" ]'
        bare = Request.new('test', REQUEST_ID)
        assert bare.to_envelope().optional_object_for_predicate(NOTE) is None
        assert Request.from_envelope(bare.to_envelope()) == bare
        with pytest.raises(InvalidFormat, match='Expected an envelope with a request'):
            Request.from_envelope(Envelope.new('test').add_assertion(BODY, Expression.new('test')))

    def test_response(self) -> None:
        success = Response.new_success(REQUEST_ID)
        assert success.is_ok
        assert success.result() == Envelope.new(OK_VALUE)
        success = success.with_result('Records retrieved: 100-199')
        assert success.extract_result(str) == 'Records retrieved: 100-199'
        assert success.ok() == (REQUEST_ID, Envelope.new('Records retrieved: 100-199'))
        assert success.err() is None
        assert Response.from_envelope(success.to_envelope()) == success
        assert success.with_optional_result(None).result().is_null
        with pytest.raises(ValueError, match='Cannot set the error of a success response'):
            success.with_error('failed')
        with pytest.raises(ValueError, match='Cannot get the error of a success response'):
            success.error()

        failure = Response.new_failure(REQUEST_ID)
        assert failure.is_err
        assert failure.extract_error(KnownValue) is UNKNOWN_VALUE
        failure = failure.with_error('failed')
        assert Response.from_envelope(failure.to_envelope()) == failure
        assert failure.with_optional_error(None) == failure
        assert failure.ok() is None
        assert failure.err() == (REQUEST_ID, Envelope.new('failed'))
        with pytest.raises(ValueError, match='Cannot set the result of a failure response'):
            failure.with_result('OK')

        early_failure = Response.new_early_failure()
        assert early_failure.id is None
        assert early_failure.to_envelope().format_flat() == "response('Unknown') [ 'error': 'Unknown' ]"
        parsed = Response.from_envelope(Envelope.from_bytes(early_failure.to_envelope().to_bytes()))
        assert parsed == early_failure
        assert parsed.is_err
        assert parsed.err() == (None, Envelope.new(UNKNOWN_VALUE))
        with pytest.raises(ValueError, match='The response does not have an id'):
            parsed.expect_id()

    def test_event(self) -> None:
        event = Event.new('test', REQUEST_ID).with_note('This is a test').with_date(REQUEST_DATE)
        envelope = event.to_envelope()
        assert envelope.subject.format_flat() == 'event(ARID(c66be27d))'
        parsed = Event.from_envelope(envelope, str)
        assert parsed == event
        assert parsed.content == 'test'
        assert Event.from_envelope(envelope).content == Envelope.new('test')
        assert event.summary() == 'id: c66be27d, content: "test"'

# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

# The sealing pipeline shared by requests, responses and events.
#
# A sealed message is the payload envelope with the sender, sender continuation
# and recipient continuation assertions added in this order, which is then signed
# and then encrypted. Unsealing undoes this in reverse: decrypt, verify against one
# of the sender's verification keys, then process the two continuation slots.


import logging
from collections.abc import Buffer, Sequence
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Self

from gstp.envelope import ARID, RECIPIENT_CONTINUATION, SENDER, SENDER_CONTINUATION, Envelope, InvalidSignature
from gstp.trust import Decrypter, Encrypter, Signer
from gstp.trust.identity import XIDDocument

from .continuation import Continuation
from .exceptions import MissingPeerContinuation, PeerContinuationNotEncrypted, RecipientMissingEncryptionKey, SenderMissingEncryptionKey, SenderMissingVerificationKey, translate_errors

__all__ = 'Recipient', 'Sealed', 'Unsealed', 'load_envelope', 'resolve_recipient', 'seal', 'seal_continuation', 'unseal', 'verify_sender'  # noqa: RUF022


log = logging.getLogger(__name__)


type Recipient = XIDDocument | Encrypter


def resolve_recipient(recipient: Recipient) -> Encrypter:
    """Return the key to encrypt to for a recipient given either as an identity document or as an encrypter"""
    match recipient:
        case XIDDocument():
            encryption_key = recipient.encryption_key()
            if encryption_key is None:
                raise RecipientMissingEncryptionKey
            return encryption_key
        case Encrypter():
            return recipient
        case _:
            raise TypeError(f'Recipients must be identity documents or encrypters, not {recipient.__class__.__qualname__!r}')


def seal_continuation(sender: XIDDocument, state: Envelope | None, valid_id: ARID | None = None, valid_until: datetime | None = None) -> Envelope:
    """Build the sender continuation, encrypted to the sender's own encryption key"""
    encryption_key = sender.encryption_key()
    if encryption_key is None:
        raise SenderMissingEncryptionKey
    continuation = Continuation(state if state is not None else Envelope.null(), valid_id=valid_id, valid_until=valid_until)
    with translate_errors():
        return continuation.to_envelope(encryption_key)


def seal(payload: Envelope, sender: XIDDocument, sender_continuation: Envelope | None, peer_continuation: Envelope | None, signer: Signer | None, recipients: Sequence[Recipient]) -> Envelope:
    if peer_continuation is not None and not peer_continuation.is_encrypted:
        raise PeerContinuationNotEncrypted
    encryption_keys = [resolve_recipient(recipient) for recipient in recipients]
    with translate_errors():
        envelope = payload.add_assertion(SENDER, sender.to_envelope())
        envelope = envelope.add_optional_assertion(SENDER_CONTINUATION, sender_continuation)
        envelope = envelope.add_optional_assertion(RECIPIENT_CONTINUATION, peer_continuation)
        if signer is not None:
            envelope = envelope.sign(signer)
        if encryption_keys:
            envelope = envelope.encrypt_to_recipients(encryption_keys)
    log.debug('Sealed message from %s (signed: %s, recipients: %d)', sender.xid.short_description, signer is not None, len(encryption_keys))
    return envelope


@dataclass(frozen=True, kw_only=True)
class Unsealed:
    """The parts of a received message, after it was decrypted and verified"""

    payload: Envelope
    sender: XIDDocument
    state: Envelope | None
    peer_continuation: Envelope | None


def verify_sender(envelope: Envelope, sender: XIDDocument) -> Envelope:
    """Verify the envelope signature against any of the sender's verification keys and return the signed envelope"""
    *other_keys, last_key = sender.verification_keys
    for verification_key in other_keys:
        try:
            return envelope.verify(verification_key)
        except InvalidSignature:
            continue
    return envelope.verify(last_key)


def unseal(envelope: Envelope, recipient: Decrypter | None, expected_id: ARID | None, now: datetime | None, *, continuation_required: bool) -> Unsealed:
    with translate_errors():
        signed_envelope = envelope.decrypt_to_recipient(recipient) if recipient is not None else envelope
        sender = XIDDocument.from_envelope(signed_envelope.try_unwrap().object_for_predicate(SENDER))
        if not sender.verification_keys:
            raise SenderMissingVerificationKey
        payload = verify_sender(signed_envelope, sender)
        peer_continuation = payload.optional_object_for_predicate(SENDER_CONTINUATION)
        recipient_continuation = payload.optional_object_for_predicate(RECIPIENT_CONTINUATION)
    if peer_continuation is None:
        if continuation_required:
            raise MissingPeerContinuation
    elif not peer_continuation.is_encrypted:
        raise PeerContinuationNotEncrypted
    if recipient_continuation is not None:
        continuation = Continuation.try_from_envelope(recipient_continuation, expected_id=expected_id, now=now, recipient=recipient)
        state = None if continuation.state.is_null else continuation.state
    else:
        state = None
    log.debug('Unsealed message from %s (state: %s, peer continuation: %s)', sender.xid.short_description, state is not None, peer_continuation is not None)
    return Unsealed(payload=payload, sender=sender, state=state, peer_continuation=peer_continuation)


@dataclass(frozen=True, kw_only=True)
class Sealed:
    """
    The parts that all sealed messages have in common: the sender identity,
    the state the sender wants to get back with the reply and the continuation
    that was previously received from the peer and is returned to it.
    """

    sender: XIDDocument
    state: Envelope | None = None
    peer_continuation: Envelope | None = None

    def with_state(self, state: object) -> Self:
        return replace(self, state=Envelope.new(state))

    def with_optional_state(self, state: object | None) -> Self:
        return replace(self, state=None if state is None else Envelope.new(state))

    def with_peer_continuation(self, peer_continuation: Envelope) -> Self:
        return replace(self, peer_continuation=peer_continuation)

    def with_optional_peer_continuation(self, peer_continuation: Envelope | None) -> Self:
        return replace(self, peer_continuation=peer_continuation)

    def summary(self) -> str:
        raise NotImplementedError

    def __str__(self) -> str:
        state = 'None' if self.state is None else self.state.format_flat()
        peer_continuation = 'None' if self.peer_continuation is None else 'Some'
        return f'{self.__class__.__name__}({self.summary()}, state: {state}, peer_continuation: {peer_continuation})'


def load_envelope(data: Envelope | Buffer) -> Envelope:
    """Return the envelope represented by the data, which can also be an already decoded envelope"""
    if isinstance(data, Envelope):
        return data
    with translate_errors():
        return Envelope.from_bytes(data)

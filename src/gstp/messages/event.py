# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from collections.abc import Buffer, Sequence
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Self

from gstp.envelope import ARID, Envelope, Event
from gstp.trust import Decrypter, Signer
from gstp.trust.identity import XIDDocument

from .composition import Recipient, Sealed, load_envelope, seal, seal_continuation, unseal
from .exceptions import translate_errors

__all__ = 'SealedEvent',  # noqa: COM818


@dataclass(frozen=True, kw_only=True)
class SealedEvent[T](Sealed):
    """
    A one way message along with the sender identity and continuations.

    Events can be encrypted to any number of recipients, or to none at all
    in which case they are only signed and can be broadcast.
    """

    event: Event[T]

    @classmethod
    def new(cls, content: T, id: ARID, sender: XIDDocument) -> Self:  # noqa: A002
        return cls(event=Event(content=content, id=id), sender=sender)

    # Event

    @property
    def id(self) -> ARID:
        return self.event.id

    @property
    def content(self) -> T:
        return self.event.content

    @property
    def note(self) -> str:
        return self.event.note

    @property
    def date(self) -> datetime | None:
        return self.event.date

    def with_note(self, note: str) -> Self:
        return replace(self, event=self.event.with_note(note))

    def with_date(self, date: datetime) -> Self:
        return replace(self, event=self.event.with_date(date))

    def summary(self) -> str:
        return self.event.summary()

    # Sealing

    def to_envelope(self, valid_until: datetime | None = None, signer: Signer | None = None, recipient: Recipient | None = None) -> Envelope:
        return self.to_envelope_for_recipients(valid_until, signer, [] if recipient is None else [recipient])

    def to_envelope_for_recipients(self, valid_until: datetime | None = None, signer: Signer | None = None, recipients: Sequence[Recipient] = ()) -> Envelope:
        """Seal the event once for all the recipients, or leave it unencrypted when there are no recipients"""
        if self.state is not None or valid_until is not None:
            sender_continuation = seal_continuation(self.sender, self.state, valid_until=valid_until)
        else:
            sender_continuation = None
        return seal(self.event.to_envelope(), self.sender, sender_continuation, self.peer_continuation, signer, recipients)

    @classmethod
    def try_from_envelope[C](cls, envelope: Envelope | Buffer, expected_id: ARID | None = None, now: datetime | None = None, recipient: Decrypter | None = None, *, content_type: type[C] = Envelope) -> 'SealedEvent[C]':  # type: ignore[assignment]
        unsealed = unseal(load_envelope(envelope), recipient, expected_id, now, continuation_required=False)
        with translate_errors():
            event = Event.from_envelope(unsealed.payload, content_type)
        return SealedEvent(event=event, sender=unsealed.sender, state=unsealed.state, peer_continuation=unsealed.peer_continuation)

# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from collections.abc import Buffer
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Self

from gstp.envelope import ARID, Envelope, Expression, Function, Parameter, Request
from gstp.trust import Decrypter, Signer
from gstp.trust.identity import XIDDocument

from .composition import Recipient, Sealed, load_envelope, seal, seal_continuation, unseal
from .exceptions import translate_errors

__all__ = 'SealedRequest',  # noqa: COM818


type Identifier = str | int


@dataclass(frozen=True, kw_only=True)
class SealedRequest(Sealed):
    """
    A request along with the sender identity and continuations.

    A sealed request always carries a sender continuation bound to the request
    id, even when there is no state to preserve. The response returns it, which
    proves that the response answers this particular request.
    """

    request: Request

    @classmethod
    def new(cls, function: Function | Identifier, id: ARID, sender: XIDDocument) -> Self:  # noqa: A002
        return cls(request=Request.new(function, id), sender=sender)

    @classmethod
    def new_with_body(cls, body: Expression, id: ARID, sender: XIDDocument) -> Self:  # noqa: A002
        return cls(request=Request.new_with_body(body, id), sender=sender)

    # Request

    @property
    def id(self) -> ARID:
        return self.request.id

    @property
    def body(self) -> Expression:
        return self.request.body

    @property
    def function(self) -> Function:
        return self.request.function

    @property
    def note(self) -> str:
        return self.request.note

    @property
    def date(self) -> datetime | None:
        return self.request.date

    def with_note(self, note: str) -> Self:
        return replace(self, request=self.request.with_note(note))

    def with_date(self, date: datetime) -> Self:
        return replace(self, request=self.request.with_date(date))

    # Expression

    def with_parameter(self, parameter: Parameter | Identifier, value: object) -> Self:
        return replace(self, request=self.request.with_parameter(parameter, value))

    def with_optional_parameter(self, parameter: Parameter | Identifier, value: object | None) -> Self:
        return replace(self, request=self.request.with_optional_parameter(parameter, value))

    def object_for_parameter(self, parameter: Parameter | Identifier) -> Envelope:
        return self.body.object_for_parameter(parameter)

    def objects_for_parameter(self, parameter: Parameter | Identifier) -> list[Envelope]:
        return self.body.objects_for_parameter(parameter)

    def extract_object_for_parameter[T](self, parameter: Parameter | Identifier, data_type: type[T]) -> T:
        return self.body.extract_object_for_parameter(parameter, data_type)

    def extract_optional_object_for_parameter[T](self, parameter: Parameter | Identifier, data_type: type[T]) -> T | None:
        return self.body.extract_optional_object_for_parameter(parameter, data_type)

    def extract_objects_for_parameter[T](self, parameter: Parameter | Identifier, data_type: type[T]) -> list[T]:
        return self.body.extract_objects_for_parameter(parameter, data_type)

    def summary(self) -> str:
        return self.request.summary()

    # Sealing

    def to_envelope(self, valid_until: datetime | None = None, signer: Signer | None = None, recipient: Recipient | None = None) -> Envelope:
        sender_continuation = seal_continuation(self.sender, self.state, valid_id=self.id, valid_until=valid_until)
        return seal(self.request.to_envelope(), self.sender, sender_continuation, self.peer_continuation, signer, [] if recipient is None else [recipient])

    @classmethod
    def try_from_envelope(cls, envelope: Envelope | Buffer, expected_id: ARID | None = None, now: datetime | None = None, recipient: Decrypter | None = None) -> Self:
        unsealed = unseal(load_envelope(envelope), recipient, expected_id, now, continuation_required=True)
        with translate_errors():
            request = Request.from_envelope(unsealed.payload)
        return cls(request=request, sender=unsealed.sender, state=unsealed.state, peer_continuation=unsealed.peer_continuation)

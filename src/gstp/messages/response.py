# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from collections.abc import Buffer
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Self

from gstp.envelope import ARID, Envelope, Response
from gstp.trust import Decrypter, Signer
from gstp.trust.identity import XIDDocument

from .composition import Recipient, Sealed, load_envelope, seal, seal_continuation, unseal
from .exceptions import translate_errors

__all__ = 'SealedResponse',  # noqa: COM818


@dataclass(frozen=True, kw_only=True)
class SealedResponse(Sealed):
    """
    A response along with the sender identity and continuations.

    Only success responses can carry state. A sender continuation is added
    only when there is state to preserve and it is not bound to any id.
    """

    response: Response

    @classmethod
    def new_success(cls, id: ARID, sender: XIDDocument) -> Self:  # noqa: A002
        return cls(response=Response.new_success(id), sender=sender)

    @classmethod
    def new_failure(cls, id: ARID, sender: XIDDocument) -> Self:  # noqa: A002
        return cls(response=Response.new_failure(id), sender=sender)

    @classmethod
    def new_early_failure(cls, sender: XIDDocument) -> Self:
        """A failure response for a message whose id could not be determined"""
        return cls(response=Response.new_early_failure(), sender=sender)

    def with_state(self, state: object) -> Self:
        if self.response.is_err:
            raise ValueError('Failure responses cannot have state')
        return super().with_state(state)

    def with_optional_state(self, state: object | None) -> Self:
        return replace(self, state=None) if state is None else self.with_state(state)

    # Response

    @property
    def id(self) -> ARID | None:
        return self.response.id

    @property
    def is_ok(self) -> bool:
        return self.response.is_ok

    @property
    def is_err(self) -> bool:
        return self.response.is_err

    def expect_id(self) -> ARID:
        return self.response.expect_id()

    def ok(self) -> tuple[ARID, Envelope] | None:
        return self.response.ok()

    def err(self) -> tuple[ARID | None, Envelope] | None:
        return self.response.err()

    def with_result(self, result: object) -> Self:
        return replace(self, response=self.response.with_result(result))

    def with_optional_result(self, result: object | None) -> Self:
        return replace(self, response=self.response.with_optional_result(result))

    def with_error(self, error: object) -> Self:
        return replace(self, response=self.response.with_error(error))

    def with_optional_error(self, error: object | None) -> Self:
        return replace(self, response=self.response.with_optional_error(error))

    def result(self) -> Envelope:
        return self.response.result()

    def extract_result[T](self, data_type: type[T]) -> T:
        return self.response.extract_result(data_type)

    def error(self) -> Envelope:
        return self.response.error()

    def extract_error[T](self, data_type: type[T]) -> T:
        return self.response.extract_error(data_type)

    def summary(self) -> str:
        return self.response.summary()

    # Sealing

    def to_envelope(self, valid_until: datetime | None = None, signer: Signer | None = None, recipient: Recipient | None = None) -> Envelope:
        sender_continuation = seal_continuation(self.sender, self.state, valid_until=valid_until) if self.state is not None else None
        return seal(self.response.to_envelope(), self.sender, sender_continuation, self.peer_continuation, signer, [] if recipient is None else [recipient])

    @classmethod
    def try_from_encrypted_envelope(cls, envelope: Envelope | Buffer, expected_id: ARID | None = None, now: datetime | None = None, recipient: Decrypter | None = None) -> Self:
        unsealed = unseal(load_envelope(envelope), recipient, expected_id, now, continuation_required=False)
        with translate_errors():
            response = Response.from_envelope(unsealed.payload)
        return cls(response=response, sender=unsealed.sender, state=unsealed.state, peer_continuation=unsealed.peer_continuation)

    try_from_envelope = try_from_encrypted_envelope

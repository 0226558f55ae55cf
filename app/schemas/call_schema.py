# app/schemas/call_schema.py

from typing import Any
from pydantic import AliasChoices, Field
from schemas.base_schema import CamelModel


# Inbound signals. Session descriptions and ICE candidates are opaque to the server.

class CallSignalEvent(CamelModel):
    target_id: int = Field(..., validation_alias=AliasChoices("targetId", "target_id", "to"))


class CallUserEvent(CallSignalEvent):
    offer: Any


class CallAnswerEvent(CallSignalEvent):
    answer: Any


class IceCandidateEvent(CallSignalEvent):
    candidate: Any


class EndCallEvent(CallSignalEvent):
    pass


# Outbound signals, tagged with the sender

class CallSignalResponse(CamelModel):
    from_: int = Field(..., alias="from")


class IncomingCallResponse(CallSignalResponse):
    offer: Any


class CallAnsweredResponse(CallSignalResponse):
    answer: Any


class IceCandidateResponse(CallSignalResponse):
    candidate: Any


class CallEndedResponse(CallSignalResponse):
    pass

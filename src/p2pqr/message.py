from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, ClassVar, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .constants import DEFAULT_MIME_TYPE, PROTOCOL_TAG, RECEIVE_DONE, RECEIVED_CHUNK, SEND_CHUNK, SEND_INIT


class _Payload(BaseModel):
    model_config = ConfigDict(frozen=True, strict=True, populate_by_name=True)

    TYPE: ClassVar[str]

    transfer_id: str = Field(alias="id", min_length=1)


class SendInit(_Payload):
    TYPE: ClassVar[str] = SEND_INIT

    file_name: str = Field(alias="name")
    mime_type: str = Field(DEFAULT_MIME_TYPE, alias="mimeType")
    total_chunks: int = Field(alias="totalChunks", ge=1)


class SendChunk(_Payload):
    TYPE: ClassVar[str] = SEND_CHUNK

    chunk_index: int = Field(alias="chunkIndex", ge=0)
    data: str


class ReceivedChunkAck(_Payload):
    TYPE: ClassVar[str] = RECEIVED_CHUNK

    chunk_index: int = Field(alias="chunkIndex", ge=0)


class ReceiveDone(_Payload):
    TYPE: ClassVar[str] = RECEIVE_DONE


Message = Union[SendInit, SendChunk, ReceivedChunkAck, ReceiveDone]

MESSAGE_TYPES: dict[str, type[_Payload]] = {
    cls.TYPE: cls for cls in (SendInit, SendChunk, ReceivedChunkAck, ReceiveDone)
}


class _Envelope(BaseModel):
    model_config = ConfigDict(frozen=True)

    qr: Literal["p2pqr"]
    type: str
    payload: dict[str, Any]


@dataclass(frozen=True, slots=True)
class DecodeFailure:
    """Scanned text that is not a protocol message. Callers ignore it."""

    reason: str


def encode(msg: Message) -> str:
    envelope = {
        "qr": PROTOCOL_TAG,
        "type": msg.TYPE,
        "payload": msg.model_dump(by_alias=True),
    }
    return json.dumps(envelope, separators=(",", ":"))


def decode(text: str | bytes) -> Message | DecodeFailure:
    try:
        envelope = _Envelope.model_validate_json(text)
    except ValidationError as e:
        return DecodeFailure(f"not a {PROTOCOL_TAG} envelope: {e.error_count()} error(s)")

    cls = MESSAGE_TYPES.get(envelope.type)
    if cls is None:
        return DecodeFailure(f"unknown message type {envelope.type!r}")

    try:
        return cls.model_validate(envelope.payload)
    except ValidationError as e:
        return DecodeFailure(f"bad {envelope.type} payload: {e.error_count()} error(s)")

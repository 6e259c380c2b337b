from __future__ import annotations

import base64
from typing import BinaryIO, Union

from .constants import DEFAULT_CHUNK_SIZE, DEFAULT_CODE_CAPACITY
from .document import DocumentDescriptor
from .message import Message, SendChunk, SendInit, encode


class EncodingFailure(ValueError):
    pass


def split_text(text: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> list[str]:
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    return [text[i : i + chunk_size] for i in range(0, len(text), chunk_size)]


def _read_all(content: Union[bytes, BinaryIO]) -> bytes:
    if isinstance(content, (bytes, bytearray, memoryview)):
        return bytes(content)
    try:
        return content.read()
    except OSError as e:
        raise EncodingFailure(f"could not read source: {e}") from e


def build_messages(
    document: DocumentDescriptor,
    content: Union[bytes, BinaryIO],
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    capacity: int = DEFAULT_CODE_CAPACITY,
) -> list[Message]:
    """Turn a document into the ordered message sequence a sender displays.

    Index 0 is the SendInit announcing ``totalChunks = M + 1``; indexes
    1..M are SendChunk(0)..SendChunk(M-1) carrying base64 slices of the file.
    """
    raw = _read_all(content)
    chunks = split_text(base64.b64encode(raw).decode("ascii"), chunk_size)

    messages: list[Message] = [
        SendInit(
            transfer_id=document.transfer_id,
            file_name=document.name,
            mime_type=document.mime_type,
            total_chunks=len(chunks) + 1,
        )
    ]
    for i, data in enumerate(chunks):
        messages.append(SendChunk(transfer_id=document.transfer_id, chunk_index=i, data=data))

    for msg in messages:
        size = len(encode(msg))
        if size > capacity:
            raise EncodingFailure(f"{msg.TYPE} encodes to {size} chars, code capacity is {capacity}")

    return messages

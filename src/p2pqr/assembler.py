from __future__ import annotations

import base64
import binascii
from typing import Iterable

from .message import SendChunk


class ReassemblyError(ValueError):
    pass


def reassemble(chunks: Iterable[SendChunk]) -> bytes:
    """Join chunk payloads in index order and decode them back to raw bytes.

    The chunks must already be the contiguous run 0..M-1; a gap means the
    receiver accepted something it should not have.
    """
    parts: list[str] = []
    for expected, chunk in enumerate(chunks):
        if chunk.chunk_index != expected:
            raise ReassemblyError(f"chunk {chunk.chunk_index} found at position {expected}")
        parts.append(chunk.data)

    try:
        return base64.b64decode("".join(parts), validate=True)
    except binascii.Error as e:
        raise ReassemblyError(f"chunk data is not valid base64: {e}") from e

from __future__ import annotations

import mimetypes
import secrets
from dataclasses import dataclass

from .constants import DEFAULT_MIME_TYPE


@dataclass(frozen=True, slots=True)
class DocumentDescriptor:
    """A file chosen for sending. The transfer id scopes every message of one transfer."""

    transfer_id: str
    name: str
    mime_type: str
    size: int

    @staticmethod
    def new(name: str, size: int, mime_type: str | None = None) -> "DocumentDescriptor":
        if mime_type is None:
            mime_type = mimetypes.guess_type(name)[0] or DEFAULT_MIME_TYPE
        return DocumentDescriptor(
            transfer_id=secrets.token_hex(8),
            name=name,
            mime_type=mime_type,
            size=size,
        )


@dataclass(frozen=True, slots=True)
class ReceivedFile:
    file_name: str
    mime_type: str
    data: bytes

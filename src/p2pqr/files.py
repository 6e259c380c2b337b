from __future__ import annotations

import logging
import os
from pathlib import Path

from .document import DocumentDescriptor, ReceivedFile
from .encoder import EncodingFailure

log = logging.getLogger(__name__)


def load_document(path: str | os.PathLike[str]) -> tuple[DocumentDescriptor, bytes]:
    """Read a file for sending and describe it.

    Raises EncodingFailure when the file cannot be read, before any sender
    session exists.
    """
    p = Path(path)
    try:
        content = p.read_bytes()
    except OSError as e:
        raise EncodingFailure(f"could not read {p}: {e.strerror or e}") from e

    doc = DocumentDescriptor.new(p.name, len(content))
    log.info("selected %s (%s, %d bytes) id=%s", doc.name, doc.mime_type, doc.size, doc.transfer_id)
    return doc, content


def safe_file_name(name: str) -> str:
    # Only the final path component of the peer's name is trusted.
    base = os.path.basename(name.replace("\\", "/")).strip()
    if base in ("", ".", ".."):
        return "received.bin"
    return base


def save_received(received: ReceivedFile, out_dir: str | os.PathLike[str]) -> Path:
    directory = Path(out_dir)
    directory.mkdir(parents=True, exist_ok=True)
    target = directory / safe_file_name(received.file_name)
    target.write_bytes(received.data)
    log.info("saved %s (%s, %d bytes)", target, received.mime_type, len(received.data))
    return target

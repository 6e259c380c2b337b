from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass, field
from typing import BinaryIO, Optional, Union

from .constants import DEFAULT_CHUNK_SIZE, DEFAULT_CODE_CAPACITY
from .document import DocumentDescriptor
from .encoder import build_messages
from .message import DecodeFailure, Message, ReceivedChunkAck, ReceiveDone, decode, encode

log = logging.getLogger(__name__)


class SenderState(enum.Enum):
    IDLE = "idle"
    PREPARED = "prepared"
    DISPLAYING = "displaying"
    DONE = "done"


@dataclass(slots=True)
class SenderSession:
    document: DocumentDescriptor
    messages: tuple[Message, ...]
    current_index: int = 0

    @property
    def last_index(self) -> int:
        return len(self.messages) - 1

    def advance_to(self, index: int) -> bool:
        """Move forward to ``index`` if that is progress. Never moves back."""
        index = min(index, self.last_index)
        if index <= self.current_index:
            return False
        self.current_index = index
        return True


@dataclass(slots=True)
class SenderMachine:
    """Lockstep sender: shows one message until the receiver acknowledges it.

    The sender never times out or retries on its own. It keeps presenting
    ``current_message()`` and only feedback scanned from the receiver moves
    it forward.
    """

    chunk_size: int = DEFAULT_CHUNK_SIZE
    capacity: int = DEFAULT_CODE_CAPACITY
    state: SenderState = SenderState.IDLE
    document: Optional[DocumentDescriptor] = None
    session: Optional[SenderSession] = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def select(self, document: DocumentDescriptor) -> SenderState:
        with self._lock:
            if self.state in (SenderState.DISPLAYING, SenderState.DONE):
                raise RuntimeError(f"cannot select a file while {self.state.value}")
            self.document = document
            self.state = SenderState.PREPARED
            return self.state

    def start(self, document: DocumentDescriptor, content: Union[bytes, BinaryIO]) -> SenderState:
        """Encode ``content`` and begin displaying the init message.

        EncodingFailure propagates and leaves the machine without a session.
        """
        with self._lock:
            if self.state in (SenderState.DISPLAYING, SenderState.DONE):
                raise RuntimeError(f"transfer already {self.state.value}; cancel it first")

            messages = build_messages(
                document, content, chunk_size=self.chunk_size, capacity=self.capacity
            )
            self.document = document
            self.session = SenderSession(document=document, messages=tuple(messages))
            self.state = SenderState.DISPLAYING
            log.info(
                "sending %s id=%s: %d chunks",
                document.name,
                document.transfer_id,
                len(messages) - 1,
            )
            return self.state

    def current_message(self) -> Optional[Message]:
        with self._lock:
            if self.state != SenderState.DISPLAYING or self.session is None:
                return None
            return self.session.messages[self.session.current_index]

    def current_text(self) -> str:
        msg = self.current_message()
        return encode(msg) if msg is not None else ""

    def on_feedback(self, msg: Message) -> SenderState:
        with self._lock:
            session = self.session
            if self.state != SenderState.DISPLAYING or session is None:
                return self.state
            if msg.transfer_id != session.document.transfer_id:
                return self.state

            if isinstance(msg, ReceivedChunkAck):
                if msg.chunk_index < session.last_index and session.advance_to(msg.chunk_index + 1):
                    log.debug("ack %d -> showing %d/%d", msg.chunk_index, session.current_index, session.last_index)
            elif isinstance(msg, ReceiveDone):
                self.state = SenderState.DONE
                log.info("receiver confirmed %s id=%s", session.document.name, session.document.transfer_id)
            return self.state

    def handle(self, text: Union[str, bytes]) -> SenderState:
        msg = decode(text)
        if isinstance(msg, DecodeFailure):
            log.debug("ignored scan: %s", msg.reason)
            return self.state
        return self.on_feedback(msg)

    def cancel(self) -> SenderState:
        with self._lock:
            if self.state != SenderState.IDLE:
                log.info("sender cancelled in state %s", self.state.value)
            self.document = None
            self.session = None
            self.state = SenderState.IDLE
            return self.state

    @property
    def progress(self) -> tuple[int, int]:
        """(messages acknowledged so far, data chunks in total)."""
        with self._lock:
            session = self.session
            if session is None:
                return 0, 0
            return session.current_index, session.last_index

from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Optional, Union

from .assembler import ReassemblyError, reassemble
from .constants import AWAITING_INIT
from .document import ReceivedFile
from .message import (
    DecodeFailure,
    Message,
    ReceivedChunkAck,
    ReceiveDone,
    SendChunk,
    SendInit,
    decode,
    encode,
)

log = logging.getLogger(__name__)


class IncompleteTransferError(ValueError):
    pass


class ReceiverState(enum.Enum):
    IDLE = "idle"
    AWAITING_INIT = "awaiting_init"
    ACCUMULATING = "accumulating"
    COMPLETE = "complete"


@dataclass(slots=True)
class ReceiverSession:
    transfer_id: Optional[str] = None
    expected_next_index: int = AWAITING_INIT
    total: int = -1
    init: Optional[SendInit] = None
    chunks: list[SendChunk] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return self.expected_next_index != AWAITING_INIT and self.expected_next_index == self.total - 1

    def accept_init(self, msg: SendInit) -> None:
        self.transfer_id = msg.transfer_id
        self.total = msg.total_chunks
        self.init = msg
        self.expected_next_index = 0

    def accept_chunk(self, msg: SendChunk) -> bool:
        """Append ``msg`` if it is exactly the next chunk of this transfer."""
        if self.complete:
            return False
        if msg.transfer_id != self.transfer_id or msg.chunk_index != self.expected_next_index:
            return False
        self.chunks.append(msg)
        self.expected_next_index += 1
        return True


@dataclass(slots=True)
class ReceiverMachine:
    """Accepts scanned messages strictly in order and renders feedback.

    Lost frames just delay progress and duplicate frames are no-ops: only
    the init (while awaiting one) or the single next chunk index changes
    state. The feedback acknowledges the slot of the last applied message,
    with the init at slot 0 and chunk k at slot k + 1, so the sender shows
    message ``slot + 1`` next.
    """

    state: ReceiverState = ReceiverState.IDLE
    session: ReceiverSession = field(default_factory=ReceiverSession)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def listen(self) -> ReceiverState:
        with self._lock:
            self.session = ReceiverSession()
            self.state = ReceiverState.AWAITING_INIT
            return self.state

    def on_scan(self, msg: Message) -> ReceiverState:
        with self._lock:
            session = self.session
            if self.state == ReceiverState.AWAITING_INIT:
                if isinstance(msg, SendInit):
                    session.accept_init(msg)
                    self.state = ReceiverState.ACCUMULATING
                    log.info(
                        "receiving %s id=%s: %d chunks",
                        msg.file_name,
                        msg.transfer_id,
                        msg.total_chunks - 1,
                    )
            elif self.state == ReceiverState.ACCUMULATING:
                if isinstance(msg, SendChunk) and session.accept_chunk(msg):
                    log.debug("chunk %d/%d", session.expected_next_index, session.total - 1)

            if self.state == ReceiverState.ACCUMULATING and session.complete:
                self.state = ReceiverState.COMPLETE
                log.info("transfer id=%s complete", session.transfer_id)
            return self.state

    def handle(self, text: Union[str, bytes]) -> ReceiverState:
        msg = decode(text)
        if isinstance(msg, DecodeFailure):
            log.debug("ignored scan: %s", msg.reason)
            return self.state
        return self.on_scan(msg)

    def feedback_message(self) -> Optional[Message]:
        with self._lock:
            session = self.session
            if session.transfer_id is None:
                return None
            if self.state == ReceiverState.COMPLETE:
                return ReceiveDone(transfer_id=session.transfer_id)
            if self.state == ReceiverState.ACCUMULATING:
                return ReceivedChunkAck(
                    transfer_id=session.transfer_id,
                    chunk_index=session.expected_next_index,
                )
            return None

    def feedback_text(self) -> str:
        msg = self.feedback_message()
        return encode(msg) if msg is not None else ""

    def _check_complete(self) -> None:
        if self.state != ReceiverState.COMPLETE:
            raise IncompleteTransferError(f"transfer is {self.state.value}, not complete")

    def assemble(self) -> bytes:
        with self._lock:
            self._check_complete()
            return reassemble(self.session.chunks)

    def received_file(self) -> ReceivedFile:
        with self._lock:
            self._check_complete()
            init = self.session.init
            assert init is not None
            data = reassemble(self.session.chunks)
        return ReceivedFile(file_name=init.file_name, mime_type=init.mime_type, data=data)

    def finish(self, sink: Callable[[ReceivedFile], object]) -> bool:
        """Hand the completed file to ``sink`` and return to IDLE either way.

        Only a COMPLETE receiver can finish; anything else raises
        IncompleteTransferError and leaves the session alone.
        """
        with self._lock:
            self._check_complete()
            transfer_id = self.session.transfer_id
        try:
            sink(self.received_file())
        except (OSError, ReassemblyError):
            log.exception("could not hand off received file id=%s", transfer_id)
            return False
        finally:
            self.reset()
        return True

    def reset(self) -> ReceiverState:
        with self._lock:
            if self.state != ReceiverState.IDLE:
                log.info("receiver reset from %s", self.state.value)
            self.session = ReceiverSession()
            self.state = ReceiverState.IDLE
            return self.state

    cancel = reset

    @property
    def progress(self) -> tuple[int, int]:
        """(data chunks applied, data chunks expected); (0, 0) before the init."""
        with self._lock:
            session = self.session
            if session.expected_next_index == AWAITING_INIT:
                return 0, 0
            return session.expected_next_index, session.total - 1

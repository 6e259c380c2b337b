from __future__ import annotations

import random
import time
from dataclasses import dataclass

from .channel import Camera, Impairment, RenderLoop, ScanLoop, Screen, wait_until
from .constants import DEFAULT_CHUNK_SIZE, DEFAULT_RENDER_FPS, DEFAULT_SCAN_FPS
from .document import DocumentDescriptor
from .receiver import ReceiverMachine, ReceiverState
from .sender import SenderMachine, SenderState


@dataclass(frozen=True, slots=True)
class BenchmarkResult:
    bytes_transferred: int
    duration_s: float
    throughput_kbps: float
    chunks: int
    frames: int
    scans: int
    ignored_scans: int
    completed: bool


class _Counting:
    """Wraps a machine's ``handle`` to count scans that changed nothing."""

    def __init__(self, machine):
        self.machine = machine
        self.scans = 0
        self.ignored = 0

    def __call__(self, text: str) -> None:
        before = self._snapshot()
        self.machine.handle(text)
        self.scans += 1
        if self._snapshot() == before:
            self.ignored += 1

    def _snapshot(self):
        m = self.machine
        return m.state, m.progress


def _pair(content: bytes, name: str, chunk_size: int) -> tuple[SenderMachine, ReceiverMachine]:
    sender = SenderMachine(chunk_size=chunk_size)
    receiver = ReceiverMachine()
    doc = DocumentDescriptor.new(name, len(content))
    sender.select(doc)
    sender.start(doc, content)
    receiver.listen()
    return sender, receiver


def simulate_transfer(
    content: bytes,
    *,
    name: str = "payload.bin",
    miss_rate: float = 0.0,
    noise_rate: float = 0.0,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    seed: int = 0,
    max_ticks: int = 100_000,
) -> tuple[BenchmarkResult, bytes | None]:
    """Step both devices in lockstep ticks with a seeded, impaired camera.

    Each tick both screens refresh and each camera makes one scan attempt.
    Deterministic for a given seed, so it is what the tests drive.
    """
    rng = random.Random(seed)
    impair = Impairment(miss_rate=miss_rate, noise_rate=noise_rate)
    sender, receiver = _pair(content, name, chunk_size)

    sender_screen, receiver_screen = Screen(), Screen()
    receiver_camera = Camera(sender_screen, impair, rng)
    sender_camera = Camera(receiver_screen, impair, rng)
    to_receiver = _Counting(receiver)
    to_sender = _Counting(sender)

    start = time.monotonic()
    received: bytes | None = None
    ticks = 0
    while ticks < max_ticks and sender.state != SenderState.DONE:
        ticks += 1
        sender_screen.show(sender.current_text())
        text = receiver_camera.scan()
        if text is not None:
            to_receiver(text)

        if receiver.state == ReceiverState.COMPLETE and received is None:
            received = receiver.assemble()

        receiver_screen.show(receiver.feedback_text())
        text = sender_camera.scan()
        if text is not None:
            to_sender(text)

    duration_s = max(0.001, time.monotonic() - start)
    result = BenchmarkResult(
        bytes_transferred=len(received) if received is not None else 0,
        duration_s=duration_s,
        throughput_kbps=(len(content) * 8 / 1000) / duration_s if received is not None else 0.0,
        chunks=sender.progress[1],
        frames=sender_screen.frames + receiver_screen.frames,
        scans=to_receiver.scans + to_sender.scans,
        ignored_scans=to_receiver.ignored + to_sender.ignored,
        completed=sender.state == SenderState.DONE and received is not None,
    )
    return result, received


def run_loopback(
    content: bytes,
    *,
    name: str = "payload.bin",
    miss_rate: float = 0.0,
    noise_rate: float = 0.0,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    render_fps: float = DEFAULT_RENDER_FPS,
    scan_fps: float = DEFAULT_SCAN_FPS,
    timeout_s: float = 60.0,
) -> tuple[BenchmarkResult, bytes | None]:
    """Run both devices with free-running render and scan threads."""
    impair = Impairment(miss_rate=miss_rate, noise_rate=noise_rate)
    sender, receiver = _pair(content, name, chunk_size)

    sender_screen, receiver_screen = Screen(), Screen()
    to_receiver = _Counting(receiver)
    to_sender = _Counting(sender)
    loops = [
        RenderLoop(sender.current_text, sender_screen, fps=render_fps, name="sender-render"),
        RenderLoop(receiver.feedback_text, receiver_screen, fps=render_fps, name="receiver-render"),
        ScanLoop(Camera(sender_screen, impair), to_receiver, fps=scan_fps, name="receiver-scan"),
        ScanLoop(Camera(receiver_screen, impair), to_sender, fps=scan_fps, name="sender-scan"),
    ]

    start = time.monotonic()
    for loop in loops:
        loop.start()
    try:
        done = wait_until(lambda: sender.state == SenderState.DONE, timeout_s)
    finally:
        for loop in loops:
            loop.stop()
    duration_s = max(0.001, time.monotonic() - start)

    received = receiver.assemble() if receiver.state == ReceiverState.COMPLETE else None
    result = BenchmarkResult(
        bytes_transferred=len(received) if received is not None else 0,
        duration_s=duration_s,
        throughput_kbps=(len(content) * 8 / 1000) / duration_s if received is not None else 0.0,
        chunks=sender.progress[1],
        frames=sender_screen.frames + receiver_screen.frames,
        scans=to_receiver.scans + to_sender.scans,
        ignored_scans=to_receiver.ignored + to_sender.ignored,
        completed=done and received is not None,
    )
    return result, received

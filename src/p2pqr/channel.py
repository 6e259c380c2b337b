from __future__ import annotations

import logging
import random
from abc import ABC, abstractmethod
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .constants import DEFAULT_RENDER_FPS, DEFAULT_SCAN_FPS

log = logging.getLogger(__name__)

FOREIGN_CODES = (
    "https://example.com/menu",
    "WIFI:S:cafe;T:WPA;P:hunter2;;",
    '{"qr":"other-app","type":"hello","payload":{}}',
    '{"qr":"p2pqr","type":"send_chunk","payload":{"id":',
)


@dataclass(frozen=True, slots=True)
class Impairment:
    """What the camera gets wrong when it looks at the peer's screen.

    ``miss_rate`` is the chance a scan attempt decodes nothing; ``noise_rate``
    is the chance it decodes some other code in view instead.
    """

    miss_rate: float = 0.0
    noise_rate: float = 0.0

    def should_miss(self, rng: random.Random) -> bool:
        return rng.random() < self.miss_rate

    def noise(self, rng: random.Random) -> Optional[str]:
        if self.noise_rate > 0 and rng.random() < self.noise_rate:
            return rng.choice(FOREIGN_CODES)
        return None


class Screen:
    """The code one device currently shows. Written by a render loop, read by the peer's camera."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._text = ""
        self.frames = 0

    def show(self, text: str) -> None:
        with self._lock:
            self._text = text
            self.frames += 1

    def capture(self) -> str:
        with self._lock:
            return self._text


class Camera:
    def __init__(self, peer: Screen, impairment: Impairment | None = None, rng: random.Random | None = None):
        self.peer = peer
        self.impairment = impairment or Impairment()
        self.rng = rng or random.Random()

    def scan(self) -> Optional[str]:
        noise = self.impairment.noise(self.rng)
        if noise is not None:
            return noise
        if self.impairment.should_miss(self.rng):
            return None
        text = self.peer.capture()
        return text or None


class _Loop(ABC):
    """Calls ``tick`` every ``interval_s`` on a daemon thread until stopped."""

    def __init__(self, interval_s: float, name: str):
        self.interval_s = interval_s
        self.name = name
        self.stop_event = threading.Event()
        self.thread: Optional[threading.Thread] = None

    def start(self) -> None:
        self.thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self.thread.start()
        log.debug("%s loop started at %.1f Hz", self.name, 1.0 / self.interval_s)

    def stop(self, timeout: float = 1.0) -> None:
        self.stop_event.set()
        if self.thread is not None:
            self.thread.join(timeout=timeout)

    def _run(self) -> None:
        while not self.stop_event.is_set():
            self.tick()
            self.stop_event.wait(self.interval_s)

    @abstractmethod
    def tick(self) -> None:
        ...


class RenderLoop(_Loop):
    """Re-renders whatever ``provider`` currently wants displayed."""

    def __init__(self, provider: Callable[[], str], screen: Screen, fps: float = DEFAULT_RENDER_FPS, name: str = "render"):
        super().__init__(interval_s=1.0 / fps, name=name)
        self.provider = provider
        self.screen = screen

    def tick(self) -> None:
        self.screen.show(self.provider())


class ScanLoop(_Loop):
    """Delivers every decoded text to ``handler``, one at a time."""

    def __init__(self, camera: Camera, handler: Callable[[str], object], fps: float = DEFAULT_SCAN_FPS, name: str = "scan"):
        super().__init__(interval_s=1.0 / fps, name=name)
        self.camera = camera
        self.handler = handler
        self.scans = 0

    def tick(self) -> None:
        text = self.camera.scan()
        if text is None:
            return
        self.scans += 1
        self.handler(text)


def wait_until(predicate: Callable[[], bool], timeout_s: float, poll_s: float = 0.01) -> bool:
    deadline = time.monotonic() + timeout_s
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(poll_s)
    return predicate()

from __future__ import annotations

import random

import pytest

from p2pqr.channel import Camera, Impairment, RenderLoop, ScanLoop, Screen, _Loop, wait_until


def test_loop_base_needs_tick():
    with pytest.raises(TypeError):
        _Loop(0.01, "bare")


def test_camera_sees_peer_screen():
    screen = Screen()
    cam = Camera(screen)
    assert cam.scan() is None
    screen.show("frame")
    assert cam.scan() == "frame"
    assert screen.frames == 1


def test_camera_misses_and_noise():
    screen = Screen()
    screen.show("frame")
    assert Camera(screen, Impairment(miss_rate=1.0), random.Random(0)).scan() is None
    noisy = Camera(screen, Impairment(noise_rate=1.0), random.Random(0)).scan()
    assert noisy is not None and noisy != "frame"


def test_render_and_scan_loops():
    screen = Screen()
    seen: list[str] = []
    render = RenderLoop(lambda: "hello", screen, fps=200)
    scan = ScanLoop(Camera(screen), seen.append, fps=200)
    render.start()
    scan.start()
    try:
        assert wait_until(lambda: len(seen) >= 3, timeout_s=5)
    finally:
        scan.stop()
        render.stop()
    assert set(seen) == {"hello"}
    assert scan.scans == len(seen)

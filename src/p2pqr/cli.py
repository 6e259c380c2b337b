from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from dataclasses import asdict
from typing import Optional

from .bench import run_loopback, simulate_transfer
from .constants import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_CODE_CAPACITY,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_RENDER_FPS,
    DEFAULT_SCAN_FPS,
)
from .document import ReceivedFile
from .encoder import EncodingFailure
from .files import load_document, save_received
from .message import encode
from .receiver import ReceiverMachine, ReceiverState
from .sender import SenderMachine

log = logging.getLogger("p2pqr")


def _emit(payload: dict, as_json: bool) -> None:
    print(json.dumps(payload, indent=2) if as_json else payload)


def cmd_encode(args: argparse.Namespace) -> int:
    try:
        doc, content = load_document(args.file)
        sender = SenderMachine(chunk_size=args.chunk_size, capacity=args.capacity)
        sender.select(doc)
        sender.start(doc, content)
    except EncodingFailure as e:
        log.error("cannot send %s: %s", args.file, e)
        return 1

    assert sender.session is not None
    frames = [encode(msg) for msg in sender.session.messages]

    out = sys.stdout if args.out == "-" else open(args.out, "w", encoding="utf-8")
    try:
        for text in frames:
            out.write(text + "\n")
    finally:
        if out is not sys.stdout:
            out.close()

    if args.out != "-":
        _emit(
            {
                "role": "sender",
                "file": doc.name,
                "id": doc.transfer_id,
                "bytes": doc.size,
                "frames": len(frames),
            },
            args.json,
        )
    return 0


def cmd_decode(args: argparse.Namespace) -> int:
    receiver = ReceiverMachine()
    receiver.listen()
    scans = 0
    with open(args.frames, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            scans += 1
            if receiver.handle(line) == ReceiverState.COMPLETE:
                break

    applied, total = receiver.progress
    if receiver.state != ReceiverState.COMPLETE:
        log.error("transfer incomplete: %d/%d chunks received", applied, total)
        return 1

    saved: list[tuple[str, ReceivedFile]] = []

    def sink(received: ReceivedFile) -> None:
        saved.append((str(save_received(received, args.out_dir)), received))

    if not receiver.finish(sink):
        return 1
    path, received = saved[0]

    _emit(
        {
            "role": "receiver",
            "file": path,
            "mime_type": received.mime_type,
            "bytes": len(received.data),
            "scans": scans,
        },
        args.json,
    )
    return 0


def cmd_bench(args: argparse.Namespace) -> int:
    content = os.urandom(args.size_bytes)
    if args.threaded:
        r, received = run_loopback(
            content,
            miss_rate=args.miss_rate,
            noise_rate=args.noise_rate,
            chunk_size=args.chunk_size,
            render_fps=args.render_fps,
            scan_fps=args.scan_fps,
            timeout_s=args.timeout_s,
        )
    else:
        r, received = simulate_transfer(
            content,
            miss_rate=args.miss_rate,
            noise_rate=args.noise_rate,
            chunk_size=args.chunk_size,
            seed=args.seed,
        )

    payload = {"role": "bench", **asdict(r)}
    _emit(payload, args.json)
    if received != content:
        log.error("bench transfer did not reproduce the input")
        return 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="p2pqr", description="File transfer over a pair of screens and cameras.")
    p.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    sub = p.add_subparsers(dest="cmd", required=True)

    def add_common(x: argparse.ArgumentParser) -> None:
        x.add_argument("--chunk-size", type=int, default=DEFAULT_CHUNK_SIZE)
        x.add_argument("--json", action="store_true")

    enc = sub.add_parser("encode", help="write the frames a sender would display, one per line")
    add_common(enc)
    enc.add_argument("--capacity", type=int, default=DEFAULT_CODE_CAPACITY, help="max characters per code")
    enc.add_argument("--out", default="-", help="frames file, '-' for stdout")
    enc.add_argument("file")
    enc.set_defaults(func=cmd_encode)

    dec = sub.add_parser("decode", help="replay scanned frames through a receiver and save the file")
    dec.add_argument("--json", action="store_true")
    dec.add_argument("--out-dir", default=DEFAULT_OUTPUT_DIR)
    dec.add_argument("frames")
    dec.set_defaults(func=cmd_decode)

    bench = sub.add_parser("bench", help="transfer random bytes over a simulated impaired link")
    add_common(bench)
    bench.add_argument("--size-bytes", type=int, default=4096)
    bench.add_argument("--miss-rate", type=float, default=0.0)
    bench.add_argument("--noise-rate", type=float, default=0.0)
    bench.add_argument("--seed", type=int, default=0)
    bench.add_argument("--threaded", action="store_true", help="free-running render/scan threads instead of ticks")
    bench.add_argument("--render-fps", type=float, default=DEFAULT_RENDER_FPS)
    bench.add_argument("--scan-fps", type=float, default=DEFAULT_SCAN_FPS)
    bench.add_argument("--timeout-s", type=float, default=60.0)
    bench.set_defaults(func=cmd_bench)

    return p


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s [%(levelname)s] %(message)s")
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())

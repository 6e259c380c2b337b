from __future__ import annotations

import json
import os

from p2pqr.cli import main


def test_encode_then_decode(tmp_path, capsys):
    src = tmp_path / "song.mp3"
    content = os.urandom(1500)
    src.write_bytes(content)
    frames = tmp_path / "frames.txt"

    assert main(["encode", "--json", "--out", str(frames), str(src)]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["role"] == "sender"
    lines = frames.read_text().splitlines()
    assert len(lines) == out["frames"]

    # a camera sees noise and repeats before each frame
    scanned = []
    for line in lines:
        scanned += ["garbage", line, line]
    (tmp_path / "scans.txt").write_text("\n".join(scanned) + "\n")

    inbox = tmp_path / "inbox"
    assert main(["decode", "--json", "--out-dir", str(inbox), str(tmp_path / "scans.txt")]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["bytes"] == len(content)
    assert (inbox / "song.mp3").read_bytes() == content


def test_decode_incomplete(tmp_path):
    src = tmp_path / "a.bin"
    src.write_bytes(os.urandom(500))
    frames = tmp_path / "frames.txt"
    assert main(["encode", "--out", str(frames), str(src)]) == 0
    lines = frames.read_text().splitlines()
    frames.write_text("\n".join(lines[:-1]) + "\n")
    assert main(["decode", "--out-dir", str(tmp_path / "inbox"), str(frames)]) == 1
    assert not (tmp_path / "inbox").exists()


def test_encode_missing_file(tmp_path):
    assert main(["encode", "--out", str(tmp_path / "f.txt"), str(tmp_path / "missing")]) == 1


def test_bench(capsys):
    assert main(["bench", "--json", "--size-bytes", "1024", "--miss-rate", "0.3", "--seed", "4"]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["role"] == "bench"
    assert out["completed"] is True
    assert out["bytes_transferred"] == 1024


def test_decode_corrupt_chunk_data(tmp_path):
    frames = tmp_path / "frames.txt"
    frames.write_text(
        '{"qr":"p2pqr","type":"send_init","payload":{"id":"t5","name":"bad.bin","mimeType":"x/y","totalChunks":2}}\n'
        '{"qr":"p2pqr","type":"send_chunk","payload":{"id":"t5","chunkIndex":0,"data":"!!!"}}\n'
    )
    assert main(["decode", "--out-dir", str(tmp_path / "inbox"), str(frames)]) == 1
    assert not (tmp_path / "inbox" / "bad.bin").exists()

from __future__ import annotations

import pytest

from p2pqr.document import DocumentDescriptor, ReceivedFile
from p2pqr.encoder import EncodingFailure
from p2pqr.files import load_document, safe_file_name, save_received


def test_load_document(tmp_path):
    p = tmp_path / "report.pdf"
    p.write_bytes(b"%PDF-1.4 hello")
    doc, content = load_document(p)
    assert content == b"%PDF-1.4 hello"
    assert doc.name == "report.pdf"
    assert doc.mime_type == "application/pdf"
    assert doc.size == len(content)
    assert doc.transfer_id


def test_transfer_ids_are_unique():
    ids = {DocumentDescriptor.new("a", 1).transfer_id for _ in range(100)}
    assert len(ids) == 100


def test_unknown_extension_falls_back():
    assert DocumentDescriptor.new("blob.zzzz", 1).mime_type == "application/octet-stream"


def test_missing_file(tmp_path):
    with pytest.raises(EncodingFailure):
        load_document(tmp_path / "nope")


@pytest.mark.parametrize(
    "name,expected",
    [
        ("photo.jpg", "photo.jpg"),
        ("../../etc/passwd", "passwd"),
        ("C:\\Users\\me\\doc.txt", "doc.txt"),
        ("", "received.bin"),
        ("..", "received.bin"),
    ],
)
def test_safe_file_name(name, expected):
    assert safe_file_name(name) == expected


def test_save_received(tmp_path):
    out = tmp_path / "inbox"
    path = save_received(ReceivedFile("../x.txt", "text/plain", b"data"), out)
    assert path == out / "x.txt"
    assert path.read_bytes() == b"data"

from __future__ import annotations

import os

import pytest

from p2pqr.assembler import ReassemblyError, reassemble
from p2pqr.bench import run_loopback, simulate_transfer
from p2pqr.document import DocumentDescriptor
from p2pqr.message import SendChunk, decode, encode
from p2pqr.receiver import ReceiverMachine, ReceiverState
from p2pqr.sender import SenderMachine


def transfer_in_order(content: bytes, **kw) -> bytes:
    doc = DocumentDescriptor.new("f.bin", len(content))
    s = SenderMachine(**kw)
    s.start(doc, content)
    r = ReceiverMachine()
    r.listen()
    for m in s.session.messages:
        r.on_scan(m)
    assert r.state == ReceiverState.COMPLETE
    return r.assemble()


@pytest.mark.parametrize("size", [0, 1, 2, 3, 95, 96, 97, 300, 5000])
def test_round_trip(size):
    content = os.urandom(size)
    assert transfer_in_order(content) == content


def test_round_trip_through_wire_text():
    content = os.urandom(1000)
    doc = DocumentDescriptor.new("f.bin", len(content))
    s = SenderMachine()
    s.start(doc, content)
    r = ReceiverMachine()
    r.listen()
    for m in s.session.messages:
        r.handle(encode(m))
    assert r.assemble() == content


def scenario():
    content = os.urandom(300)
    doc = DocumentDescriptor.new("photo.jpg", len(content))
    s = SenderMachine(chunk_size=150)
    s.start(doc, content)
    msgs = s.session.messages
    assert len(msgs) == 4
    assert msgs[0].total_chunks == 4
    assert [m.chunk_index for m in msgs[1:]] == [0, 1, 2]
    return content, msgs


def test_scenario_duplicate_chunk():
    content, (init, c0, c1, c2) = scenario()
    r = ReceiverMachine()
    r.listen()
    for m in (init, c0, c0, c1, c2):
        r.on_scan(m)
    assert r.state == ReceiverState.COMPLETE
    assert r.assemble() == content


def test_scenario_premature_chunk():
    content, (init, c0, c1, c2) = scenario()
    r = ReceiverMachine()
    r.listen()
    for m in (init, c1, c0, c1, c2):
        r.on_scan(m)
    assert r.state == ReceiverState.COMPLETE
    assert r.assemble() == content


def test_lockstep_both_machines():
    content = os.urandom(700)
    doc = DocumentDescriptor.new("f.bin", len(content))
    s = SenderMachine()
    s.start(doc, content)
    r = ReceiverMachine()
    r.listen()

    steps = 0
    while s.current_message() is not None:
        steps += 1
        # every frame is scanned twice before the peer reacts
        r.handle(s.current_text())
        r.handle(s.current_text())
        s.handle(r.feedback_text())
        s.handle(r.feedback_text())
    assert r.assemble() == content
    assert steps == len(s.session.messages)


@pytest.mark.parametrize("seed", [0, 1, 2])
def test_simulated_impaired_link(seed):
    content = os.urandom(2048)
    result, received = simulate_transfer(content, miss_rate=0.4, noise_rate=0.2, seed=seed)
    assert result.completed
    assert received == content
    assert result.bytes_transferred == len(content)
    assert result.ignored_scans > 0


def test_simulation_gives_up_after_max_ticks():
    result, received = simulate_transfer(os.urandom(512), miss_rate=1.0, max_ticks=50)
    assert not result.completed
    assert received is None
    assert result.scans == 0


def test_threaded_loopback():
    content = os.urandom(400)
    result, received = run_loopback(content, render_fps=200, scan_fps=300, timeout_s=20)
    assert result.completed
    assert received == content


def test_reassemble_rejects_gaps_and_bad_data():
    with pytest.raises(ReassemblyError):
        reassemble([SendChunk(transfer_id="t", chunk_index=1, data="AAAA")])
    with pytest.raises(ReassemblyError):
        reassemble([SendChunk(transfer_id="t", chunk_index=0, data="!!!")])
    assert reassemble([]) == b""


def test_decode_of_encoded_sequence_is_identity():
    content = os.urandom(600)
    doc = DocumentDescriptor.new("f.bin", len(content))
    s = SenderMachine()
    s.start(doc, content)
    assert [decode(encode(m)) for m in s.session.messages] == list(s.session.messages)

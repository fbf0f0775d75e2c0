import pytest

from streamcast.reassembly import FrameAssembler, TrafficStats


def test_frame_completes_in_order():
    assembler = FrameAssembler()
    assert assembler.add(1, 3, 0, b"ab") is None
    assert assembler.add(1, 3, 1, b"cd") is None
    assert assembler.add(1, 3, 2, b"e") == b"abcde"
    assert assembler.pending() == []


def test_frame_completes_out_of_order():
    assembler = FrameAssembler()
    assert assembler.add(5, 3, 2, b"z") is None
    assert assembler.add(5, 3, 0, b"x") is None
    assert assembler.add(5, 3, 1, b"y") == b"xyz"


def test_single_fragment_frame():
    assembler = FrameAssembler()
    assert assembler.add(9, 1, 0, b"whole") == b"whole"


def test_duplicate_fragment_replaces_earlier_copy():
    assembler = FrameAssembler()
    assembler.add(2, 2, 0, b"old")
    assembler.add(2, 2, 0, b"new")
    assert assembler.pending() == [2]
    assert assembler.add(2, 2, 1, b"!") == b"new!"


def test_interleaved_frames_are_kept_apart():
    assembler = FrameAssembler()
    assembler.add(1, 2, 0, b"a")
    assembler.add(2, 2, 0, b"b")
    assert assembler.pending() == [1, 2]
    assert assembler.add(2, 2, 1, b"B") == b"bB"
    assert assembler.pending() == [1]
    assert assembler.add(1, 2, 1, b"A") == b"aA"


def test_fragment_index_beyond_total_drops_frame():
    assembler = FrameAssembler()
    assert assembler.add(3, 2, 0, b"a") is None
    assert assembler.add(3, 2, 5, b"b") is None
    assert assembler.pending() == []


def test_report_collects_and_resets_counts():
    stats = TrafficStats()
    stats.record(100, 3)
    stats.record(50, 3)
    stats.record_decoded_frame()
    stats.record_decoded_frame()
    report = stats.take_report(12.0, 4.0)
    assert report.timestamp == 12.0
    assert report.bytes_received == 150
    assert report.expected_packets == 6
    assert report.received_packets == 2
    assert report.frame_rate == pytest.approx(0.5)
    empty = stats.take_report(13.0, 4.0)
    assert (empty.bytes_received, empty.expected_packets, empty.received_packets) == (0, 0, 0)
    assert empty.frame_rate == 0.0


def test_report_packs_after_many_records():
    stats = TrafficStats()
    for _ in range(10):
        stats.record(1000, 2)
    report = stats.take_report(1.0, 10.0)
    assert report.received_packets == 10
    assert len(report.pack()) == 24
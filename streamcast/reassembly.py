"""Reassembly of fragmented frames and traffic accounting."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field

from streamcast.protocol import ReceiverReport

__all__ = ["TrafficStats", "FrameAssembler"]

logger = logging.getLogger(__name__)

_U32 = 0xFFFFFFFF


class TrafficStats:
    """Thread-safe counters that are reset each time a report is taken."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._bytes = 0
        self._expected = 0
        self._received = 0
        self._decoded = 0

    def record(self, payload_size: int, total_fragments: int) -> None:
        """Count one received fragment."""
        with self._lock:
            self._bytes = (self._bytes + payload_size) & _U32
            self._expected = (self._expected + total_fragments) & _U32
            self._received = (self._received + 1) & _U32

    def record_decoded_frame(self) -> None:
        """Count one completely reassembled frame."""
        with self._lock:
            self._decoded = (self._decoded + 1) & _U32

    def take_report(self, timestamp: float, interval: float) -> ReceiverReport:
        """Return the counts gathered so far and reset them to zero."""
        with self._lock:
            counts = (self._bytes, self._expected, self._received, self._decoded)
            self._bytes = self._expected = self._received = self._decoded = 0
        bytes_received, expected, received, decoded = counts
        return ReceiverReport(timestamp, bytes_received, expected, received, decoded / interval)


@dataclass
class _PartialFrame:
    total_fragments: int = 0
    fragments: dict[int, bytes] = field(default_factory=dict)


class FrameAssembler:
    """Collects fragments per frame id and yields whole frames."""

    def __init__(self) -> None:
        self._frames: dict[int, _PartialFrame] = {}

    def add(
        self,
        frame_id: int,
        total_fragments: int,
        fragment_index: int,
        payload: bytes,
    ) -> bytes | None:
        """Store a fragment; return the joined frame once all fragments are present."""
        frame = self._frames.setdefault(frame_id, _PartialFrame())
        frame.total_fragments = total_fragments
        frame.fragments[fragment_index] = bytes(payload)
        if len(frame.fragments) != total_fragments:
            return None
        del self._frames[frame_id]
        try:
            parts = [frame.fragments[index] for index in range(total_fragments)]
        except KeyError as missing:
            logger.warning("Missing fragment index %s for frame %s", missing.args[0], frame_id)
            return None
        return b"".join(parts)

    def pending(self) -> list[int]:
        """Frame ids still waiting for fragments, in ascending order."""
        return sorted(self._frames)
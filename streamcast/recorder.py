"""Recording and H.264 encoding of raw RGBA frames through an ffmpeg child process."""

from __future__ import annotations

import logging
import queue
import subprocess
import threading
from collections.abc import Sequence

__all__ = ["FRAME_RATE", "BIT_RATE", "ffmpeg_record_command", "FFmpegWriter", "FFmpegEncoder"]

logger = logging.getLogger(__name__)

FRAME_RATE = 60
BIT_RATE = 400000
GOP_SIZE = 10
MAX_B_FRAMES = 1


def ffmpeg_record_command(width: int, height: int, output_file: str) -> list[str]:
    """Arguments that make ffmpeg turn raw RGBA frames on stdin into an H.264 file."""
    return [
        "ffmpeg", "-y",
        "-f", "rawvideo",
        "-pixel_format", "rgba",
        "-video_size", f"{width}x{height}",
        "-framerate", str(FRAME_RATE),
        "-i", "-",
        "-c:v", "libx264",
        "-preset", "ultrafast",
        "-pix_fmt", "yuv420p",
        "-f", "h264",
        str(output_file),
    ]


def _encode_command(width: int, height: int) -> list[str]:
    return [
        "ffmpeg", "-loglevel", "error",
        "-f", "rawvideo",
        "-pixel_format", "rgba",
        "-video_size", f"{width}x{height}",
        "-framerate", str(FRAME_RATE),
        "-i", "-",
        "-c:v", "libx264",
        "-b:v", str(BIT_RATE),
        "-g", str(GOP_SIZE),
        "-bf", str(MAX_B_FRAMES),
        "-pix_fmt", "yuv420p",
        "-x264-params", "annexb=1",
        "-f", "h264",
        "-",
    ]


def _frame_bytes(frame: bytes, width: int, height: int) -> bytes:
    size = width * height * 4
    frame = bytes(frame)
    if len(frame) < size:
        raise ValueError(f"frame holds {len(frame)} bytes, {size} needed")
    return frame[:size]


class FFmpegWriter:
    """Pipes raw RGBA frames into ffmpeg, which writes them to a video file.

    If the child cannot be started the error is logged and frames are dropped.
    """

    def __init__(
        self,
        width: int,
        height: int,
        output_file: str,
        command: Sequence[str] | None = None,
    ) -> None:
        self.width = width
        self.height = height
        args = list(command) if command is not None else ffmpeg_record_command(width, height, output_file)
        try:
            self.process: subprocess.Popen | None = subprocess.Popen(args, stdin=subprocess.PIPE)
        except OSError as exc:
            logger.error("Failed to start FFmpeg: %s", exc)
            self.process = None

    def write_frame(self, frame: bytes) -> None:
        """Write one frame of ``width * height * 4`` bytes."""
        data = _frame_bytes(frame, self.width, self.height)
        if self.process is None:
            return
        self.process.stdin.write(data)

    def close(self) -> None:
        """Finish the file and wait for ffmpeg to exit."""
        if self.process is None:
            return
        process, self.process = self.process, None
        try:
            process.stdin.close()
        except OSError:
            pass
        process.wait()

    def __enter__(self) -> FFmpegWriter:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class FFmpegEncoder:
    """Encodes raw RGBA frames into an H.264 Annex B byte stream."""

    def __init__(self, width: int, height: int, command: Sequence[str] | None = None) -> None:
        self.width = width
        self.height = height
        self.frames_sent = 0
        args = list(command) if command is not None else _encode_command(width, height)
        self._process = subprocess.Popen(args, stdin=subprocess.PIPE, stdout=subprocess.PIPE)
        self._output: queue.Queue[bytes] = queue.Queue()
        self._closed = False
        self._reader = threading.Thread(target=self._read_output, daemon=True)
        self._reader.start()

    def _read_output(self) -> None:
        stdout = self._process.stdout
        while chunk := stdout.read1(65536):
            self._output.put(chunk)

    def _drain(self) -> bytes:
        chunks = []
        while True:
            try:
                chunks.append(self._output.get_nowait())
            except queue.Empty:
                return b"".join(chunks)

    def encode_frame(self, frame: bytes) -> bytes:
        """Submit one frame; return the encoded bytes that are ready so far.

        The encoder may hold frames back, so the result can be empty.
        """
        if self._closed:
            raise ValueError("encoder is closed")
        data = _frame_bytes(frame, self.width, self.height)
        self._process.stdin.write(data)
        self._process.stdin.flush()
        self.frames_sent += 1
        return self._drain()

    def close(self) -> bytes:
        """Flush the encoder and return any encoded bytes still pending."""
        if self._closed:
            return b""
        self._closed = True
        try:
            self._process.stdin.close()
        except OSError:
            pass
        self._reader.join()
        self._process.wait()
        self._process.stdout.close()
        return self._drain()

    def __enter__(self) -> FFmpegEncoder:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
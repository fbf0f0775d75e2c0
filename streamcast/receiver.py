"""Receiver: reassembles the video stream, shows it and forwards key presses."""

from __future__ import annotations

import argparse
import logging
import queue
import socket
import subprocess
import threading
import time
from collections.abc import Sequence
from typing import BinaryIO

from streamcast.protocol import (
    GAME_HOST,
    GAME_PORT,
    MAX_UDP_PACKET_SIZE,
    RECEIVER_PORT,
    Datagram,
    KeyCommand,
    ProtocolError,
    Scancode,
)
from streamcast.reassembly import FrameAssembler, TrafficStats

__all__ = ["read_bmp_frame", "H264Decoder", "send_key", "report_loop", "main"]

logger = logging.getLogger(__name__)

Frame = tuple[int, int, bytes]

_FFMPEG_DECODE = (
    "ffmpeg", "-loglevel", "error",
    "-f", "h264", "-i", "-",
    "-f", "image2pipe", "-vcodec", "bmp", "-pix_fmt", "bgr24", "-",
)
_MASK_BYTES = {0xFF << (8 * index): index for index in range(4)}
_KEY_DT = 0.033
_FRAME_PAUSE = 0.033
_IDLE_WAIT = 0.005


def _read_exact(stream: BinaryIO, size: int, allow_empty: bool = False) -> bytes | None:
    chunks = bytearray()
    while len(chunks) < size:
        chunk = stream.read(size - len(chunks))
        if not chunk:
            if allow_empty and not chunks:
                return None
            raise EOFError(f"stream ended after {len(chunks)} of {size} bytes")
        chunks += chunk
    return bytes(chunks)


def _channel_layout(blob: bytes, info_size: int, bpp: int, compression: int) -> tuple[int, int, int, int | None]:
    if compression == 0 and bpp in (24, 32):
        return 2, 1, 0, None
    if compression == 3 and bpp == 32:
        red, green, blue = (int.from_bytes(blob[54 + 4 * i:58 + 4 * i], "little") for i in range(3))
        alpha = int.from_bytes(blob[66:70], "little") if info_size >= 56 else 0
        try:
            indices = [_MASK_BYTES[mask] for mask in (red, green, blue)]
            alpha_index = _MASK_BYTES[alpha] if alpha else None
        except KeyError as exc:
            raise ValueError(f"unsupported BMP channel mask {exc.args[0]:#x}") from exc
        return indices[0], indices[1], indices[2], alpha_index
    raise ValueError(f"unsupported BMP layout: {bpp} bits, compression {compression}")


def read_bmp_frame(stream: BinaryIO) -> Frame | None:
    """Read one BMP image from ``stream`` as ``(width, height, rgba)``.

    Returns None at a clean end of stream.
    """
    head = _read_exact(stream, 14, allow_empty=True)
    if head is None:
        return None
    if head[:2] != b"BM":
        raise ValueError("stream does not hold a BMP image")
    size = int.from_bytes(head[2:6], "little")
    offset = int.from_bytes(head[10:14], "little")
    if size < 14 + 40:
        raise ValueError(f"BMP size {size} is too small")
    blob = head + _read_exact(stream, size - 14)
    info_size = int.from_bytes(blob[14:18], "little")
    width = int.from_bytes(blob[18:22], "little", signed=True)
    height = int.from_bytes(blob[22:26], "little", signed=True)
    bpp = int.from_bytes(blob[28:30], "little")
    compression = int.from_bytes(blob[30:34], "little")
    red, green, blue, alpha = _channel_layout(blob, info_size, bpp, compression)

    top_down = height < 0
    height = abs(height)
    step = bpp // 8
    stride = ((width * bpp + 31) // 32) * 4
    row_bytes = width * step
    rgba = bytearray()
    opaque = b"\xff" * width
    for out_row in range(height):
        source_row = out_row if top_down else height - 1 - out_row
        start = offset + source_row * stride
        row = blob[start:start + row_bytes]
        if len(row) < row_bytes:
            raise ValueError("BMP pixel data is truncated")
        pixels = bytearray(width * 4)
        pixels[0::4] = row[red::step]
        pixels[1::4] = row[green::step]
        pixels[2::4] = row[blue::step]
        pixels[3::4] = row[alpha::step] if alpha is not None else opaque
        rgba += pixels
    return width, height, bytes(rgba)


class H264Decoder:
    """Decodes an H.264 elementary stream into RGBA frames through a child process.

    The child reads the stream on stdin and writes BMP images on stdout.
    """

    def __init__(self, command: Sequence[str] | None = None) -> None:
        self._process = subprocess.Popen(
            list(command or _FFMPEG_DECODE),
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
        )
        self._frames: queue.Queue[Frame] = queue.Queue()
        self._closed = False
        self._reader = threading.Thread(target=self._read_frames, daemon=True)
        self._reader.start()

    def _read_frames(self) -> None:
        try:
            while (frame := read_bmp_frame(self._process.stdout)) is not None:
                self._frames.put(frame)
        except (ValueError, EOFError, OSError) as exc:
            logger.error("Decoder output unreadable: %s", exc)

    def feed(self, data: bytes) -> None:
        """Pass encoded bytes to the decoder."""
        if self._closed:
            raise ValueError("decoder is closed")
        self._process.stdin.write(data)
        self._process.stdin.flush()

    def get_frame(self, timeout: float | None = None) -> Frame | None:
        """Return the next decoded frame, or None if none arrives in time."""
        try:
            return self._frames.get(timeout=timeout)
        except queue.Empty:
            return None

    def close(self) -> None:
        """Finish the stream and wait for the child to exit."""
        if self._closed:
            return
        self._closed = True
        try:
            self._process.stdin.close()
        except OSError:
            pass
        self._reader.join()
        self._process.wait()
        self._process.stdout.close()

    def __enter__(self) -> H264Decoder:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def send_key(sock: socket.socket, address, scancode: int, dt: float) -> int:
    """Send a key press to the game; return the number of bytes sent."""
    print(f"[KeyPress] scancode: {int(scancode)}", flush=True)
    payload = KeyCommand(scancode, dt).encode()
    try:
        return sock.sendto(payload, address)
    except OSError as exc:
        logger.error("Failed to send key press: %s", exc)
        return 0


def report_loop(
    sock: socket.socket,
    address,
    stats: TrafficStats,
    stop: threading.Event,
    interval: float = 10.0,
) -> None:
    """Every ``interval`` seconds send a traffic report until ``stop`` is set."""
    started = time.monotonic()
    while not stop.wait(interval):
        report = stats.take_report(time.monotonic() - started, interval)
        try:
            sock.sendto(report.pack(), address)
        except OSError as exc:
            logger.error("Failed to send receiver report: %s", exc)


def _decode_loop(
    sock: socket.socket,
    decoder: H264Decoder,
    stats: TrafficStats,
    stop: threading.Event,
) -> None:
    assembler = FrameAssembler()
    sock.settimeout(0.05)
    while not stop.is_set():
        try:
            data = sock.recv(MAX_UDP_PACKET_SIZE)
        except TimeoutError:
            continue
        except OSError as exc:
            logger.error("recvfrom failed: %s", exc)
            stop.wait(0.001)
            continue
        try:
            datagram = Datagram.unpack(data)
        except ProtocolError as exc:
            logger.warning("Dropping datagram: %s", exc)
            continue
        fragment = datagram.fragment
        stats.record(len(datagram.payload), fragment.total_fragments)
        if not datagram.payload:
            continue
        frame = assembler.add(
            fragment.frame_id, fragment.total_fragments, fragment.fragment_index, datagram.payload
        )
        if frame is None:
            continue
        stats.record_decoded_frame()
        try:
            decoder.feed(frame)
        except (OSError, ValueError) as exc:
            logger.error("Decoder stopped accepting data: %s", exc)
            stop.set()


def _display_loop(pygame, decoder: H264Decoder, control: socket.socket, game_address, stop: threading.Event) -> None:
    screen = None
    while not stop.is_set():
        for event in pygame.event.get():
            if event.type == pygame.QUIT or (
                event.type == pygame.KEYDOWN and event.scancode == Scancode.ESCAPE
            ):
                stop.set()
                break
            if event.type == pygame.KEYDOWN:
                send_key(control, game_address, event.scancode & 0xFF, _KEY_DT)
        frame = decoder.get_frame(timeout=_IDLE_WAIT)
        if frame is None:
            continue
        width, height, rgba = frame
        if screen is None:
            screen = pygame.display.set_mode((width, height))
            pygame.display.set_caption("Receiver")
        image = pygame.image.frombuffer(rgba, (width, height), "RGBA")
        screen.blit(image, (0, 0))
        pygame.display.flip()
        time.sleep(_FRAME_PAUSE)


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Receive and display the game stream.")
    parser.add_argument("--port", type=int, default=RECEIVER_PORT, help="UDP port for the stream")
    parser.add_argument("--game-host", default=GAME_HOST, help="address of the game's input listener")
    parser.add_argument("--game-port", type=int, default=GAME_PORT, help="port of the game's input listener")
    parser.add_argument("--report-interval", type=float, default=10.0, help="seconds between reports")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the receiver until the window is closed or Escape is pressed."""
    args = _parse_args(argv)
    import pygame

    stop = threading.Event()
    stats = TrafficStats()
    with socket.socket(socket.AF_INET6, socket.SOCK_DGRAM) as sock, socket.socket(
        socket.AF_INET6, socket.SOCK_DGRAM
    ) as control, H264Decoder() as decoder:
        sock.bind(("::", args.port))
        reporter = threading.Thread(
            target=report_loop,
            args=(sock, ("::1", args.port), stats, stop, args.report_interval),
            daemon=True,
        )
        decoding = threading.Thread(target=_decode_loop, args=(sock, decoder, stats, stop))
        reporter.start()
        decoding.start()
        pygame.init()
        try:
            _display_loop(pygame, decoder, control, (args.game_host, args.game_port), stop)
        finally:
            stop.set()
            decoding.join()
            pygame.quit()
    return 0
# streamcast

Watch game frames that arrive as fragmented H.264 over UDP, send key presses
back to the game, and write images in common formats from pure Python.

The package has these parts:

- **Receiving** – `streamcast.receiver` collects UDP fragments, puts whole
  frames back together, decodes them with `ffmpeg`, shows them in a pygame
  window and forwards key presses.
- **Wire format** – `streamcast.protocol` packs and parses every packet that
  goes over the network.
- **Reassembly** – `streamcast.reassembly` joins fragments and counts traffic.
- **Recording** – `streamcast.recorder` feeds raw RGBA frames to `ffmpeg`.
- **Maps** – `streamcast.gamemap` reads the text tile maps of the arena.
- **Image writers** – pure-Python encoders for PNG, BMP, TGA, JPEG and
  Radiance HDR, with their own zlib/DEFLATE compressor.

## Installation

```
pip install streamcast
```

Decoding and recording run the `ffmpeg` program, which must be on your
`PATH`. The receiver window uses pygame.

## Watching a stream

```
streamcast-receiver
```

Options:

- `--port` – UDP port the stream arrives on (default 9999, IPv6, all
  addresses).
- `--game-host` – address of the game's input listener (default `::1`).
- `--game-port` – port of the game's input listener (default 8888).
- `--report-interval` – seconds between receiver reports (default 10).

The receiver reassembles complete frames, passes them to `ffmpeg` for
decoding and shows the pictures in a window sized to the first frame. Every
key you press is sent to the game as text of the form `<scancode>:<dt>` with
a time step of 0.033 s. Escape or closing the window stops it. Every report
interval a `ReceiverReport` with the bytes and packets received and the
decoded frame rate is sent to `[::1]` at the listening port.

The building blocks can be used on their own:

- `read_bmp_frame(stream)` reads one BMP image from a binary stream and
  returns `(width, height, rgba)`, or `None` at a clean end of stream.
- `H264Decoder` runs `ffmpeg` as a child process: `feed(data)` passes
  encoded bytes in, `get_frame(timeout)` returns the next decoded frame or
  `None`, and `close()` ends the stream. It is also a context manager.
- `send_key(sock, address, scancode, dt)` sends one key press.
- `report_loop(sock, address, stats, stop, interval)` sends reports until
  the `threading.Event` `stop` is set.

## Wire format

`streamcast.protocol` describes everything on the wire:

- `FragmentHeader` – frame id, fragment count and fragment index.
- `Datagram` – one fragment with its timing header and payload.
- `ReceiverReport` – statistics sent back to the sender.
- `NakPacket` – a request to resend one missing fragment.
- `KeyCommand` – a key press with its time step.
- `Scancode` – the key codes the game reacts to.

Each type has `pack`/`unpack` (`encode`/`decode` for `KeyCommand`).
Malformed or short packets raise `ProtocolError`.

```python
from streamcast.protocol import FragmentHeader

header = FragmentHeader(frame_id=7, total_fragments=3, fragment_index=1)
assert FragmentHeader.unpack(header.pack()) == header
```

## Reassembly

```python
from streamcast.reassembly import FrameAssembler, TrafficStats
```

`FrameAssembler.add(frame_id, total_fragments, fragment_index, payload)`
returns the joined frame once all its fragments have arrived, and `None`
before that; `pending()` lists the frame ids still incomplete.
`TrafficStats.record(payload_size, total_fragments)` and
`record_decoded_frame()` count traffic, and
`take_report(timestamp, interval)` returns a `ReceiverReport` and resets the
counters.

## Recording

`streamcast.recorder` feeds raw RGBA frames of `width * height * 4` bytes to
`ffmpeg`:

- `FFmpegWriter(width, height, output_file)` records them to an `.h264`
  file with `write_frame(frame)`; `close()` finishes the file.
- `FFmpegEncoder(width, height)` turns them into an H.264 Annex B byte
  stream: `encode_frame(frame)` returns whatever encoded bytes are ready so
  far (possibly none), and `close()` returns the rest.
- `ffmpeg_record_command(width, height, output_file)` returns the command
  line the writer uses.

## Arena maps

`streamcast.gamemap.ArenaMap` reads a text map in which `#` marks a wall and
anything else is floor. `ArenaMap.parse(text)` and `ArenaMap.load(path)`
build a map; `wall_positions()`, `walkable_positions()` and
`random_walkable_position(rng)` give world positions, and
`grid_to_world(row, col)` places a single tile.

## Writing images

Pixel data is a bytes-like object of `width * height * comp` bytes, rows from
top to bottom, with 1 = grey, 2 = grey + alpha, 3 = RGB, 4 = RGBA.

```python
from streamcast.png import encode_png
from streamcast.bitmap import write_bmp
from streamcast.jpeg import encode_jpeg

pixels = bytes([255, 0, 0, 0, 255, 0])  # two pixels: red, green

png = encode_png(2, 1, 3, pixels, stride=0, compression_level=8,
                 force_filter=-1, flip_vertically=False)
jpg = encode_jpeg(2, 1, 3, pixels, quality=90, flip_vertically=False)
write_bmp("out.bmp", 2, 1, 3, pixels, flip_vertically=False)
```

- `streamcast.png` – `encode_png` / `write_png`; `force_filter` 0–4 fixes
  the row filter, any other value picks the cheapest one per row.
- `streamcast.bitmap` – `encode_bmp` / `write_bmp`; RGBA gets a V4 header.
- `streamcast.tga` – `encode_tga` / `write_tga`, with run-length encoding
  unless `rle=False`.
- `streamcast.jpeg` – `encode_jpeg` / `write_jpeg`; alpha is ignored and
  chroma is subsampled at quality 90 and below.
- `streamcast.radiance` – `encode_hdr` / `write_hdr` for linear float data,
  and `linear_to_rgbe(red, green, blue)` for a single pixel.

Invalid sizes or too little data raise `ImageWriteError`.

`streamcast.deflate` provides the compressor behind the PNG writer:
`zlib_compress(data, quality)`, `crc32(data)` and `adler32(data)`.

## What the package does not do

streamcast is the watching end of the stream. It has no game: nothing here
renders frames, splits them into fragments and sends them, paces a render
loop, or moves a player and checks collisions in response to the key
presses the receiver sends. `ArenaMap` only reads maps. The receiver builds
`NakPacket`s' format but never asks for lost fragments to be resent; a frame
with a missing fragment is simply dropped.

## Running the tests

```
pip install "streamcast[test]"
pytest
```
"""UDP game-stream receiver, its wire formats, ffmpeg recording, arena maps and image writers."""

__version__ = "2.0.0"
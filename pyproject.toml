[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "streamcast"
version = "2.0.0"
description = "Receiver for H.264 game frames streamed over UDP, with a key back channel and pure-Python image writers"
requires-python = ">=3.10"
keywords = [
    "streaming",
    "udp",
    "h264",
    "ffmpeg",
    "receiver",
    "png",
    "jpeg",
    "bmp",
    "tga",
    "hdr",
    "deflate",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Multimedia :: Video",
    "Topic :: Multimedia :: Graphics :: Graphics Conversion",
    "Topic :: System :: Networking",
]
dependencies = [
    "pygame",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
streamcast-receiver = "streamcast.receiver:main"

[tool.hatch.build.targets.wheel]
packages = ["streamcast"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

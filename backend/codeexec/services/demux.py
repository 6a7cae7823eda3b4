"""Split the container runtime's combined log stream into stdout and stderr.

A non-TTY container's log endpoint returns a sequence of frames::

    [selector:1][reserved:3][length:4, big-endian][payload:length]

selector 1 is stdout, 2 is stderr; any other value is treated as stdout.
Parsing stops at the first frame whose payload would run past the buffer.
"""

import struct
from typing import NamedTuple

HEADER = struct.Struct(">B3xI")
STDOUT, STDERR = 1, 2

NO_OUTPUT_SUCCESS = "Program executed successfully (no output captured)"


class LogOutput(NamedTuple):
    stdout: str
    stderr: str


class ParsedFrames(NamedTuple):
    frames: int
    stdout: bytes
    stderr: bytes


def parse_log_frames(buffer: bytes) -> ParsedFrames:
    out = bytearray()
    err = bytearray()
    frames = 0
    offset = 0
    size = len(buffer)
    while offset + HEADER.size <= size:
        selector, length = HEADER.unpack_from(buffer, offset)
        start = offset + HEADER.size
        end = start + length
        if end > size:
            break
        (err if selector == STDERR else out).extend(buffer[start:end])
        frames += 1
        offset = end
    return ParsedFrames(frames, bytes(out), bytes(err))


def _text(data: bytes) -> str:
    return data.decode("utf-8", errors="replace").strip()


def demultiplex(buffer: bytes, exit_code: int | None = 0) -> LogOutput:
    if not buffer:
        # some minimal images produce no log frames for trivial programs
        if exit_code == 0:
            return LogOutput(NO_OUTPUT_SUCCESS, "")
        return LogOutput("", f"Container exited with code {exit_code}")

    parsed = parse_log_frames(buffer)
    if parsed.frames == 0:
        return LogOutput(_text(buffer), "")
    return LogOutput(_text(parsed.stdout), _text(parsed.stderr))

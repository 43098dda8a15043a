"""Protocol layer: frame codec, checksum, command builders, and response parsing."""

from .framing import build_frame, validate_frame, frame_to_hex, hex_to_frame
from .commands import Command, Source, build_command
from .parser import ErrorKind, parse_response

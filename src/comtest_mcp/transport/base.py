"""Transport contract and length-byte frame assembly.

A transport delivers one complete frame per ``read_frame`` call. Frame
boundaries come from the length byte at offset 2; the codec never scans
for them itself.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..protocol.framing import MIN_FRAME_LENGTH

DEFAULT_TIMEOUT_MS = 3000


class FrameTimeout(TimeoutError):
    """No complete frame arrived before the deadline."""


class FrameAssembler:
    """Accumulate a byte stream and cut it into frames.

    Chunks may hold part of a frame or several frames. Once at least
    ``MIN_FRAME_LENGTH`` bytes are buffered the declared length is read
    and exactly that many bytes are sliced off; the rest stays buffered.

    Usage::

        assembler = FrameAssembler()
        for frame in assembler.feed(chunk):
            handle(frame)
    """

    def __init__(self) -> None:
        self._buffer = bytearray()

    def __len__(self) -> int:
        return len(self._buffer)

    def feed(self, data: bytes) -> list[bytes]:
        """Add received bytes and return every frame now complete."""
        self._buffer.extend(data)
        frames: list[bytes] = []
        while len(self._buffer) >= MIN_FRAME_LENGTH:
            # A bogus declared length still consumes a minimum-size frame
            # so the buffer always advances; validation reports it.
            length = max(self._buffer[2], MIN_FRAME_LENGTH)
            if len(self._buffer) < length:
                break
            frames.append(bytes(self._buffer[:length]))
            del self._buffer[:length]
        return frames

    def reset(self) -> None:
        """Drop any buffered partial frame."""
        self._buffer.clear()


class Transport(ABC):
    """What the dispatcher needs from a connection."""

    @property
    @abstractmethod
    def connected(self) -> bool:
        """True while the connection is open."""

    @abstractmethod
    def connect(self) -> None:
        """Open the connection.

        Raises:
            ConnectionError: If it cannot be opened.
        """

    @abstractmethod
    def disconnect(self) -> None:
        """Close the connection. Safe to call when already closed."""

    @abstractmethod
    def write(self, data: bytes) -> int:
        """Write raw bytes; returns the number written."""

    @abstractmethod
    def read_frame(self, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> bytes:
        """Block until one complete frame arrives.

        Raises:
            FrameTimeout: If no complete frame arrived in time.
            ConnectionError: If not connected.
            OSError: On a hard I/O error.
        """

"""Serial port connection to a Factory Auto Test device.

Uses ``pyserial``. Each response is delimited with :class:`FrameAssembler`
and handed back one frame per :meth:`SerialConnection.read_frame` call.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass

import serial
import serial.tools.list_ports

from ..protocol.framing import frame_to_hex
from .base import DEFAULT_TIMEOUT_MS, FrameAssembler, FrameTimeout, Transport

logger = logging.getLogger(__name__)

DEFAULT_BAUD_RATE = 115200
READ_POLL_INTERVAL = 0.05  # seconds
WRITE_TIMEOUT = 1.0  # seconds

PARITIES = {
    "none": serial.PARITY_NONE,
    "even": serial.PARITY_EVEN,
    "odd": serial.PARITY_ODD,
    "mark": serial.PARITY_MARK,
    "space": serial.PARITY_SPACE,
}


@dataclass
class PortInfo:
    """A serial port found on the host."""

    device: str
    description: str = ""
    manufacturer: str = ""
    serial_number: str = ""
    hwid: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "device": self.device,
            "description": self.description,
            "manufacturer": self.manufacturer,
            "serial_number": self.serial_number,
            "hwid": self.hwid,
        }


def list_serial_ports() -> list[PortInfo]:
    """List serial ports available on this host, sorted by device name."""
    ports = [
        PortInfo(
            device=port.device,
            description=port.description or "",
            manufacturer=port.manufacturer or "",
            serial_number=port.serial_number or "",
            hwid=port.hwid or "",
        )
        for port in serial.tools.list_ports.comports()
    ]
    ports.sort(key=lambda p: p.device)
    return ports


class SerialConnection(Transport):
    """Manages the serial connection to the device.

    Usage::

        conn = SerialConnection("/dev/ttyUSB0")
        conn.connect()
        conn.write(frame_bytes)
        response = conn.read_frame(timeout_ms=3000)
        conn.disconnect()
    """

    def __init__(
        self,
        port: str,
        baud_rate: int = DEFAULT_BAUD_RATE,
        bytesize: int = 8,
        parity: str = "none",
        stopbits: float = 1,
        rtscts: bool = False,
        xonxoff: bool = False,
    ) -> None:
        if parity.lower() not in PARITIES:
            raise ValueError(
                f"Unknown parity '{parity}'. Valid: {list(PARITIES)}"
            )
        self._port = port
        self._baud_rate = baud_rate
        self._bytesize = bytesize
        self._parity = PARITIES[parity.lower()]
        self._stopbits = stopbits
        self._rtscts = rtscts
        self._xonxoff = xonxoff
        self._serial: serial.Serial | None = None
        self._assembler = FrameAssembler()
        self._pending: deque[bytes] = deque()
        self._poll_timeout = READ_POLL_INTERVAL

    @property
    def port(self) -> str:
        return self._port

    @property
    def baud_rate(self) -> int:
        return self._baud_rate

    @property
    def connected(self) -> bool:
        return self._serial is not None and self._serial.is_open

    def connect(self) -> None:
        """Open the serial port.

        Raises:
            ConnectionError: If the port cannot be opened.
        """
        if self.connected:
            return
        try:
            self._serial = serial.Serial(
                port=self._port,
                baudrate=self._baud_rate,
                bytesize=self._bytesize,
                parity=self._parity,
                stopbits=self._stopbits,
                rtscts=self._rtscts,
                xonxoff=self._xonxoff,
                timeout=READ_POLL_INTERVAL,
                write_timeout=WRITE_TIMEOUT,
            )
        except (serial.SerialException, ValueError) as e:
            self._serial = None
            raise ConnectionError(f"Failed to open port {self._port}: {e}") from e

        self._poll_timeout = READ_POLL_INTERVAL
        self._assembler.reset()
        self._pending.clear()
        logger.info("Port %s opened at %d baud", self._port, self._baud_rate)

    def disconnect(self) -> None:
        """Close the serial port."""
        if self._serial is None:
            return

        try:
            self._serial.close()
        except serial.SerialException as e:
            logger.warning("Error closing port %s: %s", self._port, e)
        finally:
            self._serial = None
            self._assembler.reset()
            self._pending.clear()
            logger.info("Port %s closed", self._port)

    def write(self, data: bytes) -> int:
        """Write a frame to the device.

        Anything still buffered from earlier traffic is dropped first, so
        the next frame read is the answer to this write.

        Raises:
            ConnectionError: If not connected.
            serial.SerialException: If the write fails.
        """
        if not self.connected:
            raise ConnectionError("Port is not open")

        self._serial.reset_input_buffer()
        self._assembler.reset()
        self._pending.clear()

        logger.debug("TX %s", frame_to_hex(data))
        written = self._serial.write(data)
        self._serial.flush()
        return written

    def read_frame(self, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> bytes:
        """Read one complete frame.

        Raises:
            FrameTimeout: If no complete frame arrived within ``timeout_ms``.
            ConnectionError: If not connected.
            serial.SerialException: If the read fails.
        """
        if not self.connected:
            raise ConnectionError("Port is not open")

        deadline = time.monotonic() + timeout_ms / 1000
        while not self._pending:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise FrameTimeout(f"Response timeout ({timeout_ms} ms)")
            poll = min(remaining, READ_POLL_INTERVAL)
            # setting timeout on an open port reconfigures it
            if poll != self._poll_timeout:
                self._serial.timeout = self._poll_timeout = poll
            chunk = self._serial.read(max(1, self._serial.in_waiting))
            if chunk:
                logger.debug("RX %s", frame_to_hex(chunk))
                self._pending.extend(self._assembler.feed(chunk))

        return self._pending.popleft()

"""
Output sinks for ByteVM.

The engine emits exactly two kinds of message: a number, rendered as decimal
digits followed by a newline, and a raw byte. Sinks must apply them in the
order received.
"""

import sys
from dataclasses import dataclass
from typing import BinaryIO, List, Optional, Protocol, Union


class OutputSink(Protocol):
    def emit_number(self, value: int) -> None: ...

    def emit_byte(self, value: int) -> None: ...


@dataclass(frozen=True)
class EmitNumber:
    value: int

    def render(self) -> bytes:
        return f"{self.value}\n".encode('ascii')


@dataclass(frozen=True)
class EmitByte:
    value: int

    def __post_init__(self):
        if not (0 <= self.value <= 0xFF):
            raise ValueError(f"EmitByte value must be 0-255, got {self.value}")

    def render(self) -> bytes:
        return bytes([self.value])


OutputEvent = Union[EmitNumber, EmitByte]


class RecordingSink:
    """Keeps every emitted event in order; used by tests and the fuzzer."""

    def __init__(self):
        self.events: List[OutputEvent] = []

    def emit_number(self, value: int) -> None:
        self.events.append(EmitNumber(value))

    def emit_byte(self, value: int) -> None:
        self.events.append(EmitByte(value))

    @property
    def numbers(self) -> List[int]:
        return [e.value for e in self.events if isinstance(e, EmitNumber)]

    def getvalue(self) -> bytes:
        """Render the recorded events exactly as a stream sink would have written them."""
        return b''.join(e.render() for e in self.events)

    def __len__(self) -> int:
        return len(self.events)


class StreamSink:
    """Writes events straight to a binary stream, flushing after each one."""

    def __init__(self, stream: Optional[BinaryIO] = None):
        self.stream = stream if stream is not None else sys.stdout.buffer

    def _write(self, event: OutputEvent) -> None:
        self.stream.write(event.render())
        self.stream.flush()

    def emit_number(self, value: int) -> None:
        self._write(EmitNumber(value))

    def emit_byte(self, value: int) -> None:
        self._write(EmitByte(value))

